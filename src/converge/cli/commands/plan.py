"""Plan command - dry-run diff of desired state against state and live resources."""

import json as jsonlib
import logging
import sys
import click
from ...policy import check_policies
from ...presentation.human_formatter import format_plan, format_policy_result
from ...report.plan_file import save_plan
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger, set_level
from ..utils import (
    EXIT_CHANGES, EXIT_ERROR, EXIT_OK,
    build_workspace, echo_safe, format_error, resolve_file_path, workspace_options,
)

logger = get_logger("cli.plan")


@click.command()
@click.argument('desired', type=click.Path(exists=False))
@workspace_options
@click.option('--no-refresh', is_flag=True, help='Skip live reads; compare against state only')
@click.option('--destroy', is_flag=True, help='Plan the destruction of every resource in state')
@click.option('--policy', 'policy_file', type=click.Path(), help='Policy YAML to check the plan against')
@click.option('--out', '-o', 'out_path', type=click.Path(), help='Save the plan for a later apply')
@click.option('--json', 'as_json', is_flag=True, help='Output the plan as JSON')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
def plan(desired, config_path, state_path, provider_name, provider_store,
         no_refresh, destroy, policy_file, out_path, as_json, quiet):
    """
    Show the operations needed to reconcile live resources with DESIRED.

    Exit codes: 0 no changes, 2 changes pending, 1 error.
    """
    if quiet:
        set_level(logging.WARNING)
    try:
        try:
            desired_path = resolve_file_path(desired)
        except FileNotFoundError as e:
            click.echo(format_error(str(e)), err=True)
            sys.exit(EXIT_ERROR)

        if not quiet:
            click.echo(f"Planning: {desired_path}", err=True)

        workspace = build_workspace(config_path, state_path, provider_name, provider_store)
        result = workspace.plan_file(desired_path, refresh=False if no_refresh else None, destroy=destroy)

        if as_json:
            click.echo(jsonlib.dumps(jsonlib.loads(result.model_dump_json()), indent=2))
        else:
            echo_safe(format_plan(result))

        policies_passed = True
        if policy_file:
            evaluation = check_policies(result, policy_file)
            echo_safe(format_policy_result(evaluation), err=True)
            policies_passed = evaluation.passed

        if out_path:
            save_plan(result, out_path)
            if not quiet:
                click.echo(f"Plan saved to: {out_path}", err=True)

        if not policies_passed:
            sys.exit(EXIT_ERROR)
        sys.exit(EXIT_CHANGES if result.has_changes else EXIT_OK)

    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_ERROR)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Plan failed: {e}"), err=True)
        sys.exit(EXIT_ERROR)
