"""Apply and destroy commands - execute a plan against the provider."""

import logging
import sys
from typing import Optional
import click
from ...policy import check_policies
from ...presentation.human_formatter import format_apply_result, format_plan, format_policy_result
from ...report.plan_file import is_plan_file, load_plan
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger, set_level
from ..utils import (
    EXIT_ERROR, EXIT_OK,
    build_workspace, echo_safe, format_error, resolve_file_path, workspace_options,
)

logger = get_logger("cli.apply")


def _run(workspace, current_plan, policy_file: Optional[str], auto_approve: bool,
         parallelism: Optional[int], quiet: bool) -> int:
    """Show, check, confirm and execute a plan; return the exit code."""
    echo_safe(format_plan(current_plan))

    if policy_file:
        evaluation = check_policies(current_plan, policy_file)
        echo_safe(format_policy_result(evaluation), err=True)
        if not evaluation.passed:
            click.echo(format_error("Plan rejected by policy; nothing was applied."), err=True)
            return EXIT_ERROR

    if not current_plan.has_changes:
        return EXIT_OK

    if not auto_approve and not click.confirm("Apply these changes?", default=False):
        click.echo("Apply cancelled.", err=True)
        return EXIT_ERROR

    if not quiet:
        click.echo("Applying...", err=True)
    result = workspace.apply(current_plan, parallelism=parallelism)
    echo_safe(format_apply_result(result))
    return EXIT_OK if result.success else EXIT_ERROR


@click.command()
@click.argument('target', type=click.Path(exists=False))
@workspace_options
@click.option('--no-refresh', is_flag=True, help='Skip live reads; compare against state only')
@click.option('--policy', 'policy_file', type=click.Path(), help='Policy YAML the plan must pass')
@click.option('--parallelism', type=click.IntRange(min=1), help='Maximum concurrent operations')
@click.option('--auto-approve', is_flag=True, help='Skip the confirmation prompt')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
def apply(target, config_path, state_path, provider_name, provider_store,
          no_refresh, policy_file, parallelism, auto_approve, quiet):
    """
    Reconcile live resources with TARGET.

    TARGET is a desired-state file (planned, then applied) or a plan saved
    with ``converge plan --out``. Exit codes: 0 success, 1 error.
    """
    if quiet:
        set_level(logging.WARNING)
    try:
        try:
            target_path = resolve_file_path(target)
        except FileNotFoundError as e:
            click.echo(format_error(str(e)), err=True)
            sys.exit(EXIT_ERROR)

        workspace = build_workspace(config_path, state_path, provider_name, provider_store)

        if is_plan_file(target_path):
            if not quiet:
                click.echo(f"Applying saved plan: {target_path}", err=True)
            current_plan = load_plan(target_path)
        else:
            if not quiet:
                click.echo(f"Planning: {target_path}", err=True)
            current_plan = workspace.plan_file(target_path, refresh=False if no_refresh else None)

        sys.exit(_run(workspace, current_plan, policy_file, auto_approve, parallelism, quiet))

    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_ERROR)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Apply failed: {e}"), err=True)
        sys.exit(EXIT_ERROR)


@click.command()
@workspace_options
@click.option('--policy', 'policy_file', type=click.Path(), help='Policy YAML the plan must pass')
@click.option('--parallelism', type=click.IntRange(min=1), help='Maximum concurrent operations')
@click.option('--auto-approve', is_flag=True, help='Skip the confirmation prompt')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
def destroy(config_path, state_path, provider_name, provider_store,
            policy_file, parallelism, auto_approve, quiet):
    """Destroy every resource recorded in state, dependents first."""
    if quiet:
        set_level(logging.WARNING)
    try:
        workspace = build_workspace(config_path, state_path, provider_name, provider_store)
        current_plan = workspace.plan_file(None, destroy=True)
        sys.exit(_run(workspace, current_plan, policy_file, auto_approve, parallelism, quiet))

    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_ERROR)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Destroy failed: {e}"), err=True)
        sys.exit(EXIT_ERROR)
