"""Validate command - check a desired-state file without planning."""

import sys
import click
from ...graph.dependency_graph import DependencyGraph
from ...ingest.desired_loader import load_desired_state
from ...policy import validate_policy_file
from ...utils.errors import ConvergeError
from ..utils import EXIT_ERROR, build_workspace, format_error, resolve_file_path, workspace_options


@click.command()
@click.argument('desired', type=click.Path(exists=False))
@workspace_options
@click.option('--policy', 'policy_file', type=click.Path(), help='Also validate this policy YAML')
def validate(desired, config_path, state_path, provider_name, provider_store, policy_file):
    """Check DESIRED for shape, schema, dangling references and cycles."""
    try:
        try:
            desired_path = resolve_file_path(desired)
        except FileNotFoundError as e:
            click.echo(format_error(str(e)), err=True)
            sys.exit(EXIT_ERROR)

        desired_state = load_desired_state(desired_path)
        graph = DependencyGraph()
        graph.build_from_resources(desired_state.resources)

        provider = build_workspace(config_path, state_path, provider_name, provider_store).provider
        problems = []
        for node in desired_state.resources:
            try:
                schema = provider.schema(node.type)
            except ConvergeError as e:
                problems.append(f"{node.address}: {e}")
                continue
            problems.extend(f"{node.address}: {p}" for p in schema.validate_attributes(node.attributes))

        if problems:
            click.echo(format_error("Desired state is invalid:\n  " + "\n  ".join(problems)), err=True)
            sys.exit(EXIT_ERROR)

        if policy_file:
            validate_policy_file(policy_file)

        groups = graph.independent_subgraphs()
        click.echo(
            f"Desired state is valid: {len(desired_state.resources)} resources "
            f"in {len(groups)} independent groups."
        )
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_ERROR)
