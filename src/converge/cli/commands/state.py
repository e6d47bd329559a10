"""State commands - inspect and maintain the state journal."""

import sys
import click
from ...presentation.human_formatter import format_record, format_state_list
from ...state.store import StateStore
from ...config import load_engine_config
from ...utils.errors import ConvergeError
from ..utils import EXIT_ERROR, echo_safe, format_error

_state_option = click.option('--state', 'state_path', type=click.Path(), help='State journal path (overrides config)')
_config_option = click.option('--config', 'config_path', type=click.Path(), help='Extra config YAML file')


def _open_store(config_path, state_path) -> StateStore:
    if not state_path:
        state_path = load_engine_config(config_path).state.path
    return StateStore(state_path)


@click.group()
def state():
    """Inspect the recorded state of applied resources."""
    pass


@state.command("list")
@_config_option
@_state_option
def list_command(config_path, state_path):
    """List addresses of all resources in state."""
    try:
        store = _open_store(config_path, state_path)
        records = store.records()
        if records:
            click.echo(format_state_list(records))
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_ERROR)


@state.command("show")
@click.argument('address')
@_config_option
@_state_option
def show_command(address, config_path, state_path):
    """Show the recorded attributes of one resource."""
    try:
        store = _open_store(config_path, state_path)
        record = store.get(address)
        if record is None:
            known = ", ".join(store.addresses()[:10]) or "(state is empty)"
            click.echo(format_error(f"No resource '{address}' in state.", f"Known addresses: {known}"), err=True)
            sys.exit(EXIT_ERROR)
        echo_safe(format_record(record))
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_ERROR)


@state.command("compact")
@_config_option
@_state_option
def compact_command(config_path, state_path):
    """Rewrite the state journal with one entry per live resource."""
    try:
        store = _open_store(config_path, state_path)
        count = store.compact()
        click.echo(f"Compacted state to {count} records.")
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_ERROR)
