"""CLI utilities package."""

from typing import Callable, Optional
import click
from ...config import load_engine_config
from ...utils.logging import get_logger
from .file_resolver import resolve_file_path

logger = get_logger("cli.utils")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CHANGES = 2


def workspace_options(command: Callable) -> Callable:
    """Options shared by every command that talks to a provider and a state store."""
    options = [
        click.option('--config', 'config_path', type=click.Path(), help='Extra config YAML file'),
        click.option('--state', 'state_path', type=click.Path(), help='State journal path (overrides config)'),
        click.option('--provider', 'provider_name', help='Provider name (overrides config)'),
        click.option('--provider-store', type=click.Path(), help='Memory provider persistence file'),
    ]
    for option in reversed(options):
        command = option(command)
    return command


def build_workspace(
    config_path: Optional[str] = None,
    state_path: Optional[str] = None,
    provider_name: Optional[str] = None,
    provider_store: Optional[str] = None,
):
    """
    Load configuration, apply CLI overrides and build a Workspace.

    Raises:
        ConfigError: If configuration is invalid
    """
    from ...workspace import Workspace

    config = load_engine_config(config_path)
    if state_path:
        config.state.path = state_path
    if provider_name:
        config.provider.name = provider_name
    if provider_store:
        config.provider.options["store_path"] = provider_store

    logger.debug(f"Workspace: provider={config.provider.name}, state={config.state.path}")
    return Workspace(config)


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.

    Args:
        message: Error message
        suggestion: Optional suggestion or help text

    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


def echo_safe(text: str, err: bool = False) -> None:
    """Echo text, degrading to ASCII on terminals that cannot encode it."""
    try:
        click.echo(text, err=err)
    except UnicodeEncodeError:
        click.echo(text.encode('ascii', errors='replace').decode('ascii'), err=err)


__all__ = [
    "EXIT_OK",
    "EXIT_ERROR",
    "EXIT_CHANGES",
    "workspace_options",
    "build_workspace",
    "format_error",
    "echo_safe",
    "resolve_file_path",
]
