"""converge - Declarative reconciliation engine."""

__version__ = "0.1.0"

from typing import Optional
from .config import load_engine_config
from .engine.models import ApplyResult, Plan
from .utils.logging import setup_logging, get_logger
from .utils.errors import ConvergeError

__all__ = ["plan", "apply"]

setup_logging()
logger = get_logger("api")


def plan(
    desired_path: str,
    config_path: Optional[str] = None,
    destroy: bool = False,
    refresh: Optional[bool] = None
) -> Plan:
    """Plan the operations that reconcile live state with a desired-state file."""
    from .workspace import Workspace

    try:
        config = load_engine_config(config_path)
        workspace = Workspace(config)
        return workspace.plan_file(desired_path, refresh=refresh, destroy=destroy)
    except ConvergeError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during plan: {e}", exc_info=True)
        raise ConvergeError(f"Plan failed: {e}") from e


def apply(
    desired_path: str,
    config_path: Optional[str] = None,
    destroy: bool = False,
    refresh: Optional[bool] = None,
    parallelism: Optional[int] = None
) -> ApplyResult:
    """Plan and immediately apply a desired-state file."""
    from .workspace import Workspace

    try:
        config = load_engine_config(config_path)
        workspace = Workspace(config)
        current = workspace.plan_file(desired_path, refresh=refresh, destroy=destroy)
        result = workspace.apply(current, parallelism=parallelism)
        logger.info(f"Apply complete: {len(result.applied)} operations applied")
        return result
    except ConvergeError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during apply: {e}", exc_info=True)
        raise ConvergeError(f"Apply failed: {e}") from e
