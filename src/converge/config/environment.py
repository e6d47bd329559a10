"""Environment variable overrides for engine configuration."""

import os
from typing import Dict, Any, Mapping, Optional
from ..utils.logging import get_logger

logger = get_logger("config.environment")

ENV_STATE = "CONVERGE_STATE"
ENV_PROVIDER = "CONVERGE_PROVIDER"
ENV_PROVIDER_STORE = "CONVERGE_PROVIDER_STORE"
ENV_PARALLELISM = "CONVERGE_PARALLELISM"


def apply_environment_overrides(config: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Apply CONVERGE_* environment variables on top of file configuration.

    Priority is below CLI flags and above config files.

    Args:
        config: Merged file configuration (mutated in place)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        The same config dict
    """
    if environ is None:
        environ = os.environ

    state_path = environ.get(ENV_STATE)
    if state_path:
        config.setdefault("state", {})["path"] = state_path
        logger.debug(f"State path overridden by {ENV_STATE}: {state_path}")

    provider_name = environ.get(ENV_PROVIDER)
    if provider_name:
        config.setdefault("provider", {})["name"] = provider_name.strip().lower()
        logger.debug(f"Provider overridden by {ENV_PROVIDER}: {provider_name}")

    provider_store = environ.get(ENV_PROVIDER_STORE)
    if provider_store:
        config.setdefault("provider", {}).setdefault("options", {})["store_path"] = provider_store

    parallelism = environ.get(ENV_PARALLELISM)
    if parallelism:
        try:
            config.setdefault("executor", {})["parallelism"] = int(parallelism)
        except ValueError:
            logger.warning(f"Ignoring non-integer {ENV_PARALLELISM}='{parallelism}'")

    return config
