"""Configuration module: load and validate engine settings."""

from typing import Dict, Any, Mapping, Optional
from pydantic import BaseModel, Field, ValidationError
from ..state.store import DEFAULT_STATE_FILE
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import load_config
from .environment import apply_environment_overrides
from .paths import get_user_config_path, get_project_config_path

logger = get_logger("config")


class StateConfig(BaseModel):
    path: str = Field(default=DEFAULT_STATE_FILE, min_length=1)


class ProviderConfig(BaseModel):
    name: str = Field(default="memory", min_length=1)
    options: Dict[str, Any] = Field(default_factory=dict)


class ExecutorConfig(BaseModel):
    max_attempts: int = Field(default=5, ge=1)
    base_delay: float = Field(default=0.5, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    parallelism: int = Field(default=4, ge=1)


class PlanConfig(BaseModel):
    refresh: bool = True


class EngineConfig(BaseModel):
    """Validated engine configuration."""
    state: StateConfig = Field(default_factory=StateConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    plan: PlanConfig = Field(default_factory=PlanConfig)

    class Config:
        extra = "forbid"


def load_engine_config(
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None
) -> EngineConfig:
    """
    Load configuration from defaults, config files and environment.

    Args:
        config_path: Extra config YAML file with the highest file priority
        environ: Environment mapping (defaults to os.environ)

    Returns:
        EngineConfig

    Raises:
        ConfigError: If config cannot be loaded or is invalid
    """
    raw = load_config(config_path)
    apply_environment_overrides(raw, environ)

    try:
        config = EngineConfig(**raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")

    logger.debug(
        f"Configuration: provider={config.provider.name}, state={config.state.path}, "
        f"parallelism={config.executor.parallelism}"
    )
    return config


__all__ = [
    "EngineConfig",
    "StateConfig",
    "ProviderConfig",
    "ExecutorConfig",
    "PlanConfig",
    "load_engine_config",
    "load_config",
    "apply_environment_overrides",
    "get_user_config_path",
    "get_project_config_path",
]
