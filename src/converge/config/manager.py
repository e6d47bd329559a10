"""Two-tier configuration manager (user + project override)."""

import copy
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from .paths import DEFAULTS_PATH, get_user_config_path, get_project_config_path
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.manager")


def read_yaml_config(path: Path) -> Dict[str, Any]:
    """
    Read one YAML config file.

    Raises:
        ConfigError: If the file is unreadable, not YAML, or not a mapping
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading config file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the full config tree.

    Order (later wins): package defaults, user config, project config,
    then ``config_path`` if given.

    Returns:
        Merged configuration dictionary
    """
    config = copy.deepcopy(read_yaml_config(DEFAULTS_PATH))

    user_config_path = get_user_config_path()
    if user_config_path.exists():
        _deep_merge(config, read_yaml_config(user_config_path))
        logger.debug(f"Loaded user config from {user_config_path}")

    project_config_path = get_project_config_path()
    if project_config_path:
        _deep_merge(config, read_yaml_config(project_config_path))
        logger.info(f"Loaded project config from {project_config_path}")

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        _deep_merge(config, read_yaml_config(path))
        logger.info(f"Loaded config from {config_path}")

    return config


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
