"""Layered configuration manager (defaults, user, project, explicit file)."""

import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
from .paths import get_defaults_path, get_user_config_path, get_project_config_path
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.manager")


def read_config_file(path: Path) -> Dict[str, Any]:
    """
    Read one YAML config file.

    Args:
        path: File to read

    Returns:
        Configuration dictionary (empty for an empty file)

    Raises:
        ConfigError: If the file is missing, unreadable or not a mapping
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a dictionary: {path}")
    return data


def config_layers(config_path: Optional[str] = None) -> List[Path]:
    """Config files in merge order; later files override earlier ones."""
    layers = [get_defaults_path()]
    user_config_path = get_user_config_path()
    if user_config_path.exists():
        layers.append(user_config_path)
    project_config_path = get_project_config_path()
    if project_config_path:
        layers.append(project_config_path)
    if config_path is not None:
        layers.append(Path(config_path))
    return layers


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the full config tree.

    Args:
        config_path: Optional explicit config file, applied last

    Returns:
        Merged configuration dictionary

    Raises:
        ConfigError: If any layer cannot be read
    """
    config: Dict[str, Any] = {}
    for path in config_layers(config_path):
        _deep_merge(config, read_config_file(path))
        logger.debug(f"Merged config layer {path}")
    return config


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
