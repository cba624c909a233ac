"""Configuration module: load and validate engine settings."""

from typing import Any, Dict, Optional
from pydantic import ValidationError as SchemaError
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import load_config, _deep_merge
from .paths import get_defaults_path, get_user_config_path, get_project_config_path
from .settings import EngineSettings, ExecutorSettings, RetrySettings

logger = get_logger("config")

__all__ = [
    "EngineSettings",
    "ExecutorSettings",
    "RetrySettings",
    "load_config",
    "load_engine_config",
    "get_defaults_path",
    "get_user_config_path",
    "get_project_config_path",
]


def load_engine_config(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> EngineSettings:
    """
    Load configuration from YAML layers and validate it.

    Args:
        config_path: Explicit config file, merged over user and project config
        overrides: Values merged last (e.g. from command-line flags)

    Returns:
        Validated EngineSettings

    Raises:
        ConfigError: If a file cannot be loaded or the merged tree is invalid
    """
    config = load_config(config_path)
    if overrides:
        _deep_merge(config, overrides)

    try:
        settings = EngineSettings(**config)
    except SchemaError as e:
        raise ConfigError(f"Invalid configuration: {e}")

    logger.info(
        f"Loaded configuration (concurrency={settings.executor.concurrency}, "
        f"state={settings.state.path})"
    )
    return settings
