"""Logging setup for infragraph."""

import logging
import os
import sys
from typing import Optional

LOG_LEVEL_ENV = "INFRAGRAPH_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_handler: Optional[logging.Handler] = None


def resolve_level(verbose: bool = False, debug: bool = False) -> int:
    """
    Pick the log level from CLI flags, falling back to INFRAGRAPH_LOG_LEVEL.

    Unknown level names in the environment are ignored.
    """
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    name = os.environ.get(LOG_LEVEL_ENV, "").upper()
    level = logging.getLevelName(name) if name else None
    return level if isinstance(level, int) else logging.WARNING


def setup_logging(level: Optional[int] = None, format_string: Optional[str] = None) -> logging.Logger:
    """
    Send infragraph logs to stderr.

    Only the ``infragraph`` logger is configured, so embedding applications
    keep control of the root logger. Calling this again replaces the level
    and format instead of stacking handlers.

    Args:
        level: Logging level (default: from INFRAGRAPH_LOG_LEVEL, else WARNING)
        format_string: Custom format string (optional)

    Returns:
        The ``infragraph`` logger
    """
    global _handler

    logger = logging.getLogger("infragraph")
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        logger.addHandler(_handler)
        logger.propagate = False
    _handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.setLevel(resolve_level() if level is None else level)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module."""
    return logging.getLogger(f"infragraph.{name}")
