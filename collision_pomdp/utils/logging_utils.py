"""
Logging utilities shared by the solvers, simulators and scripts.

All loggers live under the ``collision_pomdp`` namespace and propagate to a single
package logger that owns the stdout handler, so the verbosity of every module can be
changed in one place.
"""

import logging
import sys
from typing import Optional
from collision_pomdp.config import Config

PACKAGE_LOGGER = "collision_pomdp"


def setup_logger(
    name: str = PACKAGE_LOGGER,
    level: Optional[str] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Attach the stdout handler to a logger (once).

    Args:
        name: Logger name, defaults to the package logger
        level: Logging level (defaults to Config.LOG_LEVEL)
        format_string: Custom format string (defaults to Config.LOG_FORMAT)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    level = level or Config.LOG_LEVEL
    format_string = format_string or Config.LOG_FORMAT

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(format_string))
    logger.addHandler(handler)
    logger.setLevel(_resolve_level(level))

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    Names outside the package namespace (scripts, ``__main__``) are re-rooted under
    it so they share the package handler.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    setup_logger(PACKAGE_LOGGER)
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def set_log_level(level: str) -> None:
    """Change the verbosity of every package logger."""
    setup_logger(PACKAGE_LOGGER).setLevel(_resolve_level(level))


def _resolve_level(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)
