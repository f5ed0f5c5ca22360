"""
Utility modules for the POMDP planning engine.
"""

from .logging_utils import setup_logger, get_logger, set_log_level

__all__ = [
    "setup_logger",
    "get_logger",
    "set_log_level",
]
