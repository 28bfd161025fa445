"""Shared modules for pwtest-cli."""

from .logging import configure_logging, get_logger
from .paths import LOCK_DIR, PWTEST_DIR

__all__ = [
    # Paths
    "PWTEST_DIR",
    "LOCK_DIR",
    # Logging
    "configure_logging",
    "get_logger",
]
