"""Boundary to the test runner.

This module provides the types exchanged with the runner, config file
discovery, and entry-point based runner loading.
"""

from .base import RunContext, RunResult, RunStatus, TestRunner
from .config_files import DEFAULT_CONFIG_FILES, config_file_or_directory, resolve_config_file
from .loader import ENTRY_POINT_GROUP, available_runners, load_runner

__all__ = [
    # Types
    "RunContext",
    "RunResult",
    "RunStatus",
    "TestRunner",
    # Config discovery
    "DEFAULT_CONFIG_FILES",
    "config_file_or_directory",
    "resolve_config_file",
    # Loading
    "ENTRY_POINT_GROUP",
    "available_runners",
    "load_runner",
]
