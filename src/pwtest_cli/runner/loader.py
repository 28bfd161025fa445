"""Locate the installed test runner implementation."""

from __future__ import annotations

from importlib.metadata import entry_points

from ..errors import RunnerNotFoundError
from ..options import RunOverrides
from .base import TestRunner

ENTRY_POINT_GROUP = "pwtest_cli.runners"


def available_runners() -> list[str]:
    return sorted(ep.name for ep in entry_points(group=ENTRY_POINT_GROUP))


def load_runner(name: str, overrides: RunOverrides) -> TestRunner:
    """Instantiate the runner registered as ``name``.

    The entry point must reference a callable taking the run overrides and
    returning a TestRunner.

    Raises:
        RunnerNotFoundError: If no runner is registered under ``name``.
    """
    matches = [ep for ep in entry_points(group=ENTRY_POINT_GROUP) if ep.name == name]
    if not matches:
        installed = available_runners()
        hint = f" Installed: {', '.join(installed)}" if installed else ""
        raise RunnerNotFoundError(
            message=(
                f'No test runner named "{name}" is installed '
                f'(entry point group "{ENTRY_POINT_GROUP}").{hint}'
            ),
            data={"runner": name, "installed": installed},
        )
    factory = matches[0].load()
    return factory(overrides)
