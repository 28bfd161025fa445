"""Types shared with the test runner.

The runner discovers, schedules and executes tests. It is provided by a
separate package and plugged in through an entry point; the CLI only
prepares a ``RunContext`` for it and maps its ``RunResult`` to an exit code.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from ..errors import EXIT_FAILURE, EXIT_INTERRUPTED, EXIT_OK
from ..filters import TestFileFilter
from ..options import RunOverrides


class RunStatus(Enum):
    """Final status of a test run."""

    PASSED = "passed"
    FAILED = "failed"
    INTERRUPTED = "interrupted"
    TIMEDOUT = "timedout"

    @property
    def exit_code(self) -> int:
        if self is RunStatus.PASSED:
            return EXIT_OK
        if self is RunStatus.INTERRUPTED:
            return EXIT_INTERRUPTED
        return EXIT_FAILURE


@dataclass
class RunResult:
    """What the runner reports back."""

    status: RunStatus


@dataclass(frozen=True)
class RunContext:
    """Inputs of one test run, passed by value to the runner."""

    overrides: RunOverrides
    test_file_filters: Sequence[TestFileFilter] = ()
    project_filter: Sequence[str] | None = None
    list_only: bool = False
    watch_mode: bool = False
    pass_with_no_tests: bool = False
    env: Mapping[str, str] = field(default_factory=dict)
    config_file: Path | None = None
    config_dir: Path | None = None


class TestRunner(Protocol):
    """Interface a runner implementation provides."""

    async def load_config_from_resolved_file(self, config_file: Path) -> None: ...

    async def load_empty_config(self, config_dir: Path) -> None: ...

    async def run_all_tests(self, context: RunContext) -> RunResult: ...

    async def list_test_files(
        self, config_file: Path, project_filter: Sequence[str] | None
    ) -> dict[str, Any]: ...
