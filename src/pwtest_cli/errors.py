"""Error taxonomy for the pwtest CLI.

Every fatal condition raised below the command layer is a ``PwtestError``.
The click commands catch it, print the message and exit with ``exit_code``.
"""

from dataclasses import dataclass, field
from typing import Any

# Process exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


@dataclass
class PwtestError(Exception):
    """Base error class for CLI errors."""

    message: str
    exit_code: int = EXIT_FAILURE
    data: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


@dataclass
class ValidationError(PwtestError):
    """A flag value is malformed or not one of the allowed values."""

    message: str = "Invalid option value"


@dataclass
class EngineUnavailableError(PwtestError):
    """Docker engine is not installed or not reachable."""

    message: str = "Docker engine is not running"


@dataclass
class ContainerStartError(PwtestError):
    """The browser container could not be created or did not come up."""

    message: str = "Failed to start docker container"


@dataclass
class ContainerOperationError(PwtestError):
    """A docker image/container operation (build, stop, delete) failed."""

    message: str = "Docker operation failed"


@dataclass
class ResolutionError(PwtestError):
    """A reporter identifier could not be resolved."""

    message: str = "Cannot resolve reporter"


@dataclass
class RunnerNotFoundError(PwtestError):
    """No test runner implementation is registered under the requested name."""

    message: str = "Test runner not found"


def invalid_choice(kind: str, value: str, allowed: list[str]) -> ValidationError:
    """Build a ValidationError naming the offending value and the allowed set.

    Args:
        kind: Human name of the option (e.g. "browser", "trace mode")
        value: Value given by the user
        allowed: Allowed values, in display order

    Returns:
        ValidationError with a user-facing message
    """
    choices = ", ".join(f'"{a}"' for a in allowed[:-1])
    if len(allowed) > 1:
        choices = f'{choices} or "{allowed[-1]}"'
    else:
        choices = f'"{allowed[0]}"'
    return ValidationError(
        message=f'Unsupported {kind} "{value}", must be one of {choices}',
        data={"value": value, "allowed": list(allowed)},
    )
