"""Positional test-filter parsing (``file.spec.ts:42:7``)."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from .options import ForcedPattern, force_regexp

_LOCATION_SUFFIX = re.compile(r"^(.*?):(\d+):?(\d+)?$")


@dataclass(frozen=True)
class TestFileFilter:
    """Selects test files by pattern and, optionally, a source location."""

    __test__ = False  # not a pytest test class

    pattern: ForcedPattern
    line: int | None = None
    column: int | None = None


def parse_test_file_filter(arg: str) -> TestFileFilter:
    match = _LOCATION_SUFFIX.match(arg)
    if not match:
        return TestFileFilter(pattern=force_regexp(arg))
    column = match.group(3)
    return TestFileFilter(
        pattern=force_regexp(match.group(1)),
        line=int(match.group(2), 10),
        column=int(column, 10) if column else None,
    )


def parse_test_file_filters(args: Sequence[str]) -> list[TestFileFilter]:
    """Convert positional arguments to filters, preserving their order."""
    return [parse_test_file_filter(arg) for arg in args]
