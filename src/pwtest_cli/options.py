"""Translate parsed CLI options into validated run overrides.

The runner receives a ``RunOverrides`` value that takes precedence over the
project config file for one invocation. Fields left as ``None`` defer to the
config file (or the runner's defaults).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import ValidationError, invalid_choice
from .reporters import ReporterSpec, resolve_reporter


class TraceMode(Enum):
    """Tracing modes accepted by --trace."""

    ON = "on"
    OFF = "off"
    ON_FIRST_RETRY = "on-first-retry"
    RETAIN_ON_FAILURE = "retain-on-failure"


class BrowserSelector(Enum):
    """Browsers accepted by --browser."""

    ALL = "all"
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"

    def expand(self) -> list[str]:
        """Concrete browser names selected by this value."""
        if self is BrowserSelector.ALL:
            return [b.value for b in BrowserSelector if b is not BrowserSelector.ALL]
        return [self.value]


TRACE_MODES = [m.value for m in TraceMode]
BROWSERS = [b.value for b in BrowserSelector]

_DELIMITED_PATTERN = re.compile(r"^/(.*)/([gi]*)$")


@dataclass(frozen=True)
class ForcedPattern:
    """A compiled pattern together with the JS-style flags it was given."""

    source: str
    regex: re.Pattern[str]
    is_global: bool = False

    @property
    def ignore_case(self) -> bool:
        return bool(self.regex.flags & re.IGNORECASE)

    def search(self, text: str) -> re.Match[str] | None:
        return self.regex.search(text)

    def __str__(self) -> str:
        flags = ("g" if self.is_global else "") + ("i" if self.ignore_case else "")
        return f"/{self.source}/{flags}"


def force_regexp(pattern: str) -> ForcedPattern:
    """Compile a user pattern.

    ``/body/flags`` is a delimited expression whose flags (``g``, ``i``) are
    honored. Anything else compiles as a case-insensitive global pattern.

    Raises:
        ValidationError: If the expression does not compile.
    """
    match = _DELIMITED_PATTERN.match(pattern)
    if match:
        source, flags = match.group(1), match.group(2)
    else:
        source, flags = pattern, "gi"

    try:
        regex = re.compile(source, re.IGNORECASE if "i" in flags else 0)
    except re.error as e:
        raise ValidationError(
            message=f'Invalid regular expression "{pattern}": {e}',
            data={"value": pattern},
        ) from e
    return ForcedPattern(source=source, regex=regex, is_global="g" in flags)


@dataclass(frozen=True)
class Shard:
    """One-based shard selector (current/total)."""

    current: int
    total: int


@dataclass(frozen=True)
class ProjectOverride:
    """Project entry produced by --browser."""

    name: str
    use: Mapping[str, Any]


@dataclass(frozen=True)
class RunOverrides:
    """Config values forced from the command line."""

    forbid_only: bool | None = None
    fully_parallel: bool | None = None
    global_timeout: int | None = None
    grep: ForcedPattern | None = None
    grep_invert: ForcedPattern | None = None
    max_failures: int | None = None
    output_dir: Path | None = None
    quiet: bool | None = None
    repeat_each: int | None = None
    retries: int | None = None
    reporter: tuple[ReporterSpec, ...] | None = None
    shard: Shard | None = None
    timeout: int | None = None
    ignore_snapshots: bool | None = None
    update_snapshots: str | None = None
    workers: int | None = None
    projects: tuple[ProjectOverride, ...] | None = None
    use: Mapping[str, Any] | None = None
    debug: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the set fields keyed the way the runner's config spells them."""
        keys = {
            "forbid_only": "forbidOnly",
            "fully_parallel": "fullyParallel",
            "global_timeout": "globalTimeout",
            "grep": "grep",
            "grep_invert": "grepInvert",
            "max_failures": "maxFailures",
            "output_dir": "outputDir",
            "quiet": "quiet",
            "repeat_each": "repeatEach",
            "retries": "retries",
            "reporter": "reporter",
            "shard": "shard",
            "timeout": "timeout",
            "ignore_snapshots": "ignoreSnapshots",
            "update_snapshots": "updateSnapshots",
            "workers": "workers",
            "projects": "projects",
            "use": "use",
        }
        result: dict[str, Any] = {}
        for attr, key in keys.items():
            value = getattr(self, attr)
            if value is None:
                continue
            if isinstance(value, ForcedPattern):
                value = str(value)
            elif isinstance(value, Path):
                value = str(value)
            elif isinstance(value, Shard):
                value = {"current": value.current, "total": value.total}
            elif attr == "reporter":
                value = [[r.location] for r in value]
            elif attr == "projects":
                value = [{"name": p.name, "use": dict(p.use)} for p in value]
            elif attr == "use":
                value = dict(value)
            result[key] = value
        return result


def _parse_int(options: Mapping[str, Any], name: str, flag: str) -> int | None:
    raw = options.get(name)
    if raw is None or raw == "":
        return None
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw), 10)
    except ValueError:
        raise ValidationError(
            message=f'Option "{flag}" expects an integer, got "{raw}"',
            data={"option": flag, "value": raw},
        ) from None


def parse_shard(value: str) -> Shard:
    """Parse ``current/total``.

    Raises:
        ValidationError: If either part is not an integer.
    """
    parts = value.split("/")
    if len(parts) != 2:
        raise ValidationError(
            message=f'Invalid shard "{value}", expected "current/total", for example "3/5"',
            data={"value": value},
        )
    try:
        current, total = (int(p, 10) for p in parts)
    except ValueError:
        raise ValidationError(
            message=f'Invalid shard "{value}", expected "current/total", for example "3/5"',
            data={"value": value},
        ) from None
    return Shard(current=current, total=total)


def parse_browser(value: str) -> BrowserSelector:
    """Validate --browser (case-insensitive)."""
    try:
        return BrowserSelector(value.lower())
    except ValueError:
        raise invalid_choice("browser", value, BROWSERS) from None


def parse_trace(value: str) -> TraceMode:
    """Validate --trace."""
    try:
        return TraceMode(value)
    except ValueError:
        raise invalid_choice("trace mode", value, TRACE_MODES) from None


def overrides_from_options(
    options: Mapping[str, Any],
    cwd: Path | None = None,
) -> RunOverrides:
    """Build RunOverrides from the raw option mapping.

    Args:
        options: Parsed option values keyed by parameter name
            (``max_failures``, ``grep_invert``, ``x``, ...)
        cwd: Directory relative paths resolve against (default: cwd)

    Returns:
        Validated RunOverrides

    Raises:
        ValidationError: On malformed numeric values, shard, browser or trace.
        ResolutionError: If a reporter cannot be resolved.
    """
    cwd = cwd or Path.cwd()

    max_failures = 1 if options.get("x") else _parse_int(options, "max_failures", "--max-failures")
    timeout = _parse_int(options, "timeout", "--timeout")
    workers = _parse_int(options, "workers", "--workers")

    shard = parse_shard(options["shard"]) if options.get("shard") else None

    reporter = None
    if options.get("reporter"):
        reporter = tuple(resolve_reporter(r, cwd) for r in options["reporter"].split(","))

    output_dir = None
    if options.get("output"):
        output_dir = (cwd / options["output"]).resolve()

    projects = None
    if options.get("browser"):
        selector = parse_browser(options["browser"])
        projects = tuple(
            ProjectOverride(name=name, use={"browserName": name}) for name in selector.expand()
        )

    use: dict[str, Any] | None = None
    debug = bool(options.get("debug"))
    if options.get("headed") or debug:
        use = {"headless": False}
    if debug:
        max_failures = 1
        timeout = 0
        workers = 1

    if options.get("trace"):
        trace = parse_trace(options["trace"])
        use = use or {}
        use["trace"] = trace.value

    return RunOverrides(
        forbid_only=True if options.get("forbid_only") else None,
        fully_parallel=True if options.get("fully_parallel") else None,
        global_timeout=_parse_int(options, "global_timeout", "--global-timeout"),
        grep=force_regexp(options["grep"]) if options.get("grep") else None,
        grep_invert=force_regexp(options["grep_invert"]) if options.get("grep_invert") else None,
        max_failures=max_failures,
        output_dir=output_dir,
        quiet=True if options.get("quiet") else None,
        repeat_each=_parse_int(options, "repeat_each", "--repeat-each"),
        retries=_parse_int(options, "retries", "--retries"),
        reporter=reporter,
        shard=shard,
        timeout=timeout,
        ignore_snapshots=True if options.get("ignore_snapshots") else None,
        update_snapshots="all" if options.get("update_snapshots") else None,
        workers=workers,
        projects=projects,
        use=use,
        debug=debug,
    )
