"""Re-launch the CLI with the experimental ESM loader enabled.

Config files written as ES modules can only be loaded by the test runtime
when the experimental loader is active from process start. Deciding that
happens in two phases:

- ``preflight`` inspects the runtime and the resolved config file and
  returns a ``LaunchDescriptor`` when a fresh process is required.
- ``launch`` spawns that process and reports the exit code the parent
  should finish with. The parent does no further work after launching.
"""

from __future__ import annotations

import json
import os
import re
import shutil
import subprocess
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .shared.logging import get_logger

logger = get_logger(__name__)

# Marker set in the child's environment so it never respawns again
RESPAWNED_ENV = "PW_TS_ESM_ON"
# Opt-out switch
DISABLE_ENV = "PW_DISABLE_TS_ESM"
RUNTIME_OPTIONS_ENV = "NODE_OPTIONS"

MIN_RUNTIME_MAJOR = 16
EXPERIMENTAL_LOADER = "@playwright/test/lib/experimentalLoader.js"

_VERSION_RE = re.compile(r"v?(\d+)(?:\.(\d+))?(?:\.(\d+))?")


@dataclass(frozen=True)
class RuntimeInfo:
    """The JavaScript runtime the test runner executes in."""

    major: int
    version: str | None = None


class RuntimeDetector:
    """Detect the installed node runtime."""

    def detect(self) -> RuntimeInfo:
        """Run ``node --version``. A missing runtime reports major 0."""
        if not shutil.which("node"):
            return RuntimeInfo(major=0)
        try:
            result = subprocess.run(
                ["node", "--version"],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except subprocess.TimeoutExpired:
            return RuntimeInfo(major=0)
        if result.returncode != 0:
            return RuntimeInfo(major=0)
        return parse_runtime_version(result.stdout.strip())


def parse_runtime_version(version: str) -> RuntimeInfo:
    match = _VERSION_RE.match(version)
    if not match:
        return RuntimeInfo(major=0, version=version or None)
    return RuntimeInfo(major=int(match.group(1)), version=version)


def file_is_module(path: Path) -> bool:
    """Whether the runtime treats ``path`` as an ES module."""
    suffix = path.suffix
    if suffix in (".mjs", ".mts"):
        return True
    if suffix in (".cjs", ".cts"):
        return False

    for directory in path.resolve().parents:
        package_json = directory / "package.json"
        if not package_json.is_file():
            continue
        try:
            package = json.loads(package_json.read_text())
        except (OSError, json.JSONDecodeError):
            return False
        return isinstance(package, dict) and package.get("type") == "module"
    return False


def resolve_experimental_loader(cwd: Path | None = None) -> str:
    """Locate the loader under node_modules, walking up from ``cwd``.

    Returns a ``file://`` URL when installed, otherwise the bare package
    specifier for the runtime to resolve.
    """
    cwd = cwd or Path.cwd()
    for directory in (cwd, *cwd.parents):
        candidate = directory / "node_modules" / EXPERIMENTAL_LOADER
        if candidate.is_file():
            return candidate.resolve().as_uri()
    return EXPERIMENTAL_LOADER


def experimental_loader_option(cwd: Path | None = None) -> str:
    return f" --experimental-loader={resolve_experimental_loader(cwd)}"


def env_without_experimental_loader_options(
    environ: Mapping[str, str], cwd: Path | None = None
) -> dict[str, str]:
    """Copy ``environ`` with the loader directive removed from NODE_OPTIONS."""
    result = dict(environ)
    options = result.get(RUNTIME_OPTIONS_ENV)
    if options:
        stripped = options.replace(experimental_loader_option(cwd), "").strip()
        if stripped:
            result[RUNTIME_OPTIONS_ENV] = stripped
        else:
            del result[RUNTIME_OPTIONS_ENV]
    return result


@dataclass(frozen=True)
class LaunchDescriptor:
    """Everything needed to start the replacement process."""

    argv: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    runtime_options: str = ""
    respawned: bool = True

    @property
    def command(self) -> list[str]:
        return [sys.executable, "-m", "pwtest_cli", *self.argv]


def needs_respawn(
    config_file: Path | None,
    runtime: RuntimeInfo,
    environ: Mapping[str, str],
) -> bool:
    """All conditions must hold for a respawn."""
    # The experimental loader needs node 16+
    if runtime.major < MIN_RUNTIME_MAJOR:
        return False
    if config_file is None:
        return False
    if environ.get(DISABLE_ENV):
        return False
    if environ.get(RESPAWNED_ENV):
        return False
    return file_is_module(config_file)


def preflight(
    config_file: Path | None,
    runtime: RuntimeInfo | None = None,
    environ: Mapping[str, str] | None = None,
    argv: Sequence[str] | None = None,
    extra_env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> LaunchDescriptor | None:
    """Decide whether this invocation must continue in a fresh process.

    Args:
        config_file: Resolved runner config file, if any
        runtime: Runtime info (default: detected)
        environ: Current environment (default: os.environ)
        argv: Arguments for the child (default: sys.argv[1:])
        extra_env: Variables this invocation derived and the child must see
        cwd: Working directory used to find the loader

    Returns:
        LaunchDescriptor when a respawn is required, otherwise None
    """
    environ = os.environ if environ is None else environ
    if config_file is None:
        return None
    runtime = runtime or RuntimeDetector().detect()
    if not needs_respawn(config_file, runtime, environ):
        return None

    runtime_options = environ.get(RUNTIME_OPTIONS_ENV, "") + experimental_loader_option(cwd)
    env = {
        **environ,
        **(extra_env or {}),
        RUNTIME_OPTIONS_ENV: runtime_options,
        RESPAWNED_ENV: "1",
    }
    logger.info("respawning with experimental loader", config_file=str(config_file))
    return LaunchDescriptor(
        argv=tuple(sys.argv[1:] if argv is None else argv),
        env=env,
        runtime_options=runtime_options,
    )


def launch(descriptor: LaunchDescriptor) -> int:
    """Run the child to completion with inherited stdio.

    Returns:
        The child's exit code when it failed with one, otherwise 0. A child
        killed by a signal has no exit code and is not reported as failed.
    """
    process = subprocess.Popen(descriptor.command, env=dict(descriptor.env))
    try:
        code = process.wait()
    except KeyboardInterrupt:
        # The child got the same SIGINT; let it finish its own shutdown
        code = process.wait()
    logger.debug("respawned process exited", returncode=code)
    if code is None or code < 0:
        return 0
    return code
