"""Top-level control flow of `pwtest test` and `pwtest list-files`.

Translates options, handles the respawn handoff, prepares the run context
and calls the runner. Returns process exit codes; printing of errors is left
to the click commands.
"""

from __future__ import annotations

import contextlib
import json
import os
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import click

from .docker import ContainerConnection
from .errors import EXIT_INTERRUPTED, EXIT_OK
from .filters import parse_test_file_filters
from .options import RunOverrides, overrides_from_options
from .respawn import RuntimeInfo, launch, preflight
from .runner import (
    RunContext,
    config_file_or_directory,
    load_runner,
    resolve_config_file,
)
from .shared.logging import get_logger

logger = get_logger(__name__)

DEBUG_ENV = "PWDEBUG"
WATCH_ENV = "PW_TEST_WATCH"


def run_environment(
    overrides: RunOverrides, connection: ContainerConnection | None
) -> dict[str, str]:
    """Environment additions the runner and its workers must see."""
    env: dict[str, str] = {}
    if connection is not None:
        env.update(connection.to_env())
    if overrides.debug:
        env[DEBUG_ENV] = "1"
    return env


async def run_tests(
    args: Sequence[str],
    options: Mapping[str, Any],
    *,
    connection: ContainerConnection | None = None,
    runner_name: str = "default",
    cwd: Path | None = None,
    environ: Mapping[str, str] | None = None,
    runtime: RuntimeInfo | None = None,
    argv: Sequence[str] | None = None,
) -> int:
    """Run the test suite and return the process exit code.

    Args:
        args: Positional test filters
        options: Parsed `test` options keyed by parameter name
        connection: Container connection when running browsers in docker
        runner_name: Entry point name of the runner implementation
        cwd: Working directory (default: current directory)
        environ: Process environment (default: os.environ)
        runtime: Runtime info for the respawn decision (default: detected)
        argv: Arguments for a respawned child (default: sys.argv[1:])

    Raises:
        PwtestError: On invalid options, unresolvable reporters or a
            missing runner.
    """
    cwd = cwd or Path.cwd()
    environ = os.environ if environ is None else environ

    overrides = overrides_from_options(options, cwd)
    env = run_environment(overrides, connection)

    config_location = config_file_or_directory(options.get("config"), cwd)
    config_file = resolve_config_file(config_location)

    descriptor = preflight(
        config_file, runtime=runtime, environ=environ, argv=argv, extra_env=env, cwd=cwd
    )
    if descriptor is not None:
        return launch(descriptor)

    runner = load_runner(runner_name, overrides)
    if config_file is not None:
        await runner.load_config_from_resolved_file(config_file)
    else:
        await runner.load_empty_config(config_location)

    context = RunContext(
        overrides=overrides,
        test_file_filters=tuple(parse_test_file_filters(args)),
        project_filter=tuple(options["project"]) if options.get("project") else None,
        list_only=bool(options.get("list_only")),
        watch_mode=bool(environ.get(WATCH_ENV)),
        pass_with_no_tests=bool(options.get("pass_with_no_tests")),
        env=env,
        config_file=config_file,
        config_dir=config_location if config_file is None else config_file.parent,
    )

    logger.debug(
        "starting run",
        config_file=str(config_file) if config_file else None,
        filters=len(context.test_file_filters),
        overrides=overrides.to_dict(),
    )
    try:
        result = await runner.run_all_tests(context)
    except KeyboardInterrupt:
        logger.info("run interrupted")
        return EXIT_INTERRUPTED

    logger.info("run finished", status=result.status.value)
    return result.status.exit_code


async def list_test_files(
    options: Mapping[str, Any],
    *,
    runner_name: str = "default",
    cwd: Path | None = None,
    environ: Mapping[str, str] | None = None,
    runtime: RuntimeInfo | None = None,
    argv: Sequence[str] | None = None,
) -> int:
    """Print the runner's test file report as JSON."""
    cwd = cwd or Path.cwd()
    environ = os.environ if environ is None else environ

    config_location = config_file_or_directory(options.get("config"), cwd)
    config_file = resolve_config_file(config_location)

    descriptor = preflight(config_file, runtime=runtime, environ=environ, argv=argv, cwd=cwd)
    if descriptor is not None:
        return launch(descriptor)

    if config_file is None:
        click.echo(json.dumps({"projects": []}))
        return EXIT_OK

    project_filter = tuple(options["project"]) if options.get("project") else None
    runner = load_runner(runner_name, RunOverrides())
    # Only the JSON report may reach stdout; config and runner output go to stderr
    with contextlib.redirect_stdout(sys.stderr):
        await runner.load_config_from_resolved_file(config_file)
        report = await runner.list_test_files(config_file, project_filter)
    click.echo(json.dumps(report))
    return EXIT_OK
