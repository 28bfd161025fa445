"""CLI main entry point."""

import asyncio
import json
import os
import sys
from collections.abc import Callable
from typing import Any

import click

from .config import CONFIG_KEYS, get_config_path, load_config
from .dispatcher import list_test_files, run_tests
from .docker import ContainerConnection, ContainerOrchestrator
from .errors import EXIT_INTERRUPTED, PwtestError
from .formatters import (
    dim,
    print_cli_config,
    print_container_ready,
    print_test_container_status,
)
from .options import BROWSERS, TRACE_MODES
from .reporters import BUILTIN_REPORTERS
from .respawn import RESPAWNED_ENV
from .runner import DEFAULT_CONFIG_FILES
from .shared.logging import configure_logging, get_logger, level_for_verbosity

logger = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 30000

_CONFIG_FILES_HELP = "/".join(f'"{f}"' for f in DEFAULT_CONFIG_FILES)


def fail(error: PwtestError) -> None:
    """Print a fatal error and exit with its code."""
    logger.debug("command failed", reason=error.message, data=error.data)
    click.echo(f"Error: {error.message}", err=True)
    sys.exit(error.exit_code)


def run_guarded(func: Callable[[], Any]) -> Any:
    """Call ``func`` and turn PwtestError into an error exit."""
    try:
        return func()
    except PwtestError as e:
        fail(e)


def run_to_exit_code(func: Callable[[], int]) -> None:
    """Run a test command body and exit with its code.

    Ctrl-C reaches us as KeyboardInterrupt from ``asyncio.run`` after it has
    cancelled the running coroutine, so it is mapped to 130 here.
    """
    try:
        code = run_guarded(func)
    except KeyboardInterrupt:
        logger.info("run interrupted")
        code = EXIT_INTERRUPTED
    sys.exit(code)


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity")
@click.option("--log-json", is_flag=True, help="Write diagnostic logs as JSON lines")
@click.pass_context
def cli(ctx: click.Context, verbose: int, log_json: bool) -> None:
    """Run browser tests, optionally with browsers inside docker."""
    ctx.ensure_object(dict)
    config = load_config()
    configure_logging(level_for_verbosity(config.log_level, verbose), json_output=log_json)
    ctx.obj["config"] = config


def test_options(func: Callable) -> Callable:
    """Attach the option surface shared by `test` and `docker test`."""
    options = [
        click.argument("test_filter", nargs=-1),
        click.option(
            "--browser",
            help=(
                "Browser to use for tests, one of "
                + ", ".join(f'"{b}"' for b in BROWSERS)
                + ' (default: "chromium")'
            ),
        ),
        click.option("--headed", is_flag=True, help="Run tests in headed browsers (default: headless)"),
        click.option(
            "--debug",
            is_flag=True,
            help=(
                'Run tests with the inspector. Shortcut for "PWDEBUG=1" and '
                '"--timeout=0 --max-failures=1 --headed --workers=1"'
            ),
        ),
        click.option(
            "-c",
            "--config",
            help=f"Configuration file, or a test directory with optional {_CONFIG_FILES_HELP}",
        ),
        click.option("--forbid-only", is_flag=True, help="Fail if test.only is called (default: false)"),
        click.option("--fully-parallel", is_flag=True, help="Run all tests in parallel (default: false)"),
        click.option(
            "-g", "--grep", help='Only run tests matching this regular expression (default: ".*")'
        ),
        click.option(
            "-gv",
            "--grep-invert",
            help="Only run tests that do not match this regular expression",
        ),
        click.option(
            "--global-timeout",
            help="Maximum time this test suite can run in milliseconds (default: unlimited)",
        ),
        click.option("--ignore-snapshots", is_flag=True, help="Ignore screenshot and snapshot expectations"),
        click.option(
            "-j",
            "--workers",
            help="Number of concurrent workers, use 1 to run in a single worker",
        ),
        click.option(
            "--list",
            "list_only",
            is_flag=True,
            help="Collect all the tests and report them, but do not run",
        ),
        click.option("--max-failures", help="Stop after the first N failures"),
        click.option("--output", help='Folder for output artifacts (default: "test-results")'),
        click.option(
            "--pass-with-no-tests",
            is_flag=True,
            help="Makes test run succeed even if no tests were found",
        ),
        click.option("--quiet", is_flag=True, help="Suppress stdio"),
        click.option("--repeat-each", help="Run each test N times (default: 1)"),
        click.option(
            "--reporter",
            help=(
                "Reporter to use, comma-separated, can be "
                + ", ".join(f'"{r}"' for r in BUILTIN_REPORTERS)
                + ' (default: "list")'
            ),
        ),
        click.option(
            "--retries",
            help="Maximum retry count for flaky tests, zero for no retries (default: no retries)",
        ),
        click.option(
            "--shard",
            help='Shard tests and execute only the selected shard, "current/all", 1-based, e.g. "3/5"',
        ),
        click.option(
            "--project",
            multiple=True,
            help="Only run tests from the specified projects (repeatable, default: all projects)",
        ),
        click.option(
            "--timeout",
            help=(
                "Test timeout threshold in milliseconds, zero for unlimited "
                f"(default: {DEFAULT_TIMEOUT_MS})"
            ),
        ),
        click.option(
            "--trace",
            help="Force tracing mode, can be " + ", ".join(f'"{m}"' for m in TRACE_MODES),
        ),
        click.option(
            "-u",
            "--update-snapshots",
            is_flag=True,
            help="Update snapshots with actual results (default: only create missing snapshots)",
        ),
        click.option("-x", "x", is_flag=True, help="Stop after the first failure"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


TEST_EPILOG = """\b
Arguments [TEST_FILTER]...:
  Each argument is treated as a regular expression matched against test
  files, optionally followed by :line or :line:column.

\b
Examples:
  $ pwtest {prefix}test my.spec.ts
  $ pwtest {prefix}test some.spec.ts:42
  $ pwtest {prefix}test --headed
  $ pwtest {prefix}test --browser=webkit
"""


@cli.command("test", epilog=TEST_EPILOG.format(prefix=""))
@test_options
@click.pass_context
def test_command(ctx: click.Context, test_filter: tuple[str, ...], **options: Any) -> None:
    """Run tests."""
    config = ctx.obj["config"]
    run_to_exit_code(
        lambda: asyncio.run(run_tests(test_filter, options, runner_name=config.runner))
    )


@cli.command("list-files", hidden=True)
@click.option(
    "-c",
    "--config",
    help=f"Configuration file, or a test directory with optional {_CONFIG_FILES_HELP}",
)
@click.option("--project", multiple=True, help="Only list files from the specified projects")
@click.pass_context
def list_files_command(ctx: click.Context, **options: Any) -> None:
    """List files with tests."""
    config = ctx.obj["config"]
    run_to_exit_code(lambda: asyncio.run(list_test_files(options, runner_name=config.runner)))


@cli.command("config")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def config_command(ctx: click.Context, json_output: bool) -> None:
    """Show CLI settings and where each value comes from."""
    config = ctx.obj["config"]
    if json_output:
        data = {
            key: {"value": getattr(config, key), "source": config.get_source(key)}
            for key in CONFIG_KEYS
        }
        click.echo(json.dumps(data, indent=2))
    else:
        print_cli_config(config, get_config_path())


@cli.group()
@click.pass_context
def docker(ctx: click.Context) -> None:
    """Run tests with browsers inside a docker container (experimental)."""
    ctx.obj["orchestrator"] = ContainerOrchestrator(config=ctx.obj["config"])


@docker.command("build")
@click.pass_context
def docker_build(ctx: click.Context) -> None:
    """Build the local browser image."""
    orchestrator: ContainerOrchestrator = ctx.obj["orchestrator"]
    click.echo(f"Building image {orchestrator.config.docker_image}...")
    msg = run_guarded(orchestrator.build_image)
    click.echo(f"✓ {msg}")


@docker.command("start")
@click.pass_context
def docker_start(ctx: click.Context) -> None:
    """Start the browser container."""
    orchestrator: ContainerOrchestrator = ctx.obj["orchestrator"]

    async def _start() -> Any:
        orchestrator.ensure_engine_running_or_die()
        return await orchestrator.ensure_container()

    result = run_guarded(lambda: asyncio.run(_start()))
    print_container_ready(result)


@docker.command("stop")
@click.pass_context
def docker_stop(ctx: click.Context) -> None:
    """Stop the browser container."""
    orchestrator: ContainerOrchestrator = ctx.obj["orchestrator"]
    msg = run_guarded(orchestrator.stop_container)
    click.echo(f"✓ {msg}")


@docker.command("delete-image", hidden=True)
@click.pass_context
def docker_delete_image(ctx: click.Context) -> None:
    """Delete the browser image, if any."""
    orchestrator: ContainerOrchestrator = ctx.obj["orchestrator"]
    msg = run_guarded(orchestrator.delete_image)
    click.echo(f"✓ {msg}")


@docker.command("test", epilog=TEST_EPILOG.format(prefix="docker "))
@test_options
@click.pass_context
def docker_test(ctx: click.Context, test_filter: tuple[str, ...], **options: Any) -> None:
    """Run tests with browsers inside the docker container."""
    config = ctx.obj["config"]
    orchestrator: ContainerOrchestrator = ctx.obj["orchestrator"]

    async def _docker_test() -> int:
        if os.environ.get(RESPAWNED_ENV):
            # The parent process already set up the container
            connection = ContainerConnection.from_env(os.environ)
        else:
            dim("Using docker container to run browsers.")
            connection, result = await orchestrator.ensure_connection()
            print_test_container_status(result)
        return await run_tests(
            test_filter, options, connection=connection, runner_name=config.runner
        )

    run_to_exit_code(lambda: asyncio.run(_docker_test()))


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
