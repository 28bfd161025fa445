"""CLI output formatting helpers."""

from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import CONFIG_KEYS, CLIConfig
from .docker import ContainerInfo, ContainerStartResult

console = Console(highlight=False)


def dim(message: str, end: str = "\n") -> None:
    """Print secondary, progress-style output."""
    console.print(f"[dim]{message}[/dim]", end=end)


def print_container_ready(result: ContainerStartResult) -> None:
    """Print the outcome of `pwtest docker start`.

    Elapsed time is printed only when a container was actually created.
    """
    if result.created:
        console.print(f"Container started in {result.elapsed_seconds:.1f}s")
    print_container_info(result.info)


def print_container_info(info: ContainerInfo) -> None:
    console.print(
        "\n".join(
            [
                f"- VNC session: {info.vnc_session}",
                "- Run tests with browsers inside container:",
                "      pwtest docker test",
                "- Stop container *manually* when it is no longer needed:",
                "      pwtest docker stop",
            ]
        ),
        markup=False,
    )


def print_test_container_status(result: ContainerStartResult) -> None:
    """Print container status before a `pwtest docker test` run."""
    if result.created:
        dim(f"Started docker container in {result.elapsed_seconds:.1f}s")
        dim("The Docker container will keep running after tests finished.")
        dim("Stop manually using:")
        dim("    pwtest docker stop")
    dim(f"View screen: {result.info.vnc_session}")


def print_cli_config(config: CLIConfig, config_path: Path) -> None:
    """Print `pwtest config` as a table of value and source per key."""
    table = Table(title="pwtest CLI configuration", caption=f"Config file: {config_path}")
    table.add_column("Key")
    table.add_column("Value")
    table.add_column("Source", style="dim")
    for key in CONFIG_KEYS:
        table.add_row(key, str(getattr(config, key)), config.get_source(key))
    console.print(table)
