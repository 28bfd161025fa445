"""Logging configuration for pwtest-cli.

Configures structlog on top of standard logging. Diagnostics go to stderr so
they never mix with test output on stdout.
"""

import logging
import sys

import structlog

VERBOSITY_LEVELS = ["warning", "info", "debug"]


def level_for_verbosity(base: str, verbose: int) -> str:
    """Raise ``base`` by ``verbose`` steps (``-v`` -> info, ``-vv`` -> debug)."""
    if verbose <= 0:
        return base
    start = VERBOSITY_LEVELS.index(base) if base in VERBOSITY_LEVELS else 0
    return VERBOSITY_LEVELS[min(start + verbose, len(VERBOSITY_LEVELS) - 1)]


def configure_logging(level: str = "warning", json_output: bool = False) -> None:
    """Configure logging for the application.

    Called once on startup. Configures both standard logging and structlog.

    Args:
        level: Log level (debug, info, warning, error, critical)
        json_output: If True, render JSON lines instead of console output
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)

    logging.basicConfig(
        level=log_level,
        handlers=[handler],
        format="%(message)s",
        force=True,
    )

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
