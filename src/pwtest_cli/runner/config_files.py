"""Runner config file discovery."""

from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_FILES = (
    "playwright.config.ts",
    "playwright.config.js",
    "playwright.config.mjs",
)


def config_file_or_directory(config: str | None, cwd: Path | None = None) -> Path:
    """Absolute path of ``--config``, or the working directory when not given."""
    cwd = cwd or Path.cwd()
    return (cwd / config).resolve() if config else cwd


def resolve_config_file(config_file_or_dir: Path) -> Path | None:
    """Find the config file to load.

    A file is used as-is. A directory is searched for the default config
    file names, in order.

    Returns:
        Path to the config file, or None when the directory has none.
    """
    if config_file_or_dir.is_file():
        return config_file_or_dir
    if config_file_or_dir.is_dir():
        for name in DEFAULT_CONFIG_FILES:
            candidate = config_file_or_dir / name
            if candidate.is_file():
                return candidate
    return None
