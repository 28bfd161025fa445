"""CLI configuration management.

Handles persistent CLI configuration stored in ~/.pwtest/config.yaml.
Supports environment variable overrides.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .shared.paths import PWTEST_DIR

# Default values
DEFAULT_DOCKER_IMAGE = "pwtest-browsers:local"
DEFAULT_BASE_IMAGE = "mcr.microsoft.com/playwright:focal"
DEFAULT_CONTAINER_NAME = "pwtest-browsers"
DEFAULT_WS_PORT = 5400
DEFAULT_VNC_PORT = 7900
DEFAULT_LOG_LEVEL = "warning"
DEFAULT_RUNNER = "default"

# Environment variable mappings
ENV_VARS = {
    "docker_image": "PWTEST_DOCKER_IMAGE",
    "base_image": "PWTEST_BASE_IMAGE",
    "container_name": "PWTEST_CONTAINER_NAME",
    "ws_port": "PWTEST_WS_PORT",
    "vnc_port": "PWTEST_VNC_PORT",
    "log_level": "PWTEST_LOG_LEVEL",
    "runner": "PWTEST_RUNNER",
}

CONFIG_KEYS = tuple(ENV_VARS)

_INT_KEYS = {"ws_port", "vnc_port"}


@dataclass
class CLIConfig:
    """CLI configuration."""

    docker_image: str = DEFAULT_DOCKER_IMAGE
    base_image: str = DEFAULT_BASE_IMAGE
    container_name: str = DEFAULT_CONTAINER_NAME
    ws_port: int = DEFAULT_WS_PORT
    vnc_port: int = DEFAULT_VNC_PORT
    log_level: str = DEFAULT_LOG_LEVEL
    runner: str = DEFAULT_RUNNER

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")


def get_config_path() -> Path:
    """Get the CLI config file path.

    Returns:
        Path to ~/.pwtest/config.yaml
    """
    return PWTEST_DIR / "config.yaml"


def load_config(environ: dict[str, str] | None = None) -> CLIConfig:
    """Load CLI configuration.

    Precedence (highest to lowest):
    1. Environment variables
    2. Config file (~/.pwtest/config.yaml)
    3. Defaults

    Unreadable config files and unparsable numbers are ignored and the
    lower-precedence value is kept.

    Returns:
        CLIConfig with values and sources
    """
    environ = os.environ if environ is None else environ
    config = CLIConfig()
    sources = {key: "default" for key in ENV_VARS}

    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            file_config = {}

        for key in ENV_VARS:
            if key in file_config:
                try:
                    value = int(file_config[key]) if key in _INT_KEYS else str(file_config[key])
                except (TypeError, ValueError):
                    continue
                setattr(config, key, value)
                sources[key] = "config file"

    for key, env_name in ENV_VARS.items():
        raw = environ.get(env_name)
        if not raw:
            continue
        if key in _INT_KEYS:
            try:
                setattr(config, key, int(raw))
            except ValueError:
                continue
        else:
            setattr(config, key, raw)
        sources[key] = "environment"

    config._sources = sources
    return config
