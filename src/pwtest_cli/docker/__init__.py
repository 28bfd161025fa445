"""Docker support for running browsers inside a container.

This package provides:
1. Docker CLI primitives for the browser image and container
2. Readiness polling of the container's browser server
3. The lifecycle orchestrator used by `pwtest docker ...`
"""

from .engine import ContainerInfo, DockerEngine, DockerInfo
from .health import ReadinessPoller, ReadinessResult, http_url_for
from .orchestrator import (
    PROXY_HEADERS,
    SNAPSHOT_SUFFIX,
    ContainerConnection,
    ContainerOrchestrator,
    ContainerStartResult,
)

__all__ = [
    # Engine primitives
    "DockerEngine",
    "DockerInfo",
    "ContainerInfo",
    # Readiness
    "ReadinessPoller",
    "ReadinessResult",
    "http_url_for",
    # Orchestration
    "ContainerOrchestrator",
    "ContainerConnection",
    "ContainerStartResult",
    "PROXY_HEADERS",
    "SNAPSHOT_SUFFIX",
]
