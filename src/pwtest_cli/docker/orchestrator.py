"""Browser container lifecycle.

Makes sure the docker engine is reachable and exactly one browser container
is running before a container-mode test run, and derives the connection
settings the runner needs.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from pathlib import Path

from filelock import AsyncFileLock

from ..config import CLIConfig
from ..errors import ContainerOperationError, ContainerStartError, EngineUnavailableError
from ..shared.logging import get_logger
from ..shared.paths import LOCK_DIR
from .engine import ContainerInfo, DockerEngine, DockerInfo
from .health import ReadinessPoller

logger = get_logger(__name__)

SNAPSHOT_SUFFIX = "docker"
PROXY_HEADERS = {"x-playwright-proxy": "*"}


@dataclass(frozen=True)
class ContainerConnection:
    """Settings that route the runner's browsers through the container."""

    ws_endpoint: str
    vnc_session: str = ""
    headers: dict[str, str] = field(default_factory=lambda: dict(PROXY_HEADERS))
    snapshot_suffix: str = SNAPSHOT_SUFFIX

    @classmethod
    def from_info(cls, info: ContainerInfo) -> ContainerConnection:
        return cls(ws_endpoint=info.ws_endpoint, vnc_session=info.vnc_session)

    @classmethod
    def from_env(cls, environ: dict[str, str]) -> ContainerConnection | None:
        """Rebuild a connection handed down to a respawned process."""
        endpoint = environ.get("PW_TEST_CONNECT_WS_ENDPOINT")
        if not endpoint:
            return None
        headers = json.loads(environ.get("PW_TEST_CONNECT_HEADERS") or "{}")
        return cls(
            ws_endpoint=endpoint,
            headers=headers,
            snapshot_suffix=environ.get("PW_TEST_SNAPSHOT_SUFFIX", SNAPSHOT_SUFFIX),
        )

    def to_env(self) -> dict[str, str]:
        return {
            "PW_TEST_CONNECT_WS_ENDPOINT": self.ws_endpoint,
            "PW_TEST_CONNECT_HEADERS": json.dumps(self.headers),
            "PW_TEST_SNAPSHOT_SUFFIX": self.snapshot_suffix,
        }


@dataclass
class ContainerStartResult:
    """Outcome of making sure the container runs."""

    info: ContainerInfo
    created: bool = False
    elapsed_seconds: float = 0.0


class ContainerOrchestrator:
    """Drive the docker engine through the container lifecycle.

    Every public operation raises a PwtestError subclass on failure; there is
    no partially started state to recover from.
    """

    def __init__(
        self,
        engine: DockerEngine | None = None,
        config: CLIConfig | None = None,
        poller: ReadinessPoller | None = None,
        lock_dir: Path | None = None,
    ):
        """Initialize orchestrator.

        Args:
            engine: Docker primitives (default: DockerEngine for ``config``)
            config: CLI configuration
            poller: Readiness poller used after starting a container
            lock_dir: Directory holding the container creation lock
        """
        self.config = config or CLIConfig()
        self.engine = engine or DockerEngine(self.config)
        self.poller = poller or ReadinessPoller()
        self.lock_dir = lock_dir or LOCK_DIR

    def ensure_engine_running_or_die(self) -> DockerInfo:
        """Fail unless the docker daemon answers."""
        info = self.engine.detect()
        if not info.docker_available:
            logger.error("docker engine unavailable", error=info.error)
            raise EngineUnavailableError(
                message=f"Docker engine is not running: {info.error}",
                data={"error": info.error},
            )
        logger.debug("docker engine available", version=info.docker_version)
        return info

    def query_container(self) -> ContainerInfo | None:
        """Return the running container, if any. Never cached."""
        return self.engine.container_info()

    async def ensure_container_or_die(self) -> ContainerInfo:
        """Start the container and wait until its browser server answers."""
        if not self.engine.image_exists():
            raise ContainerStartError(
                message=(
                    f"Docker image {self.config.docker_image} is not installed. "
                    "Build it first with:\n    pwtest docker build"
                ),
                data={"image": self.config.docker_image},
            )

        success, msg = self.engine.start_container()
        if not success:
            raise ContainerStartError(message=msg, data={"container": self.config.container_name})

        info = self.engine.container_info()
        if info is None:
            self._discard_container()
            raise ContainerStartError(
                message=f"Container {self.config.container_name} exited right after start",
                data={"container": self.config.container_name},
            )

        try:
            readiness = await self.poller.wait_until_ready(info.ws_endpoint)
        except (Exception, asyncio.CancelledError):
            self._discard_container()
            raise
        if not readiness.ready:
            self._discard_container()
            raise ContainerStartError(
                message=readiness.error or "Browser server did not become ready",
                data={"ws_endpoint": info.ws_endpoint, "attempts": readiness.attempts},
            )
        logger.info("container ready", ws_endpoint=info.ws_endpoint, attempts=readiness.attempts)
        return info

    def _discard_container(self) -> None:
        """Remove a container that was started but never became usable."""
        success, msg = self.engine.stop_container()
        if not success:
            logger.warning("failed to remove unusable container", error=msg)

    async def ensure_container(self) -> ContainerStartResult:
        """Reuse the running container or create one.

        The query and the create run under a file lock named after the
        container so that concurrent invocations start it at most once.
        """
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        lock = AsyncFileLock(str(self.lock_dir / f"{self.config.container_name}.lock"))
        async with lock:
            info = self.query_container()
            if info is not None:
                logger.debug("reusing container", ws_endpoint=info.ws_endpoint)
                return ContainerStartResult(info=info)

            start = time.monotonic()
            info = await self.ensure_container_or_die()
            elapsed = time.monotonic() - start
        return ContainerStartResult(info=info, created=True, elapsed_seconds=elapsed)

    async def ensure_connection(self) -> tuple[ContainerConnection, ContainerStartResult]:
        """Engine check, container check/start, then connection settings."""
        self.ensure_engine_running_or_die()
        result = await self.ensure_container()
        return ContainerConnection.from_info(result.info), result

    def build_image(self) -> str:
        self.ensure_engine_running_or_die()
        success, msg = self.engine.build_image()
        if not success:
            raise ContainerOperationError(message=msg, data={"image": self.config.docker_image})
        return msg

    def stop_container(self) -> str:
        self.ensure_engine_running_or_die()
        success, msg = self.engine.stop_container()
        if not success:
            raise ContainerOperationError(
                message=msg, data={"container": self.config.container_name}
            )
        return msg

    def delete_image(self) -> str:
        self.ensure_engine_running_or_die()
        success, msg = self.engine.delete_image()
        if not success:
            raise ContainerOperationError(message=msg, data={"image": self.config.docker_image})
        return msg
