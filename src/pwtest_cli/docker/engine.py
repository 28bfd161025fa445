"""Docker CLI primitives for the browser container.

Thin wrappers over the ``docker`` executable. They never raise for docker
failures; they report them through their return values and leave the
decision to the orchestrator.
"""

from __future__ import annotations

import json
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ..config import CLIConfig

CONTAINER_LABEL = "dev.pwtest.browsers"

DOCKERFILE_TEMPLATE = """\
FROM {base_image}
LABEL {label}=1
EXPOSE {ws_port} {vnc_port}
CMD ["npx", "-y", "playwright", "run-server", "--port", "{ws_port}", "--host", "0.0.0.0"]
"""


@dataclass
class DockerInfo:
    """Docker engine detection result."""

    docker_available: bool
    docker_version: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ContainerInfo:
    """Connection details of a running browser container."""

    vnc_session: str
    ws_endpoint: str


class DockerEngine:
    """Run docker commands for one image/container pair."""

    def __init__(self, config: CLIConfig | None = None):
        """Initialize engine wrapper.

        Args:
            config: CLI configuration naming the image, container and ports.
        """
        self.config = config or CLIConfig()

    def detect(self) -> DockerInfo:
        """Check that docker is installed and the daemon answers."""
        if not shutil.which("docker"):
            return DockerInfo(
                docker_available=False,
                error="Docker not found. Install Docker: https://docs.docker.com/get-docker/",
            )

        try:
            result = subprocess.run(
                ["docker", "version", "--format", "{{.Server.Version}}"],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except subprocess.TimeoutExpired:
            return DockerInfo(docker_available=False, error="Docker not responding (timeout)")

        if result.returncode != 0:
            return DockerInfo(
                docker_available=False,
                error=f"Docker not responding: {result.stderr.strip()}",
            )
        return DockerInfo(docker_available=True, docker_version=result.stdout.strip())

    def image_exists(self) -> bool:
        """Check whether the browser image has been built locally."""
        result = subprocess.run(
            ["docker", "image", "inspect", self.config.docker_image],
            capture_output=True,
            text=True,
        )
        return result.returncode == 0

    def build_image(self) -> tuple[bool, str]:
        """Build the browser image from the configured base image.

        Returns:
            Tuple of (success, message).
        """
        dockerfile = DOCKERFILE_TEMPLATE.format(
            base_image=self.config.base_image,
            label=CONTAINER_LABEL,
            ws_port=self.config.ws_port,
            vnc_port=self.config.vnc_port,
        )
        with tempfile.TemporaryDirectory(prefix="pwtest-docker-") as build_dir:
            (Path(build_dir) / "Dockerfile").write_text(dockerfile)
            try:
                result = subprocess.run(
                    ["docker", "build", "-t", self.config.docker_image, build_dir],
                    capture_output=True,
                    text=True,
                )
            except FileNotFoundError:
                return False, "Docker not found. Is Docker installed?"

        if result.returncode != 0:
            return False, f"Failed to build image: {result.stderr.strip()}"
        return True, f"Built image {self.config.docker_image}"

    def delete_image(self) -> tuple[bool, str]:
        """Remove the browser image. Missing image is not an error."""
        if not self.image_exists():
            return True, "No image to delete"

        result = subprocess.run(
            ["docker", "image", "rm", "--force", self.config.docker_image],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            return False, f"Failed to delete image: {result.stderr.strip()}"
        return True, f"Deleted image {self.config.docker_image}"

    def container_info(self) -> ContainerInfo | None:
        """Inspect the container.

        Returns:
            ContainerInfo if the container is running with published ports,
            None otherwise.
        """
        result = subprocess.run(
            ["docker", "container", "inspect", self.config.container_name],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            return None

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError:
            return None
        if not data:
            return None

        container = data[0]
        if not container.get("State", {}).get("Running"):
            return None

        ports = container.get("NetworkSettings", {}).get("Ports") or {}
        ws_port = _host_port(ports, self.config.ws_port)
        vnc_port = _host_port(ports, self.config.vnc_port)
        if ws_port is None or vnc_port is None:
            return None

        return ContainerInfo(
            vnc_session=f"http://127.0.0.1:{vnc_port}/",
            ws_endpoint=f"ws://127.0.0.1:{ws_port}/",
        )

    def start_container(self) -> tuple[bool, str]:
        """Start the container with ports published on localhost.

        Returns:
            Tuple of (success, message).
        """
        args = [
            "docker",
            "run",
            "--detach",
            "--rm",
            "--name",
            self.config.container_name,
            "--label",
            f"{CONTAINER_LABEL}=1",
            "--publish",
            f"127.0.0.1::{self.config.ws_port}",
            "--publish",
            f"127.0.0.1::{self.config.vnc_port}",
            "--add-host",
            "host.docker.internal:host-gateway",
            self.config.docker_image,
        ]
        result = subprocess.run(args, capture_output=True, text=True)
        if result.returncode != 0:
            return False, f"Failed to start container: {result.stderr.strip()}"
        return True, result.stdout.strip()

    def stop_container(self) -> tuple[bool, str]:
        """Stop (and thereby remove) the container. Missing container is not an error."""
        exists = subprocess.run(
            ["docker", "container", "inspect", self.config.container_name],
            capture_output=True,
            text=True,
        )
        if exists.returncode != 0:
            return True, "No container to stop"

        result = subprocess.run(
            ["docker", "rm", "--force", self.config.container_name],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            return False, f"Failed to stop container: {result.stderr.strip()}"
        return True, f"Stopped container {self.config.container_name}"


def _host_port(ports: dict, container_port: int) -> str | None:
    bindings = ports.get(f"{container_port}/tcp") or []
    for binding in bindings:
        if binding.get("HostPort"):
            return binding["HostPort"]
    return None
