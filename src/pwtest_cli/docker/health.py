"""Readiness polling for the browser container.

The container is usable once its browser server accepts connections on the
published websocket port.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import httpx


@dataclass
class ReadinessResult:
    """Result of readiness polling."""

    ready: bool
    attempts: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None


def http_url_for(ws_endpoint: str) -> str:
    """Map ``ws://host:port/`` to the ``http://`` URL of the same server."""
    if ws_endpoint.startswith("wss://"):
        return "https://" + ws_endpoint[len("wss://") :]
    if ws_endpoint.startswith("ws://"):
        return "http://" + ws_endpoint[len("ws://") :]
    return ws_endpoint


class ReadinessPoller:
    """Poll the container's browser server until it answers."""

    def __init__(
        self,
        max_attempts: int = 60,
        interval_seconds: float = 0.5,
        timeout_seconds: float = 2.0,
    ):
        """Initialize readiness poller.

        Args:
            max_attempts: Maximum number of connection attempts.
            interval_seconds: Seconds between attempts.
            timeout_seconds: Timeout for each HTTP request.
        """
        self.max_attempts = max_attempts
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds

    async def wait_until_ready(
        self,
        ws_endpoint: str,
        on_attempt: Callable[[int, int, str | None], None] | None = None,
    ) -> ReadinessResult:
        """Poll until the server answers any HTTP request or attempts run out.

        Any HTTP status counts as ready: the server speaks websocket only and
        rejects plain requests, but answering at all means it is listening.
        """
        url = http_url_for(ws_endpoint)
        start = datetime.now()
        last_error: str | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    await client.get(url)
                elapsed = (datetime.now() - start).total_seconds()
                return ReadinessResult(ready=True, attempts=attempt, elapsed_seconds=elapsed)
            except httpx.ConnectError:
                last_error = "Connection refused"
            except httpx.TimeoutException:
                last_error = "Request timeout"
            except httpx.HTTPError as e:
                last_error = str(e)

            if on_attempt:
                on_attempt(attempt, self.max_attempts, last_error)

            if attempt < self.max_attempts:
                await asyncio.sleep(self.interval_seconds)

        elapsed = (datetime.now() - start).total_seconds()
        return ReadinessResult(
            ready=False,
            attempts=self.max_attempts,
            elapsed_seconds=elapsed,
            error=f"Browser server did not become ready. Last error: {last_error}",
        )
