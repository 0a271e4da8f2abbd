"""Readiness polling for long-running workspace processes.

A frontend dev server that talks to a backend at runtime should not start
until the backend answers on its health endpoint.  ``ReadinessProbe`` polls
that endpoint with a bounded number of attempts and an explicit deadline, and
never waits forever.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass

import httpx

from monoforge.errors import ReadinessTimeoutError


@dataclass
class ReadinessResult:
    """Outcome of one readiness wait."""

    url: str
    ready: bool
    attempts: int
    elapsed: float
    last_error: str = ""


class ReadinessProbe:
    """Polls an HTTP endpoint until it answers ``200 OK`` or the budget runs out.

    Args:
        request_timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        request_timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.request_timeout = request_timeout
        self.transport = transport

    async def wait(self, url: str, timeout: float = 60.0, interval: float = 2.0) -> ReadinessResult:
        """Poll *url* until it is ready.

        At most ``ceil(timeout / interval)`` requests are made, and polling
        stops as soon as *timeout* seconds have elapsed.

        Returns:
            A ``ReadinessResult``; ``ready`` is ``False`` when the budget ran
            out.
        """
        max_attempts = max(1, math.ceil(timeout / interval))
        start = time.monotonic()
        deadline = start + timeout
        attempts = 0
        last_error = ""

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.request_timeout, connect=min(3.0, self.request_timeout)),
            transport=self.transport,
        ) as client:
            while attempts < max_attempts:
                attempts += 1
                try:
                    response = await client.get(url)
                    if response.status_code == 200:
                        return ReadinessResult(
                            url=url,
                            ready=True,
                            attempts=attempts,
                            elapsed=time.monotonic() - start,
                        )
                    last_error = f"HTTP {response.status_code}"
                except httpx.HTTPError as exc:
                    last_error = f"{type(exc).__name__}: {exc}"

                remaining = deadline - time.monotonic()
                if remaining <= 0 or attempts >= max_attempts:
                    break
                await asyncio.sleep(min(interval, remaining))

        return ReadinessResult(
            url=url,
            ready=False,
            attempts=attempts,
            elapsed=time.monotonic() - start,
            last_error=last_error,
        )

    async def require(self, url: str, timeout: float = 60.0, interval: float = 2.0) -> ReadinessResult:
        """Like :meth:`wait`, but raise when the endpoint never became ready.

        Raises:
            ReadinessTimeoutError: The endpoint did not answer ``200`` in time.
        """
        result = await self.wait(url, timeout=timeout, interval=interval)
        if not result.ready:
            raise ReadinessTimeoutError(url, timeout, result.attempts)
        return result
