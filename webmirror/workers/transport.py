"""Throttled async HTTP transport.

Every request issued by the mirroring pipeline (page and asset alike) goes
through a :class:`ThrottledTransport`, which wraps one long-lived
``httpx.AsyncClient`` with a bounded-concurrency gate and a total
per-request timeout.  There is no retry logic: a failed attempt is raised to
the caller as-is.

A single shared transport for the API process is managed by the module; see
``get_transport`` and ``close_transport`` for lifecycle hooks.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from webmirror.core.config import settings
from webmirror.core.errors import InvalidURLError, TransportError

logger = logging.getLogger(__name__)


class ThrottledTransport:
    """HTTP client that limits the number of concurrent in-flight requests.

    ``max_concurrency`` of 0 means unlimited.  Otherwise callers wait on an
    ``asyncio.Semaphore`` for a free slot; cancelling the waiting task aborts
    the call before any request is issued.  The slot is released however the
    request ends.

    ``timeout`` bounds the whole request (connect, send, and reading the
    body) and does not include the time spent waiting for a slot.
    """

    def __init__(
        self,
        max_concurrency: int = 0,
        timeout: float = 15.0,
        *,
        client: Optional[httpx.AsyncClient] = None,
        verify: bool = True,
        user_agent: str = "WebMirrorBot/1.0",
    ) -> None:
        if max_concurrency < 0:
            raise ValueError("max_concurrency must be >= 0")
        self.max_concurrency = max_concurrency
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            verify=verify,
            headers={"User-Agent": user_agent},
        )
        self._gate: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(max_concurrency) if max_concurrency > 0 else None
        )

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def get(self, url: str) -> httpx.Response:
        """Build and send a GET request for *url*."""
        try:
            request = self._client.build_request("GET", url)
        except httpx.InvalidURL as exc:
            raise InvalidURLError(f"invalid URL {url!r}: {exc}") from exc
        return await self.send(request)

    async def send(self, request: httpx.Request) -> httpx.Response:
        """Send *request* once the concurrency gate admits it."""
        if self._gate is None:
            return await self._send(request)
        async with self._gate:
            return await self._send(request)

    async def _send(self, request: httpx.Request) -> httpx.Response:
        try:
            return await asyncio.wait_for(self._client.send(request), self.timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError(
                f"request to {request.url} timed out after {self.timeout}s"
            ) from exc
        except httpx.InvalidURL as exc:
            raise InvalidURLError(f"invalid URL {request.url}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"request to {request.url} failed: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()


# Module-level shared transport
_transport: Optional[ThrottledTransport] = None


def get_transport() -> ThrottledTransport:
    """Return the shared transport.  Creates one if missing."""
    global _transport  # noqa: PLW0603
    if _transport is None or _transport.is_closed:
        _transport = ThrottledTransport(
            max_concurrency=settings.http_max_concurrency,
            timeout=settings.http_timeout,
            verify=settings.http_verify_ssl,
            user_agent=settings.http_user_agent,
        )
    return _transport


async def close_transport() -> None:
    """Close the shared transport gracefully."""
    global _transport  # noqa: PLW0603
    if _transport is not None and not _transport.is_closed:
        await _transport.aclose()
        _transport = None
        logger.info("HTTP transport closed.")
