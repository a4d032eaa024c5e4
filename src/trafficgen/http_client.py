"""Timed GET client that reports transport failures instead of raising them."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import aiohttp

if TYPE_CHECKING:
    from trafficgen._internal.config import Target


def _describe(exc: BaseException) -> str:
    # Timeouts carry no message
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


@dataclass(frozen=True)
class RequestMetric:
    """Outcome of a single GET request.

    Attributes:
        timestamp: Monotonic time the request started.
        url: Full request URL.
        status_code: HTTP status, 0 when no response was received.
        latency_ms: Time until the body was fully read, or until failure.
        content_length: Bytes of response body read and discarded.
        error: ``"<Type>: <message>"`` for transport failures, else None.
        error_type: Exception class name for transport failures, else None.
        worker_id: Worker that issued the request.
    """

    timestamp: float
    url: str
    status_code: int
    latency_ms: float
    content_length: int = 0
    error: str | None = None
    error_type: str | None = None
    worker_id: int = 0

    @property
    def completed(self) -> bool:
        """True when an HTTP response arrived, whatever its status."""
        return self.error is None


class HttpClient:
    """Async GET client wrapping one ``aiohttp.ClientSession``.

    Use as an async context manager. ``get()`` always returns a
    ``RequestMetric``: timeouts, refused connections, DNS failures and other
    client errors are captured in ``RequestMetric.error`` rather than
    raised. ``asyncio.CancelledError`` still propagates so callers can
    abandon an in-flight request.

    Attributes:
        url: The URL every request is sent to.
    """

    def __init__(
        self,
        target: Target,
        *,
        timeout: float,
        worker_id: int = 0,
    ) -> None:
        self.url = target.url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._worker_id = worker_id
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get(self) -> RequestMetric:
        """Send one GET, read and discard the body, and time it.

        Returns:
            The request outcome.

        Raises:
            RuntimeError: If used outside of ``async with``.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        start = time.monotonic()
        try:
            async with self._session.get(self.url, allow_redirects=False) as resp:
                body = await resp.read()
        except (aiohttp.ClientError, TimeoutError, OSError) as exc:
            return RequestMetric(
                timestamp=start,
                url=self.url,
                status_code=0,
                latency_ms=(time.monotonic() - start) * 1000,
                error=_describe(exc),
                error_type=type(exc).__name__,
                worker_id=self._worker_id,
            )

        return RequestMetric(
            timestamp=start,
            url=self.url,
            status_code=resp.status,
            latency_ms=(time.monotonic() - start) * 1000,
            content_length=len(body),
            worker_id=self._worker_id,
        )
