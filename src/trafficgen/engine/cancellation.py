"""One-shot cancellation token shared by every worker in a pool."""

from __future__ import annotations

import asyncio
import contextlib


class CancellationToken:
    """Signal that moves once from active to cancelled and never back.

    The pool creates one token and hands the same instance to every
    worker. Workers observe it before each request, while a request is in
    flight, and during the inter-request wait.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Why the token was cancelled, as given to the first ``cancel()``."""
        return self._reason

    def cancel(self, reason: str = "cancelled") -> bool:
        """Cancel the token.

        Returns:
            True for the call that performed the transition, False if the
            token was already cancelled.
        """
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    async def sleep(self, delay: float) -> bool:
        """Sleep up to ``delay`` seconds, waking early on cancellation.

        Returns:
            True if the token is cancelled when the call returns.
        """
        if not self._event.is_set() and delay > 0:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._event.wait(), timeout=delay)
        return self._event.is_set()
