"""A single request loop: send, record, wait, repeat until cancelled."""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING

from trafficgen._internal.config import SuccessPolicy
from trafficgen._internal.logging import get_logger
from trafficgen.http_client import HttpClient, RequestMetric
from trafficgen.metrics.models import WorkerState

if TYPE_CHECKING:
    from trafficgen._internal.config import WorkerConfig
    from trafficgen.engine.cancellation import CancellationToken

logger = get_logger("engine.worker")


def is_success(metric: RequestMetric, policy: SuccessPolicy) -> bool:
    """Classify a finished request under ``policy``.

    Transport failures are always failures. Under ``ANY_RESPONSE`` every
    HTTP response counts as a success; under ``STATUS`` a status of 400 or
    above does not.
    """
    if not metric.completed:
        return False
    if policy is SuccessPolicy.STATUS:
        return metric.status_code < 400
    return True


class Worker:
    """Issues GET requests to one target until the shared token is cancelled.

    The loop checks the token before every request, abandons an in-flight
    request as soon as the token is cancelled, and waits out the
    inter-request delay interruptibly. Request failures are recorded in
    ``state`` and never raised.

    Attributes:
        worker_id: Position of this worker in its pool.
        state: Counters owned by this worker.
    """

    def __init__(
        self,
        worker_id: int,
        config: WorkerConfig,
        token: CancellationToken,
    ) -> None:
        self.worker_id = worker_id
        self.state = WorkerState(worker_id=worker_id)
        self._config = config
        self._token = token
        self._log_extra = {"worker_id": worker_id}

    async def run(self) -> WorkerState:
        """Run the request loop until cancellation.

        Returns:
            The final counters.
        """
        self.state.started_at = time.monotonic()
        logger.debug("Worker started, target=%s", self._config.target, extra=self._log_extra)
        try:
            async with HttpClient(
                self._config.target,
                timeout=self._config.request_timeout,
                worker_id=self.worker_id,
            ) as client:
                while not self._token.cancelled:
                    metric = await self._send_unless_cancelled(client)
                    if metric is None:
                        break
                    self._record(metric)
                    if await self._token.sleep(self._config.request_interval):
                        break
        except asyncio.CancelledError:
            logger.debug("Worker force-cancelled", extra=self._log_extra)
            raise
        finally:
            self.state.mark_stopped()

        logger.debug(
            "Worker exited: sent=%d, succeeded=%d, failed=%d",
            self.state.sent,
            self.state.succeeded,
            self.state.failed,
            extra=self._log_extra,
        )
        return self.state

    async def _send_unless_cancelled(self, client: HttpClient) -> RequestMetric | None:
        """Send one request, racing it against the cancellation token.

        Returns:
            The request outcome, or None if the token was cancelled first
            and the request was abandoned.
        """
        request = asyncio.create_task(
            self._send(client), name=f"trafficgen-worker-{self.worker_id}-request"
        )
        stopper = asyncio.create_task(
            self._token.wait(), name=f"trafficgen-worker-{self.worker_id}-stopper"
        )
        try:
            await asyncio.wait({request, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
            if not request.done():
                request.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await request

        if request.cancelled():
            return None
        return request.result()

    async def _send(self, client: HttpClient) -> RequestMetric:
        start = time.monotonic()
        try:
            return await client.get()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.debug("Unexpected request failure", exc_info=True, extra=self._log_extra)
            return RequestMetric(
                timestamp=start,
                url=client.url,
                status_code=0,
                latency_ms=(time.monotonic() - start) * 1000,
                error=f"{type(exc).__name__}: {exc}",
                error_type=type(exc).__name__,
                worker_id=self.worker_id,
            )

    def _record(self, metric: RequestMetric) -> None:
        success = is_success(metric, self._config.success_policy)
        self.state.record(metric, success=success)
        if metric.completed:
            logger.debug(
                "Request sent: status=%d, latency=%.1fms",
                metric.status_code,
                metric.latency_ms,
                extra=self._log_extra,
            )
        else:
            logger.debug("Request failed: %s", metric.error, extra=self._log_extra)
