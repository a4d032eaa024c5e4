"""Fixed-size pool of concurrent workers sharing one cancellation token."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from trafficgen._internal.errors import EngineError
from trafficgen._internal.logging import get_logger
from trafficgen.engine.cancellation import CancellationToken
from trafficgen.engine.protocol import JoinOutcome, JoinResult
from trafficgen.engine.worker import Worker
from trafficgen.metrics.aggregator import aggregate

if TYPE_CHECKING:
    from trafficgen._internal.config import WorkerConfig
    from trafficgen.metrics.models import AggregateStats, WorkerState

logger = get_logger("engine.pool")

# Bound on the wait for force-cancelled workers to unwind
_FORCE_CANCEL_TIMEOUT = 2.0


class WorkerPool:
    """Owns ``config.worker_count`` workers for the lifetime of one run.

    Workers run as asyncio tasks on the caller's event loop, so
    ``start()``, ``stats()`` and ``shutdown()`` must all be called from
    that loop. Pool size is fixed; a worker that exits is never replaced.

    Attributes:
        config: The worker configuration shared by every worker.
    """

    def __init__(
        self,
        config: WorkerConfig,
        *,
        token: CancellationToken | None = None,
    ) -> None:
        """Initialize the pool without spawning anything.

        Args:
            config: Worker configuration.
            token: Cancellation token to share with the workers. A fresh
                one is created when omitted.
        """
        self.config = config
        self._token = token or CancellationToken()
        self._workers: list[Worker] = []
        self._tasks: dict[asyncio.Task[WorkerState], Worker] = {}
        self._started_at: float | None = None
        self._stopped_at: float | None = None
        self._shutdown_task: asyncio.Task[JoinResult] | None = None

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def workers(self) -> list[Worker]:
        """Return the spawned workers in id order."""
        return list(self._workers)

    @property
    def started(self) -> bool:
        return self._started_at is not None

    @property
    def is_alive(self) -> bool:
        """Return True if any worker task is still running."""
        return any(not task.done() for task in self._tasks)

    def alive_workers(self) -> list[int]:
        """Return the ids of workers whose tasks have not finished."""
        return sorted(w.worker_id for t, w in self._tasks.items() if not t.done())

    def start(self) -> WorkerPool:
        """Spawn every worker.

        Returns:
            This pool, to allow ``pool = WorkerPool(cfg).start()``.

        Raises:
            EngineError: If the pool was already started or no event loop
                is running.
        """
        if self.started:
            msg = "worker pool already started"
            raise EngineError(msg)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            msg = "worker pool must be started from a running event loop"
            raise EngineError(msg) from None

        self._started_at = time.monotonic()
        for worker_id in range(self.config.worker_count):
            worker = Worker(worker_id, self.config, self._token)
            task = asyncio.create_task(worker.run(), name=f"trafficgen-worker-{worker_id}")
            self._workers.append(worker)
            self._tasks[task] = worker

        logger.info(
            "Started %d workers: target=%s, delay=%.4fs, timeout=%.1fs",
            self.config.worker_count,
            self.config.target,
            self.config.request_interval,
            self.config.request_timeout,
        )
        return self

    def stats(self) -> AggregateStats:
        """Sum the current counters of every worker.

        Safe to call while workers run. Each call snapshots every worker
        anew, so counts never decrease between calls.
        """
        if self._started_at is None:
            elapsed = 0.0
        else:
            end = self._stopped_at if self._stopped_at is not None else time.monotonic()
            elapsed = end - self._started_at
        return aggregate(
            (w.state.snapshot() for w in self._workers),
            elapsed_seconds=elapsed,
        )

    async def shutdown(self, timeout: float) -> JoinResult:
        """Cancel the token and wait up to ``timeout`` seconds for workers.

        Workers still running after ``timeout`` are force-cancelled and
        reported as ``TIMED_OUT``. Calling this again returns the first
        call's result without repeating any work.

        Args:
            timeout: Grace period in seconds; 0 does not wait at all.

        Returns:
            The join outcome.
        """
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.create_task(
                self._join(max(timeout, 0.0)), name="trafficgen-pool-shutdown"
            )
        return await asyncio.shield(self._shutdown_task)

    async def _join(self, timeout: float) -> JoinResult:
        start = time.monotonic()
        if self._token.cancel("pool shutdown"):
            logger.info("Cancellation requested, waiting up to %.1fs for workers", timeout)

        if not self._tasks:
            self._stopped_at = time.monotonic()
            return JoinResult(outcome=JoinOutcome.CLEAN)

        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        self._stopped_at = time.monotonic()

        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    "Worker %d crashed",
                    self._tasks[task].worker_id,
                    exc_info=task.exception(),
                )

        if not pending:
            result = JoinResult(
                outcome=JoinOutcome.CLEAN,
                elapsed_seconds=time.monotonic() - start,
            )
            logger.info("All %d workers stopped in %.2fs", len(done), result.elapsed_seconds)
            return result

        stuck = tuple(sorted(self._tasks[t].worker_id for t in pending))
        logger.warning(
            "%d worker(s) did not exit within %.1fs, force-cancelling: %s",
            len(stuck),
            timeout,
            ", ".join(str(i) for i in stuck),
        )
        for task in pending:
            task.cancel()
        await asyncio.wait(pending, timeout=_FORCE_CANCEL_TIMEOUT)
        for task in pending:
            self._tasks[task].state.mark_stopped()

        return JoinResult(
            outcome=JoinOutcome.TIMED_OUT,
            timed_out_workers=stuck,
            elapsed_seconds=time.monotonic() - start,
        )


def start_pool(config: WorkerConfig, *, token: CancellationToken | None = None) -> WorkerPool:
    """Create a pool for ``config`` and spawn its workers."""
    return WorkerPool(config, token=token).start()
