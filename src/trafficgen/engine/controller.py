"""Run lifecycle: start the pool, wait for a stop request, join, report."""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from trafficgen._internal.errors import EngineError, TrafficGenError
from trafficgen._internal.logging import get_logger
from trafficgen.engine.pool import WorkerPool
from trafficgen.engine.protocol import JoinOutcome

if TYPE_CHECKING:
    from collections.abc import Callable

    from trafficgen._internal.config import GeneratorConfig
    from trafficgen.engine.protocol import JoinResult
    from trafficgen.metrics.models import AggregateStats

logger = get_logger("engine.controller")

EXIT_CLEAN = 0
EXIT_START_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_TIMED_OUT = 3

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ControllerState(Enum):
    """Lifecycle states.

    CREATED -> RUNNING -> STOPPING -> STOPPED
    """

    CREATED = auto()
    RUNNING = auto()
    STOPPING = auto()
    STOPPED = auto()


@dataclass(frozen=True)
class RunReport:
    """Everything known once a run reaches STOPPED.

    Attributes:
        stats: Final aggregate statistics.
        join: Outcome of the pool shutdown.
        stop_reason: What ended the run (signal name, ``duration``, ...).
    """

    stats: AggregateStats
    join: JoinResult
    stop_reason: str

    @property
    def exit_code(self) -> int:
        return EXIT_CLEAN if self.join.outcome is JoinOutcome.CLEAN else EXIT_TIMED_OUT


class LifecycleController:
    """Drives one run of the generator through its state machine.

    The first stop request, whether from SIGINT/SIGTERM, the optional
    duration limit, or a direct ``request_stop()`` call, moves the run
    from RUNNING to STOPPING and triggers a pool shutdown bounded by the
    grace period. Later stop requests are logged and ignored; the grace
    period already bounds how long STOPPING can last.

    Attributes:
        config: The run configuration.
    """

    def __init__(
        self,
        config: GeneratorConfig,
        *,
        on_stats: Callable[[AggregateStats], None] | None = None,
        install_signal_handlers: bool = True,
    ) -> None:
        """Initialize the controller.

        Args:
            config: Validated run configuration.
            on_stats: Optional callback invoked with live statistics every
                ``config.report_interval`` seconds while RUNNING.
            install_signal_handlers: Route SIGINT/SIGTERM to
                ``request_stop``. Disable when embedding the controller in
                a loop that is not on the main thread.
        """
        self.config = config
        self._on_stats = on_stats
        self._install_signals = install_signal_handlers
        self._state = ControllerState.CREATED
        self._stop_reason: str | None = None
        self._stop_event: asyncio.Event | None = None
        self._pool: WorkerPool | None = None
        self._installed_signals: list[signal.Signals] = []

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def pool(self) -> WorkerPool | None:
        return self._pool

    def request_stop(self, reason: str = "stop requested") -> bool:
        """Ask the run to stop.

        Returns:
            True if this call moved the run to STOPPING, False if it was
            ignored because the run is not RUNNING.
        """
        if self._state is not ControllerState.RUNNING:
            logger.warning(
                "Stop request (%s) ignored in state %s", reason, self._state.name
            )
            return False

        self._state = ControllerState.STOPPING
        self._stop_reason = reason
        logger.info("%s, stopping %d workers...", reason, self.config.workers.worker_count)
        if self._stop_event is not None:
            self._stop_event.set()
        return True

    async def run(self) -> RunReport:
        """Execute the whole lifecycle.

        Returns:
            The final report; see ``RunReport.exit_code``.

        Raises:
            EngineError: If the controller was already run or the pool
                cannot be started.
        """
        if self._state is not ControllerState.CREATED:
            msg = f"controller cannot run from state {self._state.name}"
            raise EngineError(msg)

        self._stop_event = asyncio.Event()
        try:
            self._pool = WorkerPool(self.config.workers).start()
        except TrafficGenError:
            self._state = ControllerState.STOPPED
            raise
        except Exception as exc:
            self._state = ControllerState.STOPPED
            raise EngineError("failed to start worker pool") from exc

        self._state = ControllerState.RUNNING
        if self._install_signals:
            self._add_signal_handlers()

        try:
            await self._wait_for_stop()
        finally:
            if self._state is ControllerState.RUNNING:
                self._state = ControllerState.STOPPING
                self._stop_reason = "aborted"
            join = await self._pool.shutdown(self.config.grace_period)
            self._remove_signal_handlers()
            self._state = ControllerState.STOPPED

        stats = self._pool.stats()
        report = RunReport(stats=stats, join=join, stop_reason=self._stop_reason or "stopped")
        logger.info(
            "Run finished: outcome=%s, sent=%d, succeeded=%d, failed=%d, avg_rps=%.1f",
            join.outcome.value,
            stats.sent,
            stats.succeeded,
            stats.failed,
            stats.requests_per_second,
        )
        return report

    async def _wait_for_stop(self) -> None:
        assert self._stop_event is not None
        assert self._pool is not None
        loop = asyncio.get_running_loop()
        deadline = (
            loop.time() + self.config.duration if self.config.duration is not None else None
        )

        while not self._stop_event.is_set():
            timeout = self.config.report_interval
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    self.request_stop("duration elapsed")
                    break
                timeout = min(timeout, remaining)

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)

            if self._on_stats is not None and not self._stop_event.is_set():
                self._on_stats(self._pool.stats())

    def _add_signal_handlers(self) -> None:
        if sys.platform == "win32":
            return
        loop = asyncio.get_running_loop()
        for sig in _STOP_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_stop, f"Received {sig.name}")
            except (RuntimeError, ValueError):
                # Not the main thread
                logger.debug("Cannot install handler for %s", sig.name)
                continue
            self._installed_signals.append(sig)

    def _remove_signal_handlers(self) -> None:
        if not self._installed_signals:
            return
        loop = asyncio.get_running_loop()
        for sig in self._installed_signals:
            loop.remove_signal_handler(sig)
        self._installed_signals.clear()


def run_generator(
    config: GeneratorConfig,
    *,
    on_stats: Callable[[AggregateStats], None] | None = None,
) -> RunReport:
    """Run a controller to completion on a fresh event loop.

    The loop is a uvloop loop where available.
    """
    controller = LifecycleController(config, on_stats=on_stats)
    with asyncio.Runner(loop_factory=_uvloop_factory()) as runner:
        return runner.run(controller.run())


def _uvloop_factory() -> Callable[[], asyncio.AbstractEventLoop] | None:
    """Return uvloop's loop constructor if available.

    Returns None on Windows or when uvloop is not installed, which makes
    ``asyncio.Runner`` use the default asyncio event loop.
    """
    if sys.platform == "win32":
        return None

    try:
        import uvloop
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")
        return None

    logger.debug("Using uvloop event loop")
    return uvloop.new_event_loop
