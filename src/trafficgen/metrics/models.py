"""Counter and statistics dataclasses for trafficgen."""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from trafficgen.metrics.histogram import LatencyHistogram

if TYPE_CHECKING:
    from trafficgen.http_client import RequestMetric

__all__ = [
    "AggregateStats",
    "WorkerSnapshot",
    "WorkerState",
]


@dataclass
class WorkerState:
    """Mutable counters owned by exactly one worker.

    Only the owning worker calls ``record``. Everyone else reads through
    ``snapshot()``. ``sent`` always equals ``succeeded + failed``.

    Attributes:
        worker_id: Identifier of the owning worker.
        sent: Requests that completed or failed.
        succeeded: Requests classified as successful.
        failed: Requests classified as failed.
        last_error: Most recent failure description, if any.
        latency: Latency samples for every counted request.
        responses_by_status: Count of completed responses per status code.
        errors_by_type: Count of failures per error type.
        started_at: Monotonic time the worker started.
        stopped_at: Monotonic time the worker exited, None while running.
    """

    worker_id: int
    sent: int = 0
    succeeded: int = 0
    failed: int = 0
    last_error: str | None = None
    latency: LatencyHistogram = field(default_factory=LatencyHistogram)
    responses_by_status: dict[int, int] = field(default_factory=lambda: defaultdict(int))
    errors_by_type: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    started_at: float = field(default_factory=time.monotonic)
    stopped_at: float | None = None

    def record(self, metric: RequestMetric, *, success: bool) -> None:
        """Count one finished request.

        Args:
            metric: Outcome emitted by the HTTP client.
            success: Classification under the active success policy.
        """
        self.sent += 1
        self.latency.record(metric.latency_ms)
        if metric.status_code:
            self.responses_by_status[metric.status_code] += 1

        if success:
            self.succeeded += 1
            return

        self.failed += 1
        if metric.error is not None:
            self.last_error = metric.error
            self.errors_by_type[metric.error_type or "Error"] += 1
        else:
            self.last_error = f"HTTP {metric.status_code}"
            self.errors_by_type[f"HTTP {metric.status_code}"] += 1

    def mark_stopped(self) -> None:
        if self.stopped_at is None:
            self.stopped_at = time.monotonic()

    def snapshot(self) -> WorkerSnapshot:
        """Return an immutable copy of the current counters."""
        return WorkerSnapshot(
            worker_id=self.worker_id,
            sent=self.sent,
            succeeded=self.succeeded,
            failed=self.failed,
            last_error=self.last_error,
            latency=self.latency.copy(),
            responses_by_status=dict(self.responses_by_status),
            errors_by_type=dict(self.errors_by_type),
            running=self.stopped_at is None,
        )


@dataclass(frozen=True)
class WorkerSnapshot:
    """Read-only view of one worker's counters at a point in time."""

    worker_id: int
    sent: int
    succeeded: int
    failed: int
    last_error: str | None
    latency: LatencyHistogram
    responses_by_status: dict[int, int]
    errors_by_type: dict[str, int]
    running: bool


@dataclass(frozen=True)
class AggregateStats:
    """Counters summed across all workers.

    Attributes:
        workers: Number of workers in the pool.
        active_workers: Workers that have not exited yet.
        sent: Total requests counted.
        succeeded: Total successful requests.
        failed: Total failed requests.
        elapsed_seconds: Seconds since the pool started.
        latency_min: Minimum latency (ms).
        latency_avg: Mean latency (ms).
        latency_p50: 50th percentile latency (ms).
        latency_p95: 95th percentile latency (ms).
        latency_p99: 99th percentile latency (ms).
        latency_max: Maximum latency (ms).
        responses_by_status: Completed responses per status code.
        errors_by_type: Failures per error type.
    """

    workers: int = 0
    active_workers: int = 0
    sent: int = 0
    succeeded: int = 0
    failed: int = 0
    elapsed_seconds: float = 0.0
    latency_min: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0
    latency_max: float = 0.0
    responses_by_status: dict[int, int] = field(default_factory=dict)
    errors_by_type: dict[str, int] = field(default_factory=dict)

    @property
    def error_rate(self) -> float:
        """Fraction of sent requests that failed (0.0 when nothing was sent)."""
        return self.failed / self.sent if self.sent else 0.0

    @property
    def requests_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.sent / self.elapsed_seconds
