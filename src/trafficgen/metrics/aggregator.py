"""Summing per-worker snapshots into ``AggregateStats``."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from trafficgen.metrics.histogram import LatencyHistogram
from trafficgen.metrics.models import AggregateStats

if TYPE_CHECKING:
    from collections.abc import Iterable

    from trafficgen.metrics.models import WorkerSnapshot


def aggregate(
    snapshots: Iterable[WorkerSnapshot],
    *,
    elapsed_seconds: float = 0.0,
) -> AggregateStats:
    """Build aggregate statistics from worker snapshots.

    Nothing is cached: every call recomputes from the snapshots it is
    given, so the result is exactly as fresh as its inputs.

    Args:
        snapshots: One snapshot per worker.
        elapsed_seconds: Seconds since the pool started, for the RPS figure.

    Returns:
        The summed statistics.
    """
    latency = LatencyHistogram()
    by_status: dict[int, int] = defaultdict(int)
    by_type: dict[str, int] = defaultdict(int)
    workers = active = sent = succeeded = failed = 0

    for snap in snapshots:
        workers += 1
        active += int(snap.running)
        sent += snap.sent
        succeeded += snap.succeeded
        failed += snap.failed
        latency.merge(snap.latency)
        for status, count in snap.responses_by_status.items():
            by_status[status] += count
        for error_type, count in snap.errors_by_type.items():
            by_type[error_type] += count

    return AggregateStats(
        workers=workers,
        active_workers=active,
        sent=sent,
        succeeded=succeeded,
        failed=failed,
        elapsed_seconds=elapsed_seconds,
        latency_min=latency.min,
        latency_avg=latency.mean,
        latency_p50=latency.percentile(50.0),
        latency_p95=latency.percentile(95.0),
        latency_p99=latency.percentile(99.0),
        latency_max=latency.max,
        responses_by_status=dict(sorted(by_status.items())),
        errors_by_type=dict(sorted(by_type.items())),
    )
