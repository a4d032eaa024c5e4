"""Latency histogram backed by HDR histogram.

Callers work in milliseconds. The underlying ``HdrHistogram`` only
accepts integers, so values are stored as microseconds.
"""

from __future__ import annotations

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

# 1us .. 5 minutes; request timeouts above that are clamped
_LOWEST_US = 1
_HIGHEST_US = 300_000_000
_SIGNIFICANT_DIGITS = 3


class LatencyHistogram:
    """Per-worker latency recorder with mergeable percentiles.

    Each worker owns one instance and is its only writer. Snapshots are
    taken with ``copy()``; aggregate statistics are built by ``merge()``-ing
    snapshots into a fresh histogram.
    """

    def __init__(self) -> None:
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            _LOWEST_US, _HIGHEST_US, _SIGNIFICANT_DIGITS
        )

    def record(self, latency_ms: float) -> None:
        """Record one latency sample, clamped to the trackable range."""
        value_us = max(_LOWEST_US, min(int(latency_ms * 1000), _HIGHEST_US))
        self._histogram.record_value(value_us)

    @property
    def count(self) -> int:
        """Number of recorded samples."""
        return int(self._histogram.total_count)

    def percentile(self, percentile: float) -> float:
        """Return the latency in ms at ``percentile`` (0-100), 0.0 if empty."""
        if self.count == 0:
            return 0.0
        return self._histogram.get_value_at_percentile(percentile) / 1000.0

    @property
    def min(self) -> float:
        if self.count == 0:
            return 0.0
        return self._histogram.get_min_value() / 1000.0

    @property
    def max(self) -> float:
        if self.count == 0:
            return 0.0
        return self._histogram.get_max_value() / 1000.0

    @property
    def mean(self) -> float:
        if self.count == 0:
            return 0.0
        return float(self._histogram.get_mean_value()) / 1000.0

    def merge(self, other: LatencyHistogram) -> None:
        """Add all samples from ``other`` into this histogram."""
        if other.count:
            self._histogram.add(other._histogram)

    def copy(self) -> LatencyHistogram:
        """Return an independent copy of this histogram."""
        clone = LatencyHistogram()
        clone.merge(self)
        return clone
