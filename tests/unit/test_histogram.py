"""Tests for LatencyHistogram."""

from __future__ import annotations

from trafficgen.metrics.histogram import LatencyHistogram


class TestLatencyHistogram:
    def test_empty_histogram_returns_zeros(self):
        h = LatencyHistogram()
        assert h.count == 0
        assert h.percentile(50.0) == 0.0
        assert h.min == 0.0
        assert h.max == 0.0
        assert h.mean == 0.0

    def test_percentiles(self):
        h = LatencyHistogram()
        for i in range(1, 101):
            h.record(float(i))

        assert 49.0 <= h.percentile(50.0) <= 51.0
        assert 98.0 <= h.percentile(99.0) <= 101.0
        assert h.count == 100

    def test_min_max_mean(self):
        h = LatencyHistogram()
        for value in (5.0, 15.0, 25.0):
            h.record(value)

        assert 4.9 <= h.min <= 5.1
        assert 24.9 <= h.max <= 25.1
        assert 14.5 <= h.mean <= 15.5

    def test_sub_microsecond_values_are_clamped(self):
        h = LatencyHistogram()
        h.record(0.0)
        assert h.count == 1
        assert h.min == 0.001

    def test_merge_combines_counts(self):
        a = LatencyHistogram()
        b = LatencyHistogram()
        a.record(10.0)
        b.record(20.0)
        b.record(30.0)

        a.merge(b)

        assert a.count == 3
        assert 29.9 <= a.max <= 30.1
        assert b.count == 2

    def test_copy_is_independent(self):
        h = LatencyHistogram()
        h.record(10.0)
        clone = h.copy()
        h.record(20.0)

        assert clone.count == 1
        assert h.count == 2
