"""Tests for the per-tick IntervalCollector."""

from __future__ import annotations

import pytest

from gravyload.metrics.collector import IntervalCollector
from gravyload.metrics.counters import MetricSet
from gravyload.metrics.models import CallOutcome


def _outcome(latency_ms: float = 10.0, succeeded: bool = True) -> CallOutcome:
    return CallOutcome(
        endpoint="team",
        succeeded=succeeded,
        http_status=201 if succeeded else 500,
        expected_status=201,
        latency_ms=latency_ms,
    )


class TestIntervalCollectorRecord:
    def test_pending_count_starts_at_zero(self) -> None:
        assert IntervalCollector().pending_count == 0

    def test_record_appends(self) -> None:
        collector = IntervalCollector()
        for _ in range(5):
            collector.record(_outcome())
        assert collector.pending_count == 5

    def test_subscribed_to_metric_set(self) -> None:
        metrics = MetricSet()
        collector = IntervalCollector()
        metrics.subscribe(collector.record)
        metrics.record_outcome(_outcome())
        assert collector.pending_count == 1


class TestIntervalCollectorFlush:
    def test_flush_drains_buffer(self) -> None:
        collector = IntervalCollector()
        collector.record(_outcome())
        collector.flush(elapsed_seconds=1.0, active_users=1)
        assert collector.pending_count == 0

    def test_empty_flush(self) -> None:
        snapshot = IntervalCollector().flush(elapsed_seconds=2.0, active_users=3)
        assert snapshot.elapsed_seconds == 2.0
        assert snapshot.active_users == 3
        assert snapshot.total_calls == 0
        assert snapshot.calls_per_second == 0.0
        assert snapshot.latency_p95 == 0.0

    def test_flush_summarises_interval(self) -> None:
        collector = IntervalCollector()
        for ms in (10.0, 20.0, 30.0, 40.0):
            collector.record(_outcome(latency_ms=ms))
        collector.record(_outcome(latency_ms=50.0, succeeded=False))

        snapshot = collector.flush(elapsed_seconds=1.0, active_users=2)

        assert snapshot.total_calls == 5
        assert snapshot.failures == 1
        assert snapshot.calls_per_second > 0
        assert snapshot.latency_p50 == pytest.approx(30.0)
        assert snapshot.latency_p95 == pytest.approx(48.0)

    def test_intervals_are_independent(self) -> None:
        collector = IntervalCollector()
        collector.record(_outcome(succeeded=False))
        collector.flush(elapsed_seconds=1.0, active_users=1)
        collector.record(_outcome())
        snapshot = collector.flush(elapsed_seconds=2.0, active_users=1)
        assert snapshot.total_calls == 1
        assert snapshot.failures == 0
