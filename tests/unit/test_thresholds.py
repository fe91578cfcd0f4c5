"""Tests for threshold parsing and evaluation."""

from __future__ import annotations

import time

import pytest

from gravyload._internal.errors import ThresholdError
from gravyload.dsl.http_client import RequestMetric
from gravyload.metrics.counters import MetricSet
from gravyload.metrics.histogram import LatencyRecorder
from gravyload.metrics.models import CallOutcome
from gravyload.metrics.thresholds import evaluate_thresholds, parse_threshold, parse_thresholds


def _record(metrics: MetricSet, endpoint: str, succeeded: bool) -> None:
    metrics.record_outcome(
        CallOutcome(endpoint=endpoint, succeeded=succeeded, http_status=201 if succeeded else 500, expected_status=201)
    )


def _latency(recorder: LatencyRecorder, name: str, latency_ms: float) -> None:
    recorder.record(
        RequestMetric(
            timestamp=time.monotonic(),
            name=name,
            method="POST",
            url=f"http://localhost/{name}",
            status_code=201,
            latency_ms=latency_ms,
            content_length=0,
        )
    )


class TestParseThreshold:
    def test_rate(self) -> None:
        threshold = parse_threshold("errors", "rate<0.01")
        assert threshold.aggregate == "rate"
        assert threshold.op == "<"
        assert threshold.limit == 0.01
        assert threshold.percentile is None

    def test_percentile(self) -> None:
        threshold = parse_threshold("http_req_duration", "p(95) <= 5000")
        assert threshold.aggregate == "p"
        assert threshold.percentile == 95.0
        assert threshold.op == "<="
        assert threshold.limit == 5000.0

    def test_check(self) -> None:
        threshold = parse_threshold("errors", "rate<0.01")
        assert threshold.check(0.0)
        assert not threshold.check(0.01)
        assert not threshold.check(0.5)

    @pytest.mark.parametrize("expression", ["", "rate", "rate<", "rate~0.1", "p95<10", "bogus<1"])
    def test_invalid_expression(self, expression: str) -> None:
        with pytest.raises(ThresholdError, match="Invalid threshold"):
            parse_threshold("errors", expression)

    def test_percentile_out_of_range(self) -> None:
        with pytest.raises(ThresholdError, match="out of range"):
            parse_threshold("http_req_duration", "p(150)<10")

    def test_unknown_metric(self) -> None:
        with pytest.raises(ThresholdError, match="Unknown threshold metric"):
            parse_threshold("checks", "rate>0.9")

    @pytest.mark.parametrize("metric", ["_attempts", "_failures", "_duration"])
    def test_metric_without_endpoint(self, metric: str) -> None:
        with pytest.raises(ThresholdError, match="names no endpoint"):
            parse_threshold(metric, "count<1")

    @pytest.mark.parametrize(
        ("metric", "expression"),
        [
            ("errors", "avg<1"),
            ("http_req_duration", "rate<0.1"),
            ("team_attempts", "rate<0.1"),
            ("team_successes", "p(95)<1"),
        ],
    )
    def test_invalid_pairing(self, metric: str, expression: str) -> None:
        with pytest.raises(ThresholdError, match="not valid"):
            parse_threshold(metric, expression)

    def test_parse_thresholds_keeps_order(self) -> None:
        parsed = parse_thresholds({"http_req_duration": ["p(95)<5000", "avg<800"], "errors": ["rate<0.01"]})
        assert [(t.metric, t.expression) for t in parsed] == [
            ("http_req_duration", "p(95)<5000"),
            ("http_req_duration", "avg<800"),
            ("errors", "rate<0.01"),
        ]


class TestEvaluateThresholds:
    def test_error_rate_fails_at_half(self) -> None:
        metrics = MetricSet()
        _record(metrics, "team", succeeded=True)
        _record(metrics, "team", succeeded=False)

        [result] = evaluate_thresholds({"errors": ["rate<0.01"]}, metrics, LatencyRecorder())

        assert result.observed == 0.5
        assert not result.passed

    def test_error_rate_passes_when_clean(self) -> None:
        metrics = MetricSet()
        _record(metrics, "team", succeeded=True)

        [result] = evaluate_thresholds({"errors": ["rate<0.01"]}, metrics, LatencyRecorder())

        assert result.observed == 0.0
        assert result.passed

    def test_error_count(self) -> None:
        metrics = MetricSet()
        _record(metrics, "team", succeeded=False)
        _record(metrics, "feed", succeeded=False)
        [result] = evaluate_thresholds({"errors": ["count<2"]}, metrics, LatencyRecorder())
        assert result.observed == 2.0
        assert not result.passed

    def test_global_latency(self) -> None:
        latency = LatencyRecorder()
        for ms in (100.0, 200.0, 300.0):
            _latency(latency, "team", ms)
        _latency(latency, "feed", 6000.0)

        results = evaluate_thresholds(
            {"http_req_duration": ["p(95)<5000", "max<10000"]}, MetricSet(), latency
        )

        assert not results[0].passed
        assert results[1].passed

    def test_endpoint_latency(self) -> None:
        latency = LatencyRecorder()
        _latency(latency, "team", 100.0)
        _latency(latency, "feed", 6000.0)

        [result] = evaluate_thresholds({"team_duration": ["p(95)<5000"]}, MetricSet(), latency)

        assert result.observed == pytest.approx(100.0, rel=0.01)
        assert result.passed

    def test_endpoint_counters(self) -> None:
        metrics = MetricSet()
        _record(metrics, "team", succeeded=True)
        _record(metrics, "team", succeeded=True)
        _record(metrics, "team", succeeded=False)
        _record(metrics, "training_program", succeeded=True)

        results = evaluate_thresholds(
            {
                "team_attempts": ["count==3"],
                "team_successes": ["count>=2"],
                "team_failures": ["count<1", "rate<0.5"],
                "training_program_failures": ["rate==0"],
            },
            metrics,
            LatencyRecorder(),
        )

        assert [r.passed for r in results] == [True, True, False, True, True]
        assert results[3].observed == pytest.approx(1 / 3)

    def test_dotted_endpoint_counter(self) -> None:
        metrics = MetricSet()
        _record(metrics, "feed.long_post", succeeded=False)
        [result] = evaluate_thresholds({"feed.long_post_failures": ["count<1"]}, metrics, LatencyRecorder())
        assert result.observed == 1.0
        assert not result.passed

    def test_unseen_endpoint_reads_zero(self) -> None:
        [result] = evaluate_thresholds({"canned_message_failures": ["rate<0.1"]}, MetricSet(), LatencyRecorder())
        assert result.observed == 0.0
        assert result.passed

    def test_empty_thresholds(self) -> None:
        assert evaluate_thresholds({}, MetricSet(), LatencyRecorder()) == []

    def test_invalid_expression_raises(self) -> None:
        with pytest.raises(ThresholdError):
            evaluate_thresholds({"errors": ["nope"]}, MetricSet(), LatencyRecorder())
