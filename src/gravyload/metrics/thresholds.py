"""k6-style pass/fail thresholds over the run's aggregated metrics.

Thresholds are configured as ``{metric: [expression, ...]}``::

    {
        "errors": ["rate<0.01"],
        "http_req_duration": ["p(95)<5000", "avg<800"],
        "team_failures": ["count<1"],
        "team_duration": ["p(90)<1200"],
    }

Supported metrics:

- ``errors``: ``rate`` (global error rate), ``count`` (failure samples).
- ``http_req_duration``: latency over every request.
- ``<endpoint>_duration``: latency of one endpoint.
- ``<endpoint>_attempts|_successes|_failures``: ``count``; ``_failures`` also
  supports ``rate`` (failures over attempts).

Latency aggregates: ``avg``, ``min``, ``max``, ``med``, ``count``, ``p(N)``.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from gravyload._internal.errors import ThresholdError
from gravyload.metrics.models import ThresholdResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from gravyload._internal.types import ThresholdSpec
    from gravyload.metrics.counters import MetricSet
    from gravyload.metrics.histogram import LatencyRecorder

_EXPRESSION = re.compile(
    r"^\s*(?P<agg>rate|count|avg|min|max|med|p\(\s*(?P<pct>\d+(?:\.\d+)?)\s*\))"
    r"\s*(?P<op><=|>=|==|<|>)\s*(?P<value>-?\d+(?:\.\d+)?)\s*$"
)

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
}

_LATENCY_AGGREGATES = frozenset({"avg", "min", "max", "med", "count", "p"})
_COUNTER_SUFFIXES = ("_attempts", "_successes", "_failures")


@dataclass(frozen=True)
class Threshold:
    """One parsed threshold expression.

    Attributes:
        metric: Metric name, e.g. ``"errors"``.
        expression: Original text, e.g. ``"rate<0.01"``.
        aggregate: ``rate``, ``count``, ``avg``, ``min``, ``max``, ``med`` or ``p``.
        percentile: Percentile for ``p(N)``, else None.
        op: Comparison operator text.
        limit: Right-hand side of the comparison.
    """

    metric: str
    expression: str
    aggregate: str
    percentile: float | None
    op: str
    limit: float

    def check(self, observed: float) -> bool:
        return _OPERATORS[self.op](observed, self.limit)


def parse_threshold(metric: str, expression: str) -> Threshold:
    """Parse one expression for *metric*.

    Raises:
        ThresholdError: If the expression or the metric/aggregate pairing is invalid.
    """
    match = _EXPRESSION.match(expression)
    if match is None:
        msg = f"Invalid threshold for {metric!r}: {expression!r}"
        raise ThresholdError(msg)

    aggregate = match.group("agg")
    percentile: float | None = None
    if aggregate.startswith("p("):
        aggregate = "p"
        percentile = float(match.group("pct"))
        if not 0.0 <= percentile <= 100.0:
            msg = f"Percentile out of range in {expression!r}"
            raise ThresholdError(msg)

    threshold = Threshold(
        metric=metric,
        expression=expression,
        aggregate=aggregate,
        percentile=percentile,
        op=match.group("op"),
        limit=float(match.group("value")),
    )
    _validate_pairing(threshold)
    return threshold


def _validate_pairing(threshold: Threshold) -> None:
    metric, aggregate = threshold.metric, threshold.aggregate
    if metric in _COUNTER_SUFFIXES or metric == "_duration":
        msg = f"Threshold metric {metric!r} names no endpoint"
        raise ThresholdError(msg)
    if metric == "errors":
        allowed = {"rate", "count"}
    elif metric == "http_req_duration" or metric.endswith("_duration"):
        allowed = set(_LATENCY_AGGREGATES)
    elif metric.endswith("_failures"):
        allowed = {"count", "rate"}
    elif metric.endswith(_COUNTER_SUFFIXES):
        allowed = {"count"}
    else:
        msg = f"Unknown threshold metric {metric!r}"
        raise ThresholdError(msg)
    if aggregate not in allowed:
        msg = f"Aggregate {aggregate!r} is not valid for metric {metric!r}"
        raise ThresholdError(msg)


def parse_thresholds(spec: ThresholdSpec) -> list[Threshold]:
    """Parse every expression in *spec*, in order."""
    return [parse_threshold(metric, expr) for metric, exprs in spec.items() for expr in exprs]


def observe(threshold: Threshold, metrics: MetricSet, latency: LatencyRecorder) -> float:
    """Return the observed value a threshold compares against."""
    metric, aggregate = threshold.metric, threshold.aggregate

    if metric == "errors":
        return metrics.error_rate if aggregate == "rate" else float(metrics.failed_samples)

    if metric == "http_req_duration" or metric.endswith("_duration"):
        endpoint = None if metric == "http_req_duration" else metric.removesuffix("_duration")
        if aggregate == "p" and threshold.percentile is not None:
            return latency.percentile(threshold.percentile, endpoint)
        stats = latency.overall() if endpoint is None else latency.endpoint(endpoint)
        return float(getattr(stats, aggregate))

    for suffix in _COUNTER_SUFFIXES:
        if metric.endswith(suffix):
            endpoint = metric.removesuffix(suffix)
            if aggregate == "rate":
                counts = metrics.counts(endpoint)
                return counts.failures / counts.attempts if counts.attempts else 0.0
            return float(metrics.value(f"{endpoint}.{suffix.lstrip('_')}"))

    msg = f"Unknown threshold metric {metric!r}"
    raise ThresholdError(msg)


def evaluate_thresholds(
    spec: ThresholdSpec,
    metrics: MetricSet,
    latency: LatencyRecorder,
) -> list[ThresholdResult]:
    """Evaluate every threshold in *spec* against the run's metrics.

    Raises:
        ThresholdError: If any expression is invalid.
    """
    results: list[ThresholdResult] = []
    for threshold in parse_thresholds(spec):
        observed = observe(threshold, metrics, latency)
        results.append(
            ThresholdResult(
                metric=threshold.metric,
                expression=threshold.expression,
                observed=observed,
                passed=threshold.check(observed),
            )
        )
    return results
