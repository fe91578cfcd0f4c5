"""Metric dataclasses for gravyload."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

# NOTE: RequestMetric lives in dsl/http_client.py. Imported here for
# re-export convenience.
from gravyload.dsl.http_client import RequestMetric

__all__ = [
    "CallOutcome",
    "EndpointCounts",
    "IntervalSnapshot",
    "LatencyStats",
    "RequestMetric",
    "RunSummary",
    "ThresholdResult",
]


@dataclass(frozen=True)
class CallOutcome:
    """Classified result of one attempted call.

    Attributes:
        endpoint: Metric name of the call, e.g. ``"team"``.
        succeeded: True iff ``http_status == expected_status``.
        http_status: Received status, 0 on transport failure.
        expected_status: The status counted as success.
        latency_ms: Time spent on the call.
        error: Transport error text, if any.
    """

    endpoint: str
    succeeded: bool
    http_status: int
    expected_status: int
    latency_ms: float = 0.0
    error: str | None = None

    @property
    def attempted(self) -> bool:
        """Every outcome stands for an attempted call."""
        return True


@dataclass(frozen=True)
class EndpointCounts:
    """Point-in-time copy of one endpoint's counters."""

    attempts: int = 0
    successes: int = 0
    failures: int = 0


@dataclass(frozen=True)
class LatencyStats:
    """Latency aggregates in milliseconds (all 0.0 when nothing was recorded)."""

    count: int = 0
    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0
    med: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0


@dataclass
class IntervalSnapshot:
    """Aggregated outcomes for one tick, used by the live display.

    Attributes:
        elapsed_seconds: Seconds since the run started.
        active_users: Running virtual users at the tick.
        total_calls: Calls classified during the interval.
        calls_per_second: ``total_calls`` over the interval length.
        failures: Failed calls during the interval.
        latency_p50: Median call latency (ms).
        latency_p95: 95th percentile call latency (ms).
    """

    elapsed_seconds: float
    active_users: int
    total_calls: int = 0
    calls_per_second: float = 0.0
    failures: int = 0
    latency_p50: float = 0.0
    latency_p95: float = 0.0


@dataclass(frozen=True)
class ThresholdResult:
    """Evaluation of one threshold expression."""

    metric: str
    expression: str
    observed: float
    passed: bool


@dataclass
class RunSummary:
    """Everything reported at the end of a run.

    Attributes:
        scenario_name: Scenario that was executed.
        duration_seconds: Wall-clock run length.
        pattern_description: Human-readable load profile.
        counters: Endpoint name -> attempts/successes/failures.
        error_rate: Failure samples over all samples.
        error_samples: Number of samples behind ``error_rate``.
        latency: Latency over every HTTP request (``http_req_duration``).
        endpoint_latency: Latency per endpoint name.
        thresholds: Result of each configured threshold.
        snapshots: Per-tick snapshots, oldest first.
        aborted: True if the run was halted early by a fatal sign-in failure.
        abort_reason: Why the run was halted.
    """

    scenario_name: str
    duration_seconds: float
    pattern_description: str
    counters: dict[str, EndpointCounts] = field(default_factory=dict)
    error_rate: float = 0.0
    error_samples: int = 0
    latency: LatencyStats = field(default_factory=LatencyStats)
    endpoint_latency: dict[str, LatencyStats] = field(default_factory=dict)
    thresholds: list[ThresholdResult] = field(default_factory=list)
    snapshots: list[IntervalSnapshot] = field(default_factory=list)
    aborted: bool = False
    abort_reason: str | None = None

    @property
    def thresholds_passed(self) -> bool:
        """True when every threshold passed (vacuously true with none)."""
        return all(result.passed for result in self.thresholds)

    @property
    def passed(self) -> bool:
        """Overall verdict: thresholds passed and the run was not aborted."""
        return self.thresholds_passed and not self.aborted

    def to_dict(self) -> dict[str, object]:
        """JSON-serialisable form for ``--summary-json``."""
        data = asdict(self)
        data.pop("snapshots")
        data["passed"] = self.passed
        return data
