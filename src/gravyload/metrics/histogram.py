"""HDR histograms for request latency trends.

``LatencyHistogram`` wraps ``hdrh.histogram.HdrHistogram`` in milliseconds
(stored internally as integer microseconds). ``LatencyRecorder`` keeps one
overall histogram (``http_req_duration``) plus one per endpoint name and is
fed by ``HttpClient``'s metric callback.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

from gravyload.metrics.models import LatencyStats

if TYPE_CHECKING:
    from gravyload.dsl.http_client import RequestMetric

# 1 microsecond to 5 minutes, in microseconds.
_LOWEST_TRACKABLE_US = 1
_HIGHEST_TRACKABLE_US = 300_000_000
_SIGNIFICANT_DIGITS = 3


class LatencyHistogram:
    """Millisecond-facing HDR histogram.

    Values outside ``[lowest_us, highest_us]`` are clamped, so a request
    that hangs past the trackable range still counts.
    """

    def __init__(
        self,
        lowest_us: int = _LOWEST_TRACKABLE_US,
        highest_us: int = _HIGHEST_TRACKABLE_US,
        significant_digits: int = _SIGNIFICANT_DIGITS,
    ) -> None:
        self.lowest_us = lowest_us
        self.highest_us = highest_us
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            lowest_us, highest_us, significant_digits
        )

    @property
    def total_count(self) -> int:
        return int(self._histogram.total_count)

    def record_ms(self, latency_ms: float) -> None:
        value_us = max(self.lowest_us, min(int(latency_ms * 1000), self.highest_us))
        self._histogram.record_value(value_us)

    def percentile(self, percentile: float) -> float:
        """Value at *percentile* (0-100) in ms, 0.0 when empty."""
        if self.total_count == 0:
            return 0.0
        return float(self._histogram.get_value_at_percentile(percentile)) / 1000.0

    def stats(self) -> LatencyStats:
        """Summarise the histogram."""
        if self.total_count == 0:
            return LatencyStats()
        return LatencyStats(
            count=self.total_count,
            min=float(self._histogram.get_min_value()) / 1000.0,
            max=float(self._histogram.get_max_value()) / 1000.0,
            avg=float(self._histogram.get_mean_value()) / 1000.0,
            med=self.percentile(50.0),
            p90=self.percentile(90.0),
            p95=self.percentile(95.0),
            p99=self.percentile(99.0),
        )


class LatencyRecorder:
    """Overall and per-endpoint latency histograms for a whole run.

    ``record`` matches the ``HttpClient`` metric callback signature.
    Transport failures are recorded too, as k6 does for ``http_req_duration``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._overall = LatencyHistogram()
        self._endpoints: dict[str, LatencyHistogram] = {}

    def record(self, metric: RequestMetric) -> None:
        with self._lock:
            self._overall.record_ms(metric.latency_ms)
            hist = self._endpoints.get(metric.name)
            if hist is None:
                hist = self._endpoints[metric.name] = LatencyHistogram()
            hist.record_ms(metric.latency_ms)

    def overall(self) -> LatencyStats:
        with self._lock:
            return self._overall.stats()

    def percentile(self, percentile: float, endpoint: str | None = None) -> float:
        """Latency at *percentile*, overall or for one endpoint (0.0 if unseen)."""
        with self._lock:
            if endpoint is None:
                return self._overall.percentile(percentile)
            hist = self._endpoints.get(endpoint)
            return hist.percentile(percentile) if hist is not None else 0.0

    def endpoint(self, name: str) -> LatencyStats:
        with self._lock:
            hist = self._endpoints.get(name)
            return hist.stats() if hist is not None else LatencyStats()

    def by_endpoint(self) -> dict[str, LatencyStats]:
        with self._lock:
            return {name: hist.stats() for name, hist in self._endpoints.items()}
