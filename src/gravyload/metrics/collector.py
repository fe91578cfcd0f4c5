"""Per-tick outcome collection for the live display."""

from __future__ import annotations

import time
from collections import deque
from typing import TYPE_CHECKING

import numpy as np

from gravyload.metrics.models import IntervalSnapshot

if TYPE_CHECKING:
    from gravyload.metrics.models import CallOutcome


class IntervalCollector:
    """Buffers classified outcomes between ticks.

    ``record`` is subscribed to the run's ``MetricSet`` and appends to a
    deque (atomic in CPython). ``flush`` drains the deque and summarises the
    interval; counters for the final summary live in ``MetricSet``, not here.
    """

    def __init__(self) -> None:
        self._buffer: deque[CallOutcome] = deque()
        self._last_flush_time = time.monotonic()

    @property
    def pending_count(self) -> int:
        """Number of outcomes not yet flushed."""
        return len(self._buffer)

    def record(self, outcome: CallOutcome) -> None:
        self._buffer.append(outcome)

    def flush(self, elapsed_seconds: float, active_users: int) -> IntervalSnapshot:
        """Drain the buffer and return the interval's snapshot.

        Args:
            elapsed_seconds: Seconds since the run started.
            active_users: Running virtual users.

        Returns:
            Snapshot of the outcomes recorded since the previous flush.
        """
        drained: list[CallOutcome] = []
        while self._buffer:
            drained.append(self._buffer.popleft())

        now = time.monotonic()
        interval = max(now - self._last_flush_time, 0.001)
        self._last_flush_time = now

        if not drained:
            return IntervalSnapshot(elapsed_seconds=elapsed_seconds, active_users=active_users)

        latencies = np.array([o.latency_ms for o in drained], dtype=np.float64)
        p50, p95 = np.percentile(latencies, [50.0, 95.0])

        return IntervalSnapshot(
            elapsed_seconds=elapsed_seconds,
            active_users=active_users,
            total_calls=len(drained),
            calls_per_second=len(drained) / interval,
            failures=sum(1 for o in drained if not o.succeeded),
            latency_p50=float(p50),
            latency_p95=float(p95),
        )
