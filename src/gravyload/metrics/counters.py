"""Thread-safe per-endpoint counters and the global error-rate aggregator."""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import TYPE_CHECKING

from gravyload.metrics.models import EndpointCounts

if TYPE_CHECKING:
    from collections.abc import Callable

    from gravyload.metrics.models import CallOutcome

_COUNTER_KINDS = ("attempts", "successes", "failures")


class MetricSet:
    """Counters shared by every runner in a run.

    Each endpoint owns three monotonically increasing counters
    (``attempts``, ``successes``, ``failures``). A single error-rate
    aggregator collects one sample per sampled outcome.

    All mutation happens under one ``threading.Lock``, and an outcome's
    attempt and terminal counter are applied in the same critical section,
    so ``attempts == successes + failures`` at every observation point.
    Nothing is ever reset while a run is in progress.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[str, list[int]] = defaultdict(lambda: [0, 0, 0])
        self._samples = 0
        self._failed_samples = 0
        self._listeners: list[Callable[[CallOutcome], None]] = []

    def subscribe(self, listener: Callable[[CallOutcome], None]) -> None:
        """Call *listener* with every outcome after it has been counted."""
        self._listeners.append(listener)

    def record_outcome(self, outcome: CallOutcome, *, sample: bool = True) -> None:
        """Count one attempted call and its terminal result.

        Args:
            outcome: The classified call.
            sample: Also add the outcome to the error-rate aggregator.
        """
        with self._lock:
            counts = self._counts[outcome.endpoint]
            counts[0] += 1
            if outcome.succeeded:
                counts[1] += 1
            else:
                counts[2] += 1
            if sample:
                self._samples += 1
                if not outcome.succeeded:
                    self._failed_samples += 1
        for listener in self._listeners:
            listener(outcome)

    @property
    def error_rate(self) -> float:
        """Failure samples over all samples, 0.0 before any sample."""
        with self._lock:
            if self._samples == 0:
                return 0.0
            return self._failed_samples / self._samples

    @property
    def error_samples(self) -> int:
        """Total samples behind :attr:`error_rate`."""
        with self._lock:
            return self._samples

    @property
    def failed_samples(self) -> int:
        """Failure samples behind :attr:`error_rate`."""
        with self._lock:
            return self._failed_samples

    def counts(self, endpoint: str) -> EndpointCounts:
        """Return a copy of *endpoint*'s counters (zeros if never seen)."""
        with self._lock:
            if endpoint not in self._counts:
                return EndpointCounts()
            attempts, successes, failures = self._counts[endpoint]
        return EndpointCounts(attempts=attempts, successes=successes, failures=failures)

    def value(self, counter: str) -> int:
        """Look up a counter by its dotted name, e.g. ``"team.attempts"``.

        Raises:
            KeyError: If the name does not end in a known counter kind.
        """
        endpoint, _, kind = counter.rpartition(".")
        if not endpoint or kind not in _COUNTER_KINDS:
            msg = f"Unknown counter {counter!r}; expected '<endpoint>.attempts|successes|failures'"
            raise KeyError(msg)
        return getattr(self.counts(endpoint), kind)

    def snapshot(self) -> dict[str, EndpointCounts]:
        """Return copies of every endpoint's counters in first-seen order."""
        with self._lock:
            items = [(name, list(values)) for name, values in self._counts.items()]
        return {
            name: EndpointCounts(attempts=a, successes=s, failures=f) for name, (a, s, f) in items
        }
