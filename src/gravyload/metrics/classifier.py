"""Classifies call responses into counters and error-rate samples."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gravyload._internal.errors import CallError, TransportError
from gravyload._internal.logging import get_logger, truncate_body
from gravyload.metrics.models import CallOutcome

if TYPE_CHECKING:
    from gravyload.dsl.http_client import CallResponse
    from gravyload.metrics.counters import MetricSet

logger = get_logger("metrics.classifier")


class CallClassifier:
    """Turns each response into exactly one recorded ``CallOutcome``.

    Success is strictly ``response.status == expected_status``. Anything
    else, including status 0 for transport errors and timeouts, is a
    failure: it bumps ``<endpoint>.failures``, adds a failure sample to the
    error rate, and logs one WARNING line with the status and body.
    """

    def __init__(self, metrics: MetricSet) -> None:
        self._metrics = metrics

    def record(self, endpoint: str, expected_status: int, response: CallResponse) -> CallOutcome:
        """Classify *response* and record it once.

        Args:
            endpoint: Metric name of the call.
            expected_status: The only status that counts as success.
            response: The response (status 0 on transport failure).

        Returns:
            The recorded outcome.
        """
        succeeded = response.error is None and response.status == expected_status
        outcome = CallOutcome(
            endpoint=endpoint,
            succeeded=succeeded,
            http_status=response.status,
            expected_status=expected_status,
            latency_ms=response.latency_ms,
            error=response.error,
        )
        self._metrics.record_outcome(outcome)

        if not succeeded:
            logger.warning("%s", self.failure(endpoint, expected_status, response), extra={"endpoint": endpoint})
        return outcome

    @staticmethod
    def failure(endpoint: str, expected_status: int, response: CallResponse) -> CallError:
        """Describe a failed call as a ``CallError`` (``TransportError`` for status 0).

        The error is logged, never raised; a failed call does not stop the
        scenario.
        """
        if response.error is not None:
            return TransportError(endpoint, expected_status, response.error)
        return CallError(endpoint, expected_status, response.status, truncate_body(response.body))
