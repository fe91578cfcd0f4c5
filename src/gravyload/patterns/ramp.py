"""Ramp pattern: linear interpolation between two user counts."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gravyload._internal.errors import ConfigError
from gravyload.patterns.base import LoadPattern, _ticks, _validate_non_negative, _validate_positive

if TYPE_CHECKING:
    from collections.abc import Iterator


def interpolate(start: int, end: int, fraction: float) -> int:
    """Users at *fraction* (0..1) of the way from *start* to *end*, rounded."""
    fraction = min(max(fraction, 0.0), 1.0)
    return max(round(start + (end - start) * fraction), 0)


class RampPattern(LoadPattern):
    """Move linearly from *start_users* to *end_users* over *ramp_duration*, then hold.

    Args:
        start_users: Concurrency at time 0.
        end_users: Concurrency reached at *ramp_duration* and held after.
        ramp_duration: Seconds the ramp takes.

    Raises:
        ConfigError: If a count is negative, the duration is not positive,
            or both counts are equal (use ``ConstantPattern``).

    Example::

        pattern = RampPattern(start_users=0, end_users=100, ramp_duration=60.0)
        ticks = list(pattern.iter_concurrency(duration_seconds=120.0))
        assert ticks[30][1] == 50
        assert ticks[90][1] == 100
    """

    def __init__(self, start_users: int, end_users: int, ramp_duration: float) -> None:
        _validate_non_negative(start_users, "start_users")
        _validate_non_negative(end_users, "end_users")
        _validate_positive(ramp_duration, "ramp_duration")
        if start_users == end_users:
            msg = "start_users and end_users must differ; use ConstantPattern for fixed concurrency"
            raise ConfigError(msg)
        self._start_users = start_users
        self._end_users = end_users
        self._ramp_duration = ramp_duration

    @property
    def max_users(self) -> int:
        return max(self._start_users, self._end_users)

    def iter_concurrency(
        self,
        duration_seconds: float,
        tick_interval: float = 1.0,
    ) -> Iterator[tuple[float, int]]:
        """Yield ``(elapsed, users)`` along the ramp.

        Args:
            duration_seconds: Total duration to generate ticks for.
            tick_interval: Seconds between ticks.

        Yields:
            ``(elapsed_seconds, users)``; *users* stays at *end_users* once
            the ramp is over.
        """
        for elapsed in _ticks(duration_seconds, tick_interval):
            yield (elapsed, interpolate(self._start_users, self._end_users, elapsed / self._ramp_duration))

    def describe(self) -> str:
        """Return a human-readable description.

        Returns:
            Description string.
        """
        return f"Ramp: {self._start_users} -> {self._end_users} users over {self._ramp_duration}s"
