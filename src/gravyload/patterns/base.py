"""Abstract base class for virtual-user load patterns."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from gravyload._internal.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterator


class LoadPattern(ABC):
    """How many virtual users should be running at each point of a run.

    Subclasses yield ``(elapsed_seconds, target_users)`` once per tick.
    The engine starts or stops virtual users to follow the curve.

    Example::

        pattern = StagesPattern([Stage(30.0, 50), Stage(60.0, 100), Stage(30.0, 0)])
        for elapsed, users in pattern.iter_concurrency(pattern.duration_seconds):
            print(f"t={elapsed:.0f}s -> {users} users")
    """

    @abstractmethod
    def iter_concurrency(
        self,
        duration_seconds: float,
        tick_interval: float = 1.0,
    ) -> Iterator[tuple[float, int]]:
        """Yield ``(elapsed_seconds, target_users)`` every *tick_interval* seconds.

        Args:
            duration_seconds: Length of the run.
            tick_interval: Seconds between ticks.
        """

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable summary for logs and the run banner."""

    @property
    def max_users(self) -> int:
        """Largest target the pattern reaches over one minute of ticks, by default."""
        return max((users for _, users in self.iter_concurrency(60.0)), default=0)


def _validate_positive(value: float, name: str) -> None:
    """Raise :class:`ConfigError` unless *value* > 0."""
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigError(msg)


def _validate_non_negative(value: float, name: str) -> None:
    """Raise :class:`ConfigError` if *value* < 0."""
    if value < 0:
        msg = f"{name} must be non-negative, got {value}"
        raise ConfigError(msg)


def _ticks(duration_seconds: float, tick_interval: float) -> Iterator[float]:
    """Yield tick offsets 0, tick, 2*tick, ... up to and including *duration_seconds*.

    Offsets are computed by multiplication so float error does not drop the
    final tick.
    """
    _validate_positive(duration_seconds, "duration_seconds")
    _validate_positive(tick_interval, "tick_interval")
    count = int(round(duration_seconds / tick_interval, 9))
    for i in range(count + 1):
        yield i * tick_interval
