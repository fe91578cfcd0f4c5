"""Turns a LoadPattern's curve into per-tick virtual-user scale commands."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from gravyload.patterns.base import LoadPattern


class ScaleDirection(Enum):
    """Whether a tick adds users, removes them, or changes nothing."""

    UP = auto()
    DOWN = auto()
    HOLD = auto()


@dataclass(frozen=True)
class ScaleCommand:
    """Target virtual-user count for one tick.

    Attributes:
        elapsed_seconds: Offset from the start of the run.
        target_users: Virtual users that should be running.
        direction: Change relative to the previous tick.
        delta: Absolute change in users (always >= 0).
    """

    elapsed_seconds: float
    target_users: int
    direction: ScaleDirection
    delta: int


class Scheduler:
    """Walks a pattern tick by tick and reports how concurrency changes.

    The previous target starts at 0, so the first command of any pattern
    with users is a scale up.

    Args:
        pattern: The load shape to follow.
        duration_seconds: Run length.
        tick_interval: Seconds between commands.
    """

    def __init__(
        self,
        pattern: LoadPattern,
        duration_seconds: float,
        tick_interval: float = 1.0,
    ) -> None:
        """Initialize the scheduler.

        Args:
            pattern: LoadPattern whose concurrency curve is followed.
            duration_seconds: Total run length in seconds.
            tick_interval: Seconds between ticks. Defaults to 1.0.
        """
        self._pattern = pattern
        self._duration_seconds = duration_seconds
        self._tick_interval = tick_interval

    def iter_commands(self) -> Iterator[ScaleCommand]:
        """Yield one ScaleCommand per tick of the pattern.

        Each command carries the change from the previous tick's target.

        Yields:
            A ScaleCommand for every tick from 0 to the run length inclusive.
        """
        previous = 0
        for elapsed, target in self._pattern.iter_concurrency(self._duration_seconds, self._tick_interval):
            delta = target - previous
            if delta > 0:
                direction = ScaleDirection.UP
            elif delta < 0:
                direction = ScaleDirection.DOWN
            else:
                direction = ScaleDirection.HOLD
            yield ScaleCommand(
                elapsed_seconds=elapsed,
                target_users=target,
                direction=direction,
                delta=abs(delta),
            )
            previous = target

    @property
    def total_ticks(self) -> int:
        """Number of commands :meth:`iter_commands` yields."""
        return int(round(self._duration_seconds / self._tick_interval, 9)) + 1
