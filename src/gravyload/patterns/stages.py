"""Stages pattern: k6 ``options.stages`` ramping profiles."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gravyload._internal.errors import ConfigError
from gravyload.patterns.base import LoadPattern, _ticks, _validate_non_negative, _validate_positive
from gravyload.patterns.ramp import interpolate

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from gravyload._internal.config import Stage


class StagesPattern(LoadPattern):
    """Chain of linear ramps, each to a new target, starting from *start_users*.

    Every stage moves linearly from the previous stage's target (or
    *start_users* for the first) to its own target over its duration, as
    k6's ramping-VUs executor does. After the last stage the final target
    is held if the run is longer than the stages.

    Args:
        stages: Ordered ``Stage(duration_seconds, target)`` entries.
        start_users: Concurrency before the first stage. Defaults to 0.

    Raises:
        ConfigError: If there are no stages or a stage is out of range.

    Example::

        pattern = StagesPattern([Stage(60.0, 500), Stage(180.0, 200), Stage(120.0, 0)])
        # 0 -> 500 over 1m, 500 -> 200 over 3m, 200 -> 0 over 2m
    """

    def __init__(self, stages: Sequence[Stage], start_users: int = 0) -> None:
        if not stages:
            msg = "stages must contain at least one {duration, target} entry"
            raise ConfigError(msg)
        _validate_non_negative(start_users, "start_users")
        for i, stage in enumerate(stages):
            _validate_positive(stage.duration_seconds, f"stages[{i}].duration")
            _validate_non_negative(stage.target, f"stages[{i}].target")
        self._stages = tuple(stages)
        self._start_users = start_users

    @property
    def duration_seconds(self) -> float:
        """Total length of all stages."""
        return sum(stage.duration_seconds for stage in self._stages)

    @property
    def max_users(self) -> int:
        return max([self._start_users, *(stage.target for stage in self._stages)])

    def users_at(self, elapsed: float) -> int:
        """Target users *elapsed* seconds into the run."""
        previous = self._start_users
        offset = 0.0
        for stage in self._stages:
            if elapsed < offset + stage.duration_seconds:
                return interpolate(previous, stage.target, (elapsed - offset) / stage.duration_seconds)
            offset += stage.duration_seconds
            previous = stage.target
        return previous

    def iter_concurrency(
        self,
        duration_seconds: float,
        tick_interval: float = 1.0,
    ) -> Iterator[tuple[float, int]]:
        """Yield ``(elapsed, users)`` following the stages.

        Args:
            duration_seconds: Total duration to generate ticks for. May be
                shorter than the stages (the profile is cut) or longer (the
                last target is held).
            tick_interval: Seconds between ticks.

        Yields:
            ``(elapsed_seconds, users)`` for every tick.
        """
        for elapsed in _ticks(duration_seconds, tick_interval):
            yield (elapsed, self.users_at(elapsed))

    def describe(self) -> str:
        """Return a human-readable description.

        Returns:
            Description string, e.g. ``"Stages: 0 -> 50 (30s) -> 0 (60s)"``.
        """
        path = " -> ".join(
            [str(self._start_users), *(f"{s.target} ({s.duration_seconds:g}s)" for s in self._stages)]
        )
        return f"Stages: {path}"
