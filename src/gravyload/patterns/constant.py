"""Constant pattern: a fixed number of virtual users (k6 ``vus`` + ``duration``)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gravyload._internal.errors import ConfigError
from gravyload.patterns.base import LoadPattern, _ticks

if TYPE_CHECKING:
    from collections.abc import Iterator


class ConstantPattern(LoadPattern):
    """Keep *users* virtual users running for the whole run.

    Every tick yields the same concurrency value, as with k6's plain
    ``vus``/``duration`` options.

    Args:
        users: Number of concurrent virtual users. Must be >= 1.

    Raises:
        ConfigError: If *users* < 1.
    """

    def __init__(self, users: int) -> None:
        if users < 1:
            msg = f"users must be >= 1, got {users}"
            raise ConfigError(msg)
        self._users = users

    @property
    def max_users(self) -> int:
        return self._users

    def iter_concurrency(
        self,
        duration_seconds: float,
        tick_interval: float = 1.0,
    ) -> Iterator[tuple[float, int]]:
        """Yield ``(elapsed, users)`` at every tick.

        Args:
            duration_seconds: Total duration to generate ticks for.
            tick_interval: Seconds between ticks.

        Yields:
            ``(elapsed_seconds, users)`` where *users* is always the
            configured constant value.
        """
        for elapsed in _ticks(duration_seconds, tick_interval):
            yield (elapsed, self._users)

    def describe(self) -> str:
        """Return a human-readable description.

        Returns:
            Description string, e.g. ``"Constant: 10 users"``.
        """
        return f"Constant: {self._users} users"
