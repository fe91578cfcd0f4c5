"""Virtual-user load patterns for gravyload.

Every pattern implements :class:`LoadPattern` and yields
``(elapsed_seconds, target_users)`` tuples via :meth:`iter_concurrency`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from gravyload.patterns.base import LoadPattern
from gravyload.patterns.constant import ConstantPattern
from gravyload.patterns.ramp import RampPattern
from gravyload.patterns.stages import StagesPattern

if TYPE_CHECKING:
    from gravyload._internal.config import Stage

__all__ = [
    "ConstantPattern",
    "LoadPattern",
    "RampPattern",
    "StagesPattern",
    "build_pattern",
]


def build_pattern(users: int, stages: tuple[Stage, ...] = ()) -> LoadPattern:
    """Pick the pattern for a run: stages when given, else constant *users*."""
    if stages:
        return StagesPattern(stages)
    return ConstantPattern(users=users)
