"""Scenario step types and small constructors for building step lists.

A scenario is an ordered list of steps:

- ``CallStep``: one HTTP call, classified against an expected status.
- ``PauseStep``: fixed think time.
- ``GateStep``: run nested steps only if a per-user flag is set.
- ``LoopStep``: repeat nested steps a fixed number of times, or until stopped.

Example::

    steps = [
        get("connection", "/connection", flag="connections_fetched"),
        pause(2),
        gate("connections_fetched", post("team", "/team", TEAM_PAYLOAD)),
        repeat(None, post("long_post", "/post", LONG_POST), pause(1)),
    ]
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

from gravyload._internal.errors import ScenarioError

if TYPE_CHECKING:
    from gravyload._internal.types import Payload

_READ_STATUS = 200
_CREATE_STATUS = 201


@dataclass(frozen=True)
class CallStep:
    """One scripted HTTP call.

    Attributes:
        endpoint: Metric name, e.g. ``"team"``; counters become
            ``team.attempts`` and so on.
        method: HTTP method.
        path: Path appended to the base URL.
        expected_status: The only status counted as success.
        payload: Static JSON body template, deep-copied per request.
        flag: Optional gate flag set to the call's success for the
            current credential.
    """

    endpoint: str
    method: str
    path: str
    expected_status: int
    payload: Payload | None = None
    flag: str | None = None

    def build_body(self) -> Payload | None:
        """Return a fresh copy of the payload template."""
        return copy.deepcopy(self.payload) if self.payload is not None else None


@dataclass(frozen=True)
class PauseStep:
    """Fixed pause in seconds before the next step."""

    seconds: float


@dataclass(frozen=True)
class GateStep:
    """Run *steps* only if *flag* is true for the current credential."""

    flag: str
    steps: tuple[Step, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class LoopStep:
    """Repeat *steps*.

    Attributes:
        steps: Steps executed in order on every pass.
        iterations: Number of passes, or None to loop until the run stops.
    """

    steps: tuple[Step, ...]
    iterations: int | None = None


Step = Union[CallStep, PauseStep, GateStep, LoopStep]


def get(endpoint: str, path: str, *, flag: str | None = None, expected_status: int = _READ_STATUS) -> CallStep:
    """Build a GET call step (expects 200 by default)."""
    return CallStep(endpoint=endpoint, method="GET", path=path, expected_status=expected_status, flag=flag)


def post(
    endpoint: str,
    path: str,
    payload: Payload,
    *,
    flag: str | None = None,
    expected_status: int = _CREATE_STATUS,
) -> CallStep:
    """Build a POST call step (expects 201 by default)."""
    return CallStep(
        endpoint=endpoint,
        method="POST",
        path=path,
        expected_status=expected_status,
        payload=payload,
        flag=flag,
    )


def pause(seconds: float) -> PauseStep:
    """Build a pause step.

    Raises:
        ScenarioError: If *seconds* is negative.
    """
    if seconds < 0:
        msg = f"pause must be >= 0 seconds, got {seconds}"
        raise ScenarioError(msg)
    return PauseStep(seconds=seconds)


def gate(flag: str, *steps: Step) -> GateStep:
    """Build a gate step guarding *steps* behind *flag*.

    Raises:
        ScenarioError: If no steps are guarded.
    """
    if not steps:
        msg = f"gate {flag!r} must guard at least one step"
        raise ScenarioError(msg)
    return GateStep(flag=flag, steps=tuple(steps))


def repeat(iterations: int | None, *steps: Step) -> LoopStep:
    """Build a loop step; ``iterations=None`` loops until the run stops.

    Raises:
        ScenarioError: If the loop is empty or *iterations* is below 1.
    """
    if not steps:
        msg = "repeat must contain at least one step"
        raise ScenarioError(msg)
    if iterations is not None and iterations < 1:
        msg = f"repeat iterations must be >= 1, got {iterations}"
        raise ScenarioError(msg)
    return LoopStep(steps=tuple(steps), iterations=iterations)


def iter_calls(steps: tuple[Step, ...]) -> list[CallStep]:
    """Flatten nested steps into the call steps they contain, in order."""
    calls: list[CallStep] = []
    for step in steps:
        if isinstance(step, CallStep):
            calls.append(step)
        elif isinstance(step, GateStep | LoopStep):
            calls.extend(iter_calls(step.steps))
    return calls
