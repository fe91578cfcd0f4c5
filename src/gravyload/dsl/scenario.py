"""Scenario definitions and the global scenario registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from gravyload._internal.errors import ScenarioError
from gravyload.dsl.steps import CallStep, LoopStep, iter_calls

if TYPE_CHECKING:
    from gravyload._internal.config import Stage
    from gravyload._internal.types import ThresholdSpec
    from gravyload.dsl.steps import Step


class SessionScope(Enum):
    """How long a bearer token is reused."""

    ITERATION = "iteration"
    USER = "user"


class AuthFailurePolicy(Enum):
    """What a failed sign-in does beyond skipping the iteration."""

    SKIP_ITERATION = "skip_iteration"
    ABORT_RUN = "abort_run"


@dataclass(frozen=True)
class LoadOptions:
    """Load profile a scenario was written for; the config file overrides it.

    Attributes:
        vus: Constant virtual users when no stages are given.
        duration_seconds: Run length when no stages are given.
        stages: Ramp profile.
    """

    vus: int = 1
    duration_seconds: float = 60.0
    stages: tuple[Stage, ...] = ()


@dataclass(frozen=True)
class ScenarioDefinition:
    """Complete, data-driven definition of one load test scenario.

    Attributes:
        name: Registry key, e.g. ``"create-team"``.
        steps: Ordered steps executed after a successful sign-in.
        description: One-line summary for ``gravyload scenarios``.
        session_scope: Sign in every iteration, or once per virtual user.
        on_auth_failure: Skip the iteration, or stop the whole run.
        thresholds: Default thresholds when the config defines none.
        load: Default load profile.
    """

    name: str
    steps: tuple[Step, ...]
    description: str = ""
    session_scope: SessionScope = SessionScope.ITERATION
    on_auth_failure: AuthFailurePolicy = AuthFailurePolicy.SKIP_ITERATION
    thresholds: ThresholdSpec = field(default_factory=dict)
    load: LoadOptions = field(default_factory=LoadOptions)

    def __post_init__(self) -> None:
        if not self.name:
            msg = "scenario name must not be empty"
            raise ScenarioError(msg)
        if not self.steps:
            msg = f"scenario {self.name!r} has no steps"
            raise ScenarioError(msg)
        _check_unbounded_loops(self.name, self.steps)

    @property
    def endpoints(self) -> list[str]:
        """Distinct endpoint names in first-use order."""
        seen: dict[str, None] = {}
        for call in iter_calls(self.steps):
            seen.setdefault(call.endpoint, None)
        return list(seen)


def _check_unbounded_loops(name: str, steps: tuple[Step, ...]) -> None:
    for step in steps:
        if isinstance(step, LoopStep):
            if step.iterations is None and not any(isinstance(s, CallStep) for s in step.steps):
                msg = f"scenario {name!r}: an unbounded loop needs at least one top-level call step"
                raise ScenarioError(msg)
            _check_unbounded_loops(name, step.steps)


class ScenarioRegistry:
    """Registry of scenario definitions, keyed by name."""

    def __init__(self) -> None:
        self._scenarios: dict[str, ScenarioDefinition] = {}

    def register(self, definition: ScenarioDefinition) -> ScenarioDefinition:
        """Register *definition* and return it.

        Raises:
            ScenarioError: If the name is already registered.
        """
        if definition.name in self._scenarios:
            msg = f"Scenario {definition.name!r} is already registered"
            raise ScenarioError(msg)
        self._scenarios[definition.name] = definition
        return definition

    def get(self, name: str) -> ScenarioDefinition | None:
        """Look up a scenario by name, or None."""
        return self._scenarios.get(name)

    def require(self, name: str) -> ScenarioDefinition:
        """Look up a scenario by name.

        Raises:
            ScenarioError: If no such scenario exists.
        """
        definition = self._scenarios.get(name)
        if definition is None:
            known = ", ".join(sorted(self._scenarios)) or "none"
            msg = f"Unknown scenario {name!r}. Available: {known}"
            raise ScenarioError(msg)
        return definition

    def get_all(self) -> list[ScenarioDefinition]:
        """Return all registered scenarios in registration order."""
        return list(self._scenarios.values())

    def clear(self) -> None:
        """Remove all registered scenarios. Primarily for testing."""
        self._scenarios.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._scenarios

    def __len__(self) -> int:
        return len(self._scenarios)


# Global singleton registry; built-in scenarios register on import of
# ``gravyload.scenarios``.
registry = ScenarioRegistry()
