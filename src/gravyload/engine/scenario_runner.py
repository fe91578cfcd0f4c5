"""One virtual user's scenario iteration: sign in, run steps, record outcomes."""

from __future__ import annotations

import asyncio
import contextlib
from enum import Enum, auto
from typing import TYPE_CHECKING

from gravyload._internal.config import DEFAULT_TOKEN_PATH
from gravyload._internal.errors import AuthenticationError
from gravyload._internal.logging import get_logger
from gravyload.dsl.scenario import AuthFailurePolicy, SessionScope
from gravyload.dsl.steps import CallStep, GateStep, LoopStep, PauseStep
from gravyload.engine.auth import SessionManager
from gravyload.engine.gates import GateStore
from gravyload.metrics.classifier import CallClassifier

if TYPE_CHECKING:
    from gravyload._internal.config import Credential
    from gravyload.dsl.http_client import HttpClient
    from gravyload.dsl.scenario import ScenarioDefinition
    from gravyload.dsl.steps import Step
    from gravyload.engine.auth import Session
    from gravyload.metrics.counters import MetricSet

logger = get_logger("engine.scenario_runner")


class RunnerState(Enum):
    """State machine for one iteration.

    START -> AUTHENTICATING -> AUTHENTICATED -> EXECUTING_STEPS -> DONE
                            -> AUTH_FAILED -> DONE
    EXECUTING_STEPS -> CANCELLED -> DONE when the stop signal is seen.
    """

    START = auto()
    AUTHENTICATING = auto()
    AUTHENTICATED = auto()
    AUTH_FAILED = auto()
    EXECUTING_STEPS = auto()
    CANCELLED = auto()
    DONE = auto()


class ScenarioRunner:
    """Runs scenario iterations for one virtual user.

    Steps execute strictly in order. Every call is classified exactly once
    before the next step starts, and no call is made without a token. The
    stop event is checked between steps and wakes pauses early, but never
    interrupts an in-flight call. Nothing is retried.

    Attributes:
        state: Current state of the latest iteration.
        transitions: States visited by the latest iteration, in order.
    """

    def __init__(
        self,
        client: HttpClient,
        metrics: MetricSet,
        *,
        token_path: str = DEFAULT_TOKEN_PATH,
        gates: GateStore | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            client: Open HTTP client bound to the target base URL.
            metrics: Run-wide counters shared with other runners.
            token_path: Dotted path of the token in the sign-in response.
            gates: Run-wide gate flags. A private store is created if omitted.
            stop_event: Run-wide stop signal. A private event is created if omitted.
        """
        self._client = client
        self._sessions = SessionManager(client, metrics, token_path)
        self._classifier = CallClassifier(metrics)
        self._gates = gates if gates is not None else GateStore()
        self._stop_event = stop_event if stop_event is not None else asyncio.Event()
        self._cached_session: Session | None = None
        self.state = RunnerState.START
        self.transitions: list[RunnerState] = []

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the current iteration to finish after its in-flight step."""
        self._stop_event.set()

    async def run(self, credential: Credential, definition: ScenarioDefinition) -> RunnerState:
        """Run one iteration of *definition* as *credential*.

        Returns:
            The final state, always ``DONE``. See :attr:`transitions` for the path.

        Raises:
            AuthenticationError: If sign-in fails and the scenario's policy
                is ``ABORT_RUN``. Under ``SKIP_ITERATION`` the failure is
                recorded and the iteration simply ends.
        """
        self.transitions = []
        self._transition(RunnerState.START)

        session = await self._obtain_session(credential, definition)
        if session is None:
            self._transition(RunnerState.DONE)
            return self.state

        self._transition(RunnerState.EXECUTING_STEPS)
        completed = await self._execute(definition.steps, session)
        if not completed:
            self._transition(RunnerState.CANCELLED)
        self._transition(RunnerState.DONE)
        return self.state

    async def _obtain_session(self, credential: Credential, definition: ScenarioDefinition) -> Session | None:
        cached = self._cached_session
        if (
            definition.session_scope is SessionScope.USER
            and cached is not None
            and cached.credential == credential
        ):
            self._transition(RunnerState.AUTHENTICATED)
            return cached

        self._cached_session = None
        self._transition(RunnerState.AUTHENTICATING)
        try:
            session = await self._sessions.authenticate(credential)
        except AuthenticationError:
            self._transition(RunnerState.AUTH_FAILED)
            if definition.on_auth_failure is AuthFailurePolicy.ABORT_RUN:
                self._transition(RunnerState.DONE)
                raise
            return None

        self._transition(RunnerState.AUTHENTICATED)
        if definition.session_scope is SessionScope.USER:
            self._cached_session = session
        return session

    async def _execute(self, steps: tuple[Step, ...], session: Session) -> bool:
        """Run *steps* in order; return False if the stop signal cut them short."""
        email = session.credential.email
        for step in steps:
            if self.stopped:
                return False

            if isinstance(step, CallStep):
                response = await self._client.send(
                    step.method,
                    step.path,
                    name=step.endpoint,
                    json=step.build_body(),
                    token=session.token,
                )
                outcome = self._classifier.record(step.endpoint, step.expected_status, response)
                if step.flag is not None:
                    self._gates.set(email, step.flag, outcome.succeeded)

            elif isinstance(step, PauseStep):
                await self._pause(step.seconds)

            elif isinstance(step, GateStep):
                if not self._gates.get(email, step.flag):
                    logger.debug("Gate %r closed for %s, skipping %d steps", step.flag, email, len(step.steps))
                    continue
                if not await self._execute(step.steps, session):
                    return False

            elif isinstance(step, LoopStep):
                passes = 0
                while step.iterations is None or passes < step.iterations:
                    if not await self._execute(step.steps, session):
                        return False
                    passes += 1
                    await asyncio.sleep(0)

        return True

    async def _pause(self, seconds: float) -> None:
        if seconds <= 0 or self.stopped:
            return
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)

    def _transition(self, state: RunnerState) -> None:
        self.state = state
        self.transitions.append(state)
