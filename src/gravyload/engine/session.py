"""Test session lifecycle: virtual users, ticks, shutdown and the run summary."""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from gravyload._internal.errors import AuthenticationError, EngineError
from gravyload._internal.logging import get_logger
from gravyload.dsl.http_client import HttpClient
from gravyload.dsl.scenario import SessionScope
from gravyload.engine._user_utils import VirtualUser, pick_credential, shutdown_all_users
from gravyload.engine.gates import GateStore
from gravyload.engine.scenario_runner import ScenarioRunner
from gravyload.engine.scheduler import Scheduler
from gravyload.metrics.collector import IntervalCollector
from gravyload.metrics.counters import MetricSet
from gravyload.metrics.histogram import LatencyRecorder
from gravyload.metrics.models import RunSummary
from gravyload.metrics.thresholds import evaluate_thresholds, parse_thresholds

if TYPE_CHECKING:
    from collections.abc import Callable

    from gravyload._internal.config import RunConfig
    from gravyload._internal.types import ThresholdSpec
    from gravyload.dsl.scenario import ScenarioDefinition
    from gravyload.metrics.models import IntervalSnapshot
    from gravyload.patterns.base import LoadPattern

logger = get_logger("engine.session")


class SessionState(Enum):
    """State machine for a test session."""

    CREATED = auto()
    STARTING = auto()
    RUNNING = auto()
    STOPPING = auto()
    COMPLETED = auto()
    ABORTED = auto()
    FAILED = auto()


class TestSession:
    """Runs one scenario under a load pattern in the current event loop.

    Every virtual user is an asyncio task with its own ``HttpClient`` and
    ``ScenarioRunner``. All runners share one ``MetricSet``, one
    ``LatencyRecorder`` and one ``GateStore``; nothing is global.

    State machine: CREATED -> STARTING -> RUNNING -> STOPPING -> COMPLETED
                                                  -> ABORTED (fatal sign-in)
                                                  -> FAILED (on error)
    """

    __test__ = False  # not a pytest class despite the name

    def __init__(
        self,
        scenario: ScenarioDefinition,
        config: RunConfig,
        pattern: LoadPattern,
        duration_seconds: float,
        *,
        thresholds: ThresholdSpec | None = None,
        tick_interval: float = 1.0,
        on_snapshot: Callable[[IntervalSnapshot], None] | None = None,
        handle_signals: bool = True,
    ) -> None:
        """Initialize a test session.

        Args:
            scenario: The scenario to execute.
            config: Target, credentials, token path and request timeout.
            pattern: Virtual-user curve.
            duration_seconds: Run length in seconds.
            thresholds: Pass/fail thresholds. Defaults to the config's, or
                the scenario's when the config has none.
            tick_interval: Seconds between concurrency adjustments.
            on_snapshot: Called with each tick's IntervalSnapshot.
            handle_signals: Install SIGINT/SIGTERM handlers for graceful stop.

        Raises:
            ThresholdError: If a threshold expression is invalid.
        """
        self._scenario = scenario
        self._config = config
        self._pattern = pattern
        self._duration_seconds = duration_seconds
        self._thresholds = thresholds if thresholds is not None else (config.thresholds or scenario.thresholds)
        self._tick_interval = tick_interval
        self._on_snapshot = on_snapshot
        self._handle_signals = handle_signals

        # Fail before any traffic is sent.
        parse_thresholds(self._thresholds)

        self._state = SessionState.CREATED
        self._metrics = MetricSet()
        self._latency = LatencyRecorder()
        self._gates = GateStore()
        self._collector = IntervalCollector()
        self._metrics.subscribe(self._collector.record)

        self._users: list[VirtualUser] = []
        self._retiring: list[VirtualUser] = []
        self._next_user_id = 0
        self._stop_event = asyncio.Event()
        self._abort_reason: str | None = None
        self._user_error: BaseException | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def metrics(self) -> MetricSet:
        return self._metrics

    @property
    def latency(self) -> LatencyRecorder:
        return self._latency

    @property
    def gates(self) -> GateStore:
        return self._gates

    @property
    def active_user_count(self) -> int:
        return len(self._users)

    async def run(self) -> RunSummary:
        """Execute the session and build its summary.

        Returns:
            The RunSummary, with thresholds evaluated.

        Raises:
            EngineError: If the tick loop or a virtual user failed unexpectedly.
        """
        self._state = SessionState.STARTING
        logger.info(
            "Starting test session: scenario=%s, duration=%.1fs, pattern=%s, credentials=%d",
            self._scenario.name,
            self._duration_seconds,
            self._pattern.describe(),
            len(self._config.credentials),
        )

        if self._handle_signals:
            self._install_signal_handlers()

        scheduler = Scheduler(self._pattern, self._duration_seconds, self._tick_interval)
        start_time = time.monotonic()
        snapshots: list[IntervalSnapshot] = []
        self._state = SessionState.RUNNING

        try:
            for command in scheduler.iter_commands():
                if await self._wait_until(start_time + command.elapsed_seconds):
                    break

                self._scale_users(command.target_users)

                elapsed = time.monotonic() - start_time
                snapshot = self._collector.flush(elapsed_seconds=elapsed, active_users=self.active_user_count)
                snapshots.append(snapshot)
                if self._on_snapshot is not None:
                    self._on_snapshot(snapshot)

                logger.debug(
                    "Tick %.1fs: users=%d, calls/s=%.1f, p95=%.1fms, failures=%d",
                    elapsed,
                    self.active_user_count,
                    snapshot.calls_per_second,
                    snapshot.latency_p95,
                    snapshot.failures,
                )

        except Exception as exc:
            self._state = SessionState.FAILED
            logger.exception("Test session failed")
            raise EngineError("Test session failed") from exc
        finally:
            if self._state != SessionState.FAILED:
                self._state = SessionState.STOPPING
            self._stop_event.set()
            await shutdown_all_users(self._users + self._retiring, self._config.request_timeout)
            self._users.clear()
            self._retiring.clear()
            if self._handle_signals:
                self._remove_signal_handlers()

        if self._user_error is not None:
            self._state = SessionState.FAILED
            raise EngineError("A virtual user failed") from self._user_error

        total_duration = time.monotonic() - start_time
        snapshots.append(self._collector.flush(elapsed_seconds=total_duration, active_users=0))

        summary = RunSummary(
            scenario_name=self._scenario.name,
            duration_seconds=total_duration,
            pattern_description=self._pattern.describe(),
            counters=self._metrics.snapshot(),
            error_rate=self._metrics.error_rate,
            error_samples=self._metrics.error_samples,
            latency=self._latency.overall(),
            endpoint_latency=self._latency.by_endpoint(),
            thresholds=evaluate_thresholds(self._thresholds, self._metrics, self._latency),
            snapshots=snapshots,
            aborted=self._abort_reason is not None,
            abort_reason=self._abort_reason,
        )

        self._state = SessionState.ABORTED if summary.aborted else SessionState.COMPLETED
        logger.info(
            "Test %s: duration=%.1fs, calls=%d, error_rate=%.2f%%, p95=%.1fms, thresholds=%s",
            "aborted" if summary.aborted else "completed",
            total_duration,
            sum(c.attempts for c in summary.counters.values()),
            summary.error_rate * 100,
            summary.latency.p95,
            "passed" if summary.thresholds_passed else "FAILED",
        )
        return summary

    def stop(self) -> None:
        """Request a graceful stop; in-flight calls finish and are counted."""
        if self._state == SessionState.RUNNING:
            logger.info("Graceful shutdown requested")
            self._request_stop()

    def _request_stop(self) -> None:
        self._stop_event.set()
        for user in self._users:
            user.stop_event.set()

    async def _wait_until(self, deadline: float) -> bool:
        """Sleep until *deadline* (monotonic) or the stop signal; True if stopped."""
        remaining = deadline - time.monotonic()
        if remaining > 0 and not self._stop_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=remaining)
        return self._stop_event.is_set()

    async def _run_virtual_user(self, user: VirtualUser) -> None:
        """Run iterations for one virtual user until it is told to stop."""
        async with HttpClient(
            base_url=self._config.base_url,
            metric_callback=self._latency.record,
            timeout=self._config.request_timeout,
        ) as client:
            runner = ScenarioRunner(
                client,
                self._metrics,
                token_path=self._config.token_path,
                gates=self._gates,
                stop_event=user.stop_event,
            )
            # A user-scoped session keeps its first credential for the whole lifetime.
            pinned = self._scenario.session_scope is SessionScope.USER
            iteration = 0
            try:
                while not user.stop_event.is_set():
                    credential = pick_credential(
                        self._config.credentials, user.user_id, 0 if pinned else iteration
                    )
                    await runner.run(credential, self._scenario)
                    iteration += 1
                    # Yield even when every step failed fast.
                    await asyncio.sleep(0)
            except AuthenticationError as exc:
                self._abort(f"{exc.reason} (status {exc.status})")
            except Exception as exc:
                logger.exception("Virtual user %d failed", user.user_id)
                if self._user_error is None:
                    self._user_error = exc
                self._request_stop()

    def _abort(self, reason: str) -> None:
        if self._abort_reason is None:
            self._abort_reason = reason
            logger.error("Aborting run %s: %s", self._scenario.name, reason)
        self._request_stop()

    def _scale_users(self, target: int) -> None:
        """Start or retire virtual users so that *target* are running."""
        self._users = [u for u in self._users if not u.done]
        self._retiring = [u for u in self._retiring if not u.done]
        current = len(self._users)

        if target > current:
            for _ in range(target - current):
                user = VirtualUser(user_id=self._next_user_id)
                self._next_user_id += 1
                user.task = asyncio.create_task(
                    self._run_virtual_user(user),
                    name=f"virtual-user-{user.user_id}",
                )
                self._users.append(user)

        elif target < current:
            # Retire the newest users; they finish their current step first.
            for _ in range(current - target):
                user = self._users.pop()
                user.stop_event.set()
                self._retiring.append(user)

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def _signal_handler() -> None:
            logger.info("Signal received, initiating graceful shutdown")
            self._request_stop()

        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGINT, _signal_handler)
            loop.add_signal_handler(signal.SIGTERM, _signal_handler)
        else:
            signal.signal(signal.SIGINT, lambda _s, _f: _signal_handler())
            signal.signal(signal.SIGTERM, lambda _s, _f: _signal_handler())

    def _remove_signal_handlers(self) -> None:
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
