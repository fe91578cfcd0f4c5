"""Top-level load test orchestrator."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from gravyload._internal.logging import get_logger, setup_logging
from gravyload.engine.session import TestSession
from gravyload.metrics.export import InfluxExporter
from gravyload.metrics.thresholds import parse_thresholds
from gravyload.patterns import ConstantPattern, StagesPattern

if TYPE_CHECKING:
    from collections.abc import Callable

    from gravyload._internal.config import RunConfig
    from gravyload._internal.types import ThresholdSpec
    from gravyload.dsl.scenario import ScenarioDefinition
    from gravyload.metrics.models import IntervalSnapshot, RunSummary
    from gravyload.patterns.base import LoadPattern

logger = get_logger("engine.runner")


def resolve_load(
    config: RunConfig,
    scenario: ScenarioDefinition,
    *,
    users: int | None = None,
    duration_seconds: float | None = None,
) -> tuple[LoadPattern, float]:
    """Pick the load pattern and run length.

    Precedence, highest first: explicit *users*/*duration_seconds* (CLI
    flags), the config file, the scenario's own load options. Stages win
    over a constant user count unless *users* is given; the run then keeps
    the length of the stages it replaced.

    Args:
        config: Parsed run configuration.
        scenario: Scenario whose load options fill the gaps.
        users: Constant user count from the command line.
        duration_seconds: Run length from the command line.

    Returns:
        ``(pattern, duration_seconds)``.
    """
    defaults = scenario.load
    if config.stages:
        stages = config.stages
    elif config.vus is None and config.duration_seconds is None:
        stages = defaults.stages
    else:
        stages = ()

    if stages and users is None:
        pattern = StagesPattern(stages)
        return pattern, duration_seconds or pattern.duration_seconds

    vus = users or config.vus or defaults.vus
    stage_total = sum(stage.duration_seconds for stage in stages)
    duration = duration_seconds or stage_total or config.duration_seconds or defaults.duration_seconds
    return ConstantPattern(users=vus), duration


class LoadTestRunner:
    """Runs one scenario end to end and returns its summary.

    Wires together the load pattern, the test session and the optional
    metrics export. ``run()`` blocks until the run completes, is stopped by
    SIGINT/SIGTERM, or is aborted by a fatal sign-in failure.

    Attributes:
        config: The run configuration.
        scenario: The scenario being run.
        thresholds: Thresholds evaluated at the end of the run.
        on_snapshot: Called with each tick's IntervalSnapshot; may be
            replaced before :meth:`run`.
    """

    def __init__(
        self,
        config: RunConfig,
        scenario: ScenarioDefinition,
        *,
        users: int | None = None,
        duration_seconds: float | None = None,
        thresholds: ThresholdSpec | None = None,
        tick_interval: float = 1.0,
        on_snapshot: Callable[[IntervalSnapshot], None] | None = None,
        log_level: int = logging.INFO,
        json_logs: bool = False,
        export: bool = True,
        handle_signals: bool = True,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Target, credentials and defaults.
            scenario: Scenario to execute.
            users: Constant virtual users, overriding config and scenario.
            duration_seconds: Run length, overriding config and scenario.
            thresholds: Thresholds to evaluate. ``{}`` disables them; None
                uses the config's, then the scenario's.
            tick_interval: Seconds between concurrency adjustments.
            on_snapshot: Called with each tick's IntervalSnapshot.
            log_level: Logging level.
            json_logs: Emit logs as JSON lines.
            export: Push the summary to InfluxDB when configured.
            handle_signals: Install SIGINT/SIGTERM handlers while running.

        Raises:
            ConfigError: If the resolved load pattern is invalid.
            ThresholdError: If a threshold expression is invalid.
        """
        self.config = config
        self.scenario = scenario
        self._pattern, self._duration_seconds = resolve_load(
            config, scenario, users=users, duration_seconds=duration_seconds
        )
        self.thresholds = thresholds if thresholds is not None else (config.thresholds or scenario.thresholds)
        parse_thresholds(self.thresholds)
        self._tick_interval = tick_interval
        self.on_snapshot = on_snapshot
        self._log_level = log_level
        self._json_logs = json_logs
        self._export = export
        self._handle_signals = handle_signals

    @property
    def pattern(self) -> LoadPattern:
        return self._pattern

    @property
    def duration_seconds(self) -> float:
        return self._duration_seconds

    def run(self) -> RunSummary:
        """Execute the load test and return its summary.

        Raises:
            EngineError: If the run itself failed.
        """
        setup_logging(level=self._log_level, json_format=self._json_logs)
        return asyncio.run(self.run_async())

    async def run_async(self) -> RunSummary:
        """Same as :meth:`run`, inside an already running event loop."""
        logger.info(
            "Starting load test: scenario=%s, target=%s, duration=%.1fs, pattern=%s",
            self.scenario.name,
            self.config.base_url,
            self._duration_seconds,
            self._pattern.describe(),
        )
        session = TestSession(
            self.scenario,
            self.config,
            self._pattern,
            self._duration_seconds,
            thresholds=self.thresholds,
            tick_interval=self._tick_interval,
            on_snapshot=self.on_snapshot,
            handle_signals=self._handle_signals,
        )
        summary = await session.run()

        if self._export and self.config.influxdb is not None:
            exporter = InfluxExporter(self.config.influxdb, project_id=self.config.project_id)
            await exporter.export(summary)

        return summary
