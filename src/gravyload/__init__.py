"""gravyload: session-and-metrics load testing for the SportsGravy API."""

from __future__ import annotations

from gravyload._internal.config import Credential, RunConfig, Stage, load_config
from gravyload.dsl.http_client import CallResponse, HttpClient, RequestMetric
from gravyload.dsl.scenario import (
    AuthFailurePolicy,
    LoadOptions,
    ScenarioDefinition,
    SessionScope,
    registry,
)
from gravyload.dsl.steps import gate, get, pause, post, repeat
from gravyload.engine.runner import LoadTestRunner
from gravyload.engine.scenario_runner import RunnerState, ScenarioRunner
from gravyload.metrics.counters import MetricSet
from gravyload.metrics.models import CallOutcome, RunSummary
from gravyload.patterns import ConstantPattern, LoadPattern, RampPattern, StagesPattern

__version__ = "0.1.0"

__all__ = [
    "AuthFailurePolicy",
    "CallOutcome",
    "CallResponse",
    "ConstantPattern",
    "Credential",
    "HttpClient",
    "LoadOptions",
    "LoadPattern",
    "LoadTestRunner",
    "MetricSet",
    "RampPattern",
    "RequestMetric",
    "RunConfig",
    "RunSummary",
    "RunnerState",
    "ScenarioDefinition",
    "ScenarioRunner",
    "SessionScope",
    "Stage",
    "StagesPattern",
    "gate",
    "get",
    "load_config",
    "pause",
    "post",
    "registry",
    "repeat",
]
