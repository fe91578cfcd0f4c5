"""``gravyload run`` and ``gravyload scenarios``: execute scenarios with live terminal output."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

import gravyload.scenarios  # noqa: F401  registers the built-in scenarios
from gravyload._internal.config import load_config, parse_duration
from gravyload._internal.errors import GravyLoadError
from gravyload.dsl.loader import load_scenario
from gravyload.dsl.scenario import registry
from gravyload.engine.runner import LoadTestRunner

if TYPE_CHECKING:
    from gravyload.dsl.scenario import ScenarioDefinition
    from gravyload.metrics.models import IntervalSnapshot, RunSummary

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Rich live display
# ---------------------------------------------------------------------------


def _make_live_table(snapshot: IntervalSnapshot | None) -> Table:
    """Build the table shown while the run is in progress.

    Args:
        snapshot: Latest interval snapshot, or None before the first tick.

    Returns:
        A Rich Table ready for ``Live.update``.
    """
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if snapshot is None:
        table.add_row("Elapsed", "0s")
        table.add_row("Status", "Starting...")
        return table

    table.add_row("Elapsed", f"{snapshot.elapsed_seconds:.0f}s")
    table.add_row("Active Users", str(snapshot.active_users))
    table.add_row("Calls/sec", f"{snapshot.calls_per_second:.1f}")
    table.add_row("Calls (interval)", str(snapshot.total_calls))
    table.add_row("Failures (interval)", str(snapshot.failures))
    table.add_row("p50 Latency", f"{snapshot.latency_p50:.1f}ms")
    table.add_row("p95 Latency", f"{snapshot.latency_p95:.1f}ms")
    return table


def _print_summary(summary: RunSummary) -> None:
    """Print counters, latency and thresholds after the run.

    Args:
        summary: The finished run's summary.
    """
    counters = Table(title="Calls", show_header=True, header_style="bold cyan", expand=True)
    counters.add_column("Endpoint")
    counters.add_column("Attempts", justify="right")
    counters.add_column("Successes", justify="right")
    counters.add_column("Failures", justify="right")
    counters.add_column("avg", justify="right")
    counters.add_column("p95", justify="right")
    for endpoint, counts in summary.counters.items():
        stats = summary.endpoint_latency.get(endpoint)
        counters.add_row(
            endpoint,
            str(counts.attempts),
            str(counts.successes),
            f"[red]{counts.failures}[/red]" if counts.failures else "0",
            f"{stats.avg:.1f}ms" if stats else "-",
            f"{stats.p95:.1f}ms" if stats else "-",
        )
    console.print(counters)

    if summary.thresholds:
        thresholds = Table(title="Thresholds", show_header=True, header_style="bold cyan", expand=True)
        thresholds.add_column("Metric")
        thresholds.add_column("Expression")
        thresholds.add_column("Observed", justify="right")
        thresholds.add_column("Result", justify="right")
        for result in summary.thresholds:
            thresholds.add_row(
                result.metric,
                result.expression,
                f"{result.observed:.4g}",
                "[green]pass[/green]" if result.passed else "[red]FAIL[/red]",
            )
        console.print(thresholds)

    overview = Table(title="Run Complete", show_header=True, header_style="bold green", expand=True)
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Scenario", summary.scenario_name)
    overview.add_row("Pattern", summary.pattern_description)
    overview.add_row("Duration", f"{summary.duration_seconds:.1f}s")
    overview.add_row("Requests", str(summary.latency.count))
    overview.add_row("p95 Latency", f"{summary.latency.p95:.1f}ms")
    overview.add_row("Error Rate", f"{summary.error_rate * 100:.2f}% of {summary.error_samples}")
    if summary.aborted:
        overview.add_row("Aborted", f"[red]{summary.abort_reason}[/red]")
    console.print(overview)


def _resolve_scenario(name: str, scenario_file: Path | None) -> ScenarioDefinition:
    """Look *name* up in *scenario_file*, or among the built-ins when no file is given.

    Raises:
        ScenarioError: If the file cannot be loaded or the name is unknown.
    """
    if scenario_file is not None:
        return load_scenario(scenario_file, name=name)
    return registry.require(name)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def run_cmd(
    scenario: str = typer.Argument(
        ...,
        help="Scenario name (see 'gravyload scenarios'), or its name inside --scenario-file.",
    ),
    config: Path = typer.Option(
        Path("config.json"),
        "--config",
        "-c",
        help="Path to the JSON config file.",
    ),
    users: int | None = typer.Option(
        None,
        "--users",
        "-u",
        help="Constant virtual users (overrides config stages and scenario defaults).",
        min=1,
    ),
    duration: str | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Run length, e.g. 30s, 5m, 1h30m.",
    ),
    scenario_file: Path | None = typer.Option(
        None,
        "--scenario-file",
        "-f",
        help="Load the scenario from a Python file instead of the built-ins.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    summary_json: Path | None = typer.Option(
        None,
        "--summary-json",
        help="Also write the run summary to this JSON file.",
    ),
    no_thresholds: bool = typer.Option(
        False,
        "--no-thresholds",
        help="Do not evaluate thresholds.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit log records as JSON lines.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
) -> None:
    """Run a scenario and exit non-zero if a threshold fails or the run aborts."""
    try:
        run_config = load_config(config)
        definition = _resolve_scenario(scenario, scenario_file)
        duration_seconds = parse_duration(duration, "--duration") if duration is not None else None
        test_runner = LoadTestRunner(
            run_config,
            definition,
            users=users,
            duration_seconds=duration_seconds,
            thresholds={} if no_thresholds else None,
            log_level=logging.DEBUG if verbose else logging.INFO,
            json_logs=json_logs,
        )
    except GravyLoadError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            f"[bold]Scenario:[/bold] {definition.name}\n"
            f"[bold]Target:[/bold]   {run_config.base_url}\n"
            f"[bold]Pattern:[/bold]  {test_runner.pattern.describe()}\n"
            f"[bold]Duration:[/bold] {test_runner.duration_seconds:g}s\n"
            f"[bold]Users:[/bold]    {len(run_config.credentials)} credentials",
            title="gravyload",
            border_style="cyan",
        )
    )

    try:
        with Live(_make_live_table(None), console=console, refresh_per_second=2, transient=True) as live:
            test_runner.on_snapshot = lambda snapshot: live.update(_make_live_table(snapshot))
            summary = test_runner.run()
    except GravyLoadError as exc:
        console.print(f"[red]Load test failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    _print_summary(summary)

    if summary_json is not None:
        summary_json.parent.mkdir(parents=True, exist_ok=True)
        summary_json.write_text(json.dumps(summary.to_dict(), indent=2), encoding="utf-8")
        console.print(f"Summary written to {summary_json}")

    if summary.aborted:
        console.print(f"[red]ABORTED:[/red] {summary.abort_reason}")
        raise typer.Exit(code=1)
    if not summary.thresholds_passed:
        failed = [f"{r.metric} {r.expression}" for r in summary.thresholds if not r.passed]
        console.print(f"[red]FAIL:[/red] thresholds breached: {', '.join(failed)}")
        raise typer.Exit(code=1)

    console.print("[green]Load test passed.[/green]")


def scenarios_cmd() -> None:
    """List the built-in scenarios."""
    table = Table(title="Scenarios", show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Name", style="bold")
    table.add_column("Endpoints")
    table.add_column("Session")
    table.add_column("On sign-in failure")
    table.add_column("Description")
    for definition in registry.get_all():
        table.add_row(
            definition.name,
            ", ".join(definition.endpoints) or "-",
            definition.session_scope.value,
            definition.on_auth_failure.value,
            definition.description,
        )
    Console().print(table)
