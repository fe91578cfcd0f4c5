"""End-to-end tests for the gravyload CLI."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from gravyload import __version__
from gravyload.cli.app import app

if TYPE_CHECKING:
    from tests.conftest import FakeSportsGravy

runner = CliRunner()

CUSTOM_SCENARIO = Path(__file__).resolve().parents[2] / "examples" / "custom_scenario.py"


# ---------------------------------------------------------------------------
# Tests: version and help
# ---------------------------------------------------------------------------


def test_version_flag():
    """--version prints version and exits 0."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"gravyload {__version__}" in result.output


def test_version_short_flag():
    result = runner.invoke(app, ["-V"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_output():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "gravyload" in result.output.lower()


def test_run_help():
    """gravyload run --help shows run options."""
    result = runner.invoke(app, ["run", "--help"])
    assert result.exit_code == 0
    assert "--users" in result.output
    assert "--duration" in result.output
    assert "--config" in result.output


# ---------------------------------------------------------------------------
# Tests: gravyload scenarios
# ---------------------------------------------------------------------------


def test_scenarios_lists_builtins():
    result = runner.invoke(app, ["scenarios"], env={"COLUMNS": "250"})
    assert result.exit_code == 0
    for name in ("sign-in", "create-team", "long-post", "combined", "connection-gated"):
        assert name in result.output
    assert "abort_run" in result.output


# ---------------------------------------------------------------------------
# Tests: gravyload init
# ---------------------------------------------------------------------------


def test_init_creates_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """gravyload init writes config.json in cwd."""
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0
    data = json.loads((tmp_path / "config.json").read_text())
    assert data["baseUrl"].startswith("https://")
    assert data["users"]
    assert data["thresholds"]["errors"] == ["rate<0.01"]


def test_init_custom_path(tmp_path: Path):
    target = tmp_path / "envs" / "dev.json"
    result = runner.invoke(app, ["init", str(target)])
    assert result.exit_code == 0
    assert target.exists()


def test_init_rejects_existing_file(tmp_path: Path):
    target = tmp_path / "config.json"
    target.write_text("{}")
    result = runner.invoke(app, ["init", str(target)])
    assert result.exit_code == 1
    assert "already exists" in result.output
    assert target.read_text() == "{}"


def test_init_force_overwrites(tmp_path: Path):
    target = tmp_path / "config.json"
    target.write_text("{}")
    result = runner.invoke(app, ["init", str(target), "--force"])
    assert result.exit_code == 0
    assert "baseUrl" in target.read_text()


# ---------------------------------------------------------------------------
# Tests: gravyload run (errors before any traffic)
# ---------------------------------------------------------------------------


def test_run_missing_config(tmp_path: Path):
    result = runner.invoke(app, ["run", "create-team", "--config", str(tmp_path / "missing.json")])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_run_unknown_scenario(config_file: Path):
    result = runner.invoke(app, ["run", "no-such-scenario", "--config", str(config_file)])
    assert result.exit_code == 1
    assert "Unknown scenario" in result.output


def test_run_bad_duration(config_file: Path):
    result = runner.invoke(app, ["run", "create-team", "--config", str(config_file), "--duration", "soon"])
    assert result.exit_code == 1
    assert "Error" in result.output


# ---------------------------------------------------------------------------
# Tests: gravyload run
# ---------------------------------------------------------------------------


@pytest.mark.slow
def test_run_passes(config_file: Path, sync_fake_api: FakeSportsGravy):
    """A clean run exits 0 and reports its counters."""
    result = runner.invoke(app, ["run", "create-team", "--config", str(config_file)])
    assert result.exit_code == 0, f"output: {result.output}"
    assert "Load test passed." in result.output
    assert "Run Complete" in result.output
    assert sync_fake_api.count("POST", "/team") > 0


@pytest.mark.slow
def test_run_writes_summary_json(config_file: Path, tmp_path: Path):
    summary_path = tmp_path / "out" / "summary.json"
    result = runner.invoke(
        app,
        ["run", "create-team", "--config", str(config_file), "--duration", "1s", "--summary-json", str(summary_path)],
    )
    assert result.exit_code == 0, f"output: {result.output}"
    data = json.loads(summary_path.read_text())
    assert data["scenario_name"] == "create-team"
    assert data["passed"] is True
    assert data["counters"]["team"]["attempts"] == (
        data["counters"]["team"]["successes"] + data["counters"]["team"]["failures"]
    )
    assert "snapshots" not in data


@pytest.mark.slow
def test_run_threshold_breach_exits_1(config_file: Path, sync_fake_api: FakeSportsGravy):
    sync_fake_api.statuses["POST /feed/long-post"] = 500
    result = runner.invoke(app, ["run", "long-post-feed", "--config", str(config_file), "--duration", "1s"])
    assert result.exit_code == 1
    assert "thresholds breached" in result.output


@pytest.mark.slow
def test_run_no_thresholds_ignores_failures(config_file: Path, sync_fake_api: FakeSportsGravy):
    sync_fake_api.statuses["POST /feed/long-post"] = 500
    result = runner.invoke(
        app, ["run", "long-post-feed", "--config", str(config_file), "--duration", "1s", "--no-thresholds"]
    )
    assert result.exit_code == 0, f"output: {result.output}"


@pytest.mark.slow
def test_run_aborts_on_fatal_sign_in(config_file: Path, sync_fake_api: FakeSportsGravy):
    sync_fake_api.rejected_emails.add("coach@example.com")
    result = runner.invoke(app, ["run", "long-post", "--config", str(config_file), "--duration", "5s"])
    assert result.exit_code == 1
    assert "ABORTED" in result.output


@pytest.mark.slow
def test_run_scenario_file(config_file: Path, sync_fake_api: FakeSportsGravy):
    result = runner.invoke(
        app,
        [
            "run",
            "notifications-then-create",
            "--config",
            str(config_file),
            "--scenario-file",
            str(CUSTOM_SCENARIO),
            "--users",
            "1",
            "--duration",
            "2s",
        ],
    )
    assert result.exit_code == 0, f"output: {result.output}"
    assert sync_fake_api.count("GET", "/notification") >= 1
    assert sync_fake_api.count("POST", "/canned-message") >= 1
