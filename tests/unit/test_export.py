"""Tests for the InfluxDB line-protocol exporter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from aiohttp import web

from gravyload._internal.config import InfluxConfig
from gravyload.metrics.export import InfluxExporter, to_line_protocol
from gravyload.metrics.models import EndpointCounts, LatencyStats, RunSummary, ThresholdResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


def _summary(**overrides: Any) -> RunSummary:
    values: dict[str, Any] = {
        "scenario_name": "create-team",
        "duration_seconds": 120.0,
        "pattern_description": "Constant: 1 users",
        "counters": {
            "sign_in": EndpointCounts(attempts=2, successes=2, failures=0),
            "team": EndpointCounts(attempts=2, successes=1, failures=1),
        },
        "error_rate": 0.5,
        "error_samples": 2,
        "latency": LatencyStats(count=4, min=1.0, max=4.0, avg=2.5, med=2.0, p90=4.0, p95=4.0, p99=4.0),
        "endpoint_latency": {"team": LatencyStats(count=2, min=3.0, max=4.0, avg=3.5, med=3.0)},
    }
    values.update(overrides)
    return RunSummary(**values)


class TestLineProtocol:
    def test_run_point(self) -> None:
        lines = to_line_protocol(_summary(), {"environment": "development"}, 1_000)
        run = lines[0]
        assert run.startswith("gravyload_run,environment=development,scenario=create-team ")
        assert "error_rate=0.5," in run
        assert "error_samples=2i," in run
        assert "passed=true," in run
        assert "count=4i" in run
        assert run.endswith(" 1000")

    def test_endpoint_points(self) -> None:
        lines = to_line_protocol(_summary(), {}, 1_000)
        assert len(lines) == 3
        sign_in, team = lines[1], lines[2]
        assert sign_in == (
            "gravyload_endpoint,endpoint=sign_in,scenario=create-team "
            "attempts=2i,successes=2i,failures=0i 1000"
        )
        assert team.startswith("gravyload_endpoint,endpoint=team,scenario=create-team ")
        assert "failures=1i,count=2i,avg=3.5" in team

    def test_failed_run(self) -> None:
        summary = _summary(thresholds=[ThresholdResult("errors", "rate<0.01", 0.5, passed=False)])
        assert "passed=false," in to_line_protocol(summary, {}, 1)[0]

    def test_tags_are_escaped_and_empty_dropped(self) -> None:
        lines = to_line_protocol(_summary(scenario_name="my scenario,v=2"), {"project": ""}, 1)
        assert lines[0].startswith("gravyload_run,scenario=my\\ scenario\\,v\\=2 ")


class _FakeInflux:
    def __init__(self, status: int = 204) -> None:
        self.status = status
        self.bodies: list[str] = []
        self.params: list[dict[str, str]] = []
        self.auth: list[str | None] = []

    async def write(self, request: web.Request) -> web.Response:
        self.bodies.append(await request.text())
        self.params.append(dict(request.query))
        self.auth.append(request.headers.get("Authorization"))
        if self.status >= 300:
            return web.Response(status=self.status, text="database not found")
        return web.Response(status=self.status)


@pytest.fixture
async def fake_influx() -> AsyncIterator[tuple[_FakeInflux, str]]:
    fake = _FakeInflux()
    app = web.Application()
    app.router.add_post("/write", fake.write)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = runner.addresses[0][1]
    yield fake, f"http://127.0.0.1:{port}"
    await runner.cleanup()


class TestInfluxExporter:
    def test_write_url(self) -> None:
        exporter = InfluxExporter(InfluxConfig(address="http://influx:8086", database="k6"))
        assert exporter.write_url == "http://influx:8086/write"

    async def test_export_posts_line_protocol(self, fake_influx: tuple[_FakeInflux, str]) -> None:
        fake, address = fake_influx
        config = InfluxConfig(address=address, database="k6", token="secret", environment="staging")
        exporter = InfluxExporter(config, project_id="3735095")

        assert await exporter.export(_summary()) is True

        assert fake.params == [{"db": "k6", "precision": "ns"}]
        assert fake.auth == ["Token secret"]
        lines = fake.bodies[0].splitlines()
        assert len(lines) == 3
        assert lines[0].startswith("gravyload_run,environment=staging,project=3735095,scenario=create-team ")

    async def test_no_token_no_header(self, fake_influx: tuple[_FakeInflux, str]) -> None:
        fake, address = fake_influx
        await InfluxExporter(InfluxConfig(address=address, database="k6")).export(_summary())
        assert fake.auth == [None]

    async def test_error_status_returns_false(
        self, fake_influx: tuple[_FakeInflux, str], gravyload_logs: pytest.LogCaptureFixture
    ) -> None:
        fake, address = fake_influx
        fake.status = 404
        assert await InfluxExporter(InfluxConfig(address=address, database="k6")).export(_summary()) is False
        assert "Metrics export failed. Status: 404" in gravyload_logs.text

    async def test_unreachable_returns_false(self, gravyload_logs: pytest.LogCaptureFixture) -> None:
        exporter = InfluxExporter(InfluxConfig(address="http://127.0.0.1:1", database="k6"), timeout=2.0)
        assert await exporter.export(_summary()) is False
        assert "Metrics export failed" in gravyload_logs.text
