"""Push the final run summary to InfluxDB as line protocol."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import aiohttp

from gravyload._internal.logging import get_logger, truncate_body

if TYPE_CHECKING:
    from gravyload._internal.config import InfluxConfig
    from gravyload.metrics.models import LatencyStats, RunSummary

logger = get_logger("metrics.export")


def _escape_tag(value: str) -> str:
    return value.replace("\\", "\\\\").replace(",", "\\,").replace("=", "\\=").replace(" ", "\\ ")


def _tag_set(tags: dict[str, str]) -> str:
    return ",".join(f"{_escape_tag(k)}={_escape_tag(v)}" for k, v in sorted(tags.items()) if v)


def _latency_fields(stats: LatencyStats) -> str:
    return (
        f"count={stats.count}i,avg={stats.avg},min={stats.min},max={stats.max},"
        f"med={stats.med},p90={stats.p90},p95={stats.p95},p99={stats.p99}"
    )


def to_line_protocol(
    summary: RunSummary,
    tags: dict[str, str],
    timestamp_ns: int,
) -> list[str]:
    """Render *summary* as InfluxDB line-protocol points.

    One ``gravyload_run`` point carries the run-level values; one
    ``gravyload_endpoint`` point per endpoint carries its counters and,
    when available, its latency.

    Args:
        summary: The finished run.
        tags: Tags added to every point (empty values are dropped).
        timestamp_ns: Point timestamp in nanoseconds.

    Returns:
        Lines without trailing newlines.
    """
    base_tags = {**tags, "scenario": summary.scenario_name}
    lines = [
        f"gravyload_run,{_tag_set(base_tags)} "
        f"error_rate={summary.error_rate},error_samples={summary.error_samples}i,"
        f"passed={str(summary.passed).lower()},duration_seconds={summary.duration_seconds},"
        f"{_latency_fields(summary.latency)} {timestamp_ns}"
    ]
    for endpoint, counts in summary.counters.items():
        fields = f"attempts={counts.attempts}i,successes={counts.successes}i,failures={counts.failures}i"
        stats = summary.endpoint_latency.get(endpoint)
        if stats is not None and stats.count:
            fields = f"{fields},{_latency_fields(stats)}"
        lines.append(
            f"gravyload_endpoint,{_tag_set({**base_tags, 'endpoint': endpoint})} {fields} {timestamp_ns}"
        )
    return lines


class InfluxExporter:
    """Writes run summaries to an InfluxDB ``/write`` endpoint.

    Export is best effort: a failed write is logged and reported through the
    return value, never raised, so a dead metrics backend does not change the
    run's verdict.
    """

    def __init__(self, config: InfluxConfig, project_id: str | None = None, timeout: float = 10.0) -> None:
        self._config = config
        self._project_id = project_id
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def write_url(self) -> str:
        return f"{self._config.address}/write"

    async def export(self, summary: RunSummary) -> bool:
        """Send *summary*; return True on a 2xx response."""
        tags = {"environment": self._config.environment, "project": self._project_id or ""}
        body = "\n".join(to_line_protocol(summary, tags, time.time_ns()))
        headers = {"Content-Type": "text/plain; charset=utf-8"}
        if self._config.token:
            headers["Authorization"] = f"Token {self._config.token}"

        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session, session.post(
                self.write_url,
                params={"db": self._config.database, "precision": "ns"},
                data=body.encode("utf-8"),
                headers=headers,
            ) as resp:
                if 200 <= resp.status < 300:
                    logger.info("Exported %d points to %s", body.count("\n") + 1, self.write_url)
                    return True
                text = await resp.text()
                logger.warning(
                    "Metrics export failed. Status: %d Response: %s", resp.status, truncate_body(text)
                )
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.warning("Metrics export failed: %s: %s", type(exc).__name__, exc)
        return False
