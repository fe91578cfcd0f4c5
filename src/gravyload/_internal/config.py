"""Configuration loading for gravyload.

A run is configured from a JSON file in the shape the original k6 scripts
read (``baseUrl``, ``users``, ``projectID``, ``influxdb``) extended with the
harness keys ``vus``, ``duration``, ``stages``, ``thresholds``, ``tokenPath``
and ``timeout``. A handful of environment variables override the file.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from gravyload._internal.errors import ConfigError

if TYPE_CHECKING:
    from gravyload._internal.types import ThresholdSpec

DEFAULT_TOKEN_PATH = "AuthenticationResult.IdToken"

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")


@dataclass(frozen=True)
class Credential:
    """One synthetic user.

    Attributes:
        email: Sign-in email, also the key for per-user gate flags.
        password: Sign-in password. Excluded from ``repr``.
    """

    email: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class Stage:
    """One k6-style ramp stage: move linearly to *target* users over *duration_seconds*."""

    duration_seconds: float
    target: int


@dataclass(frozen=True)
class InfluxConfig:
    """Where to push the final metrics, if anywhere.

    Attributes:
        address: Base URL of the InfluxDB HTTP API.
        database: Target database (bucket) name.
        token: API token sent as ``Authorization: Token <token>``.
        environment: Value of the ``environment`` tag on every point.
    """

    address: str
    database: str
    token: str = field(default="", repr=False)
    environment: str = "development"


@dataclass(frozen=True)
class RunConfig:
    """Complete configuration for one load test run.

    Attributes:
        base_url: API root, e.g. ``https://dev.api.sportsgravy.com``.
        credentials: Pool of users cycled through by the virtual users.
        vus: Constant virtual-user count when no stages are given. None
            means "use the scenario's".
        duration_seconds: Run length when no stages are given. None means
            "use the scenario's".
        stages: Optional ramp profile; overrides ``vus``/``duration_seconds``.
        thresholds: k6-style thresholds. Empty means "use the scenario's".
        token_path: Dotted JSON path of the token in the sign-in response.
        request_timeout: Per-request timeout in seconds.
        project_id: Optional project identifier, used as an export tag.
        influxdb: Optional metrics export target.
    """

    base_url: str
    credentials: tuple[Credential, ...]
    vus: int | None = None
    duration_seconds: float | None = None
    stages: tuple[Stage, ...] = ()
    thresholds: ThresholdSpec = field(default_factory=dict)
    token_path: str = DEFAULT_TOKEN_PATH
    request_timeout: float = 30.0
    project_id: str | None = None
    influxdb: InfluxConfig | None = None


def parse_duration(value: str | float, name: str = "duration") -> float:
    """Convert a k6 duration (``"30s"``, ``"5m"``, ``"1h30m"``, ``"250ms"``) or a number to seconds.

    Raises:
        ConfigError: If *value* is not a positive duration.
    """
    if isinstance(value, bool):
        msg = f"{name} must be a duration, got: {value!r}"
        raise ConfigError(msg)
    if isinstance(value, int | float):
        seconds = float(value)
    else:
        text = value.strip()
        try:
            seconds = float(text)
        except ValueError:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(num + unit for num, unit in parts) != text:
                msg = f"{name} is not a valid duration: {value!r}"
                raise ConfigError(msg) from None
            factors = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}
            seconds = sum(float(num) * factors[unit] for num, unit in parts)
    if seconds <= 0:
        msg = f"{name} must be positive, got: {value!r}"
        raise ConfigError(msg)
    return seconds


def _parse_credentials(raw: Any) -> tuple[Credential, ...]:
    if not isinstance(raw, list) or not raw:
        msg = "users must be a non-empty list of {email, password} objects"
        raise ConfigError(msg)
    credentials: list[Credential] = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            msg = f"users[{i}] must be an object"
            raise ConfigError(msg)
        email = entry.get("email")
        password = entry.get("password")
        if not isinstance(email, str) or not email:
            msg = f"users[{i}].email is required"
            raise ConfigError(msg)
        if not isinstance(password, str) or not password:
            msg = f"users[{i}].password is required"
            raise ConfigError(msg)
        credentials.append(Credential(email=email, password=password))
    return tuple(credentials)


def _parse_stages(raw: Any) -> tuple[Stage, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        msg = "stages must be a list of {duration, target} objects"
        raise ConfigError(msg)
    stages: list[Stage] = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict) or "duration" not in entry or "target" not in entry:
            msg = f"stages[{i}] must have 'duration' and 'target'"
            raise ConfigError(msg)
        target = entry["target"]
        if not isinstance(target, int) or isinstance(target, bool) or target < 0:
            msg = f"stages[{i}].target must be a non-negative integer, got: {target!r}"
            raise ConfigError(msg)
        stages.append(
            Stage(
                duration_seconds=parse_duration(entry["duration"], f"stages[{i}].duration"),
                target=target,
            )
        )
    return tuple(stages)


def _parse_thresholds(raw: Any) -> ThresholdSpec:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        msg = "thresholds must be an object of metric -> [expression, ...]"
        raise ConfigError(msg)
    thresholds: ThresholdSpec = {}
    for metric, expressions in raw.items():
        if isinstance(expressions, str):
            expressions = [expressions]
        if not isinstance(expressions, list) or not all(isinstance(e, str) for e in expressions):
            msg = f"thresholds[{metric!r}] must be a list of strings"
            raise ConfigError(msg)
        thresholds[str(metric)] = list(expressions)
    return thresholds


def _parse_influx(raw: Any) -> InfluxConfig | None:
    if raw is None:
        return None
    if not isinstance(raw, dict) or not raw.get("address") or not raw.get("database"):
        msg = "influxdb must define 'address' and 'database'"
        raise ConfigError(msg)
    return InfluxConfig(
        address=str(raw["address"]).rstrip("/"),
        database=str(raw["database"]),
        token=str(raw.get("token", "")),
        environment=str(raw.get("environment", "development")),
    )


def _parse_positive_int(raw: Any, name: str) -> int:
    if not isinstance(raw, int) or isinstance(raw, bool) or raw < 1:
        msg = f"{name} must be an integer >= 1, got: {raw!r}"
        raise ConfigError(msg)
    return raw


def config_from_dict(data: dict[str, Any]) -> RunConfig:
    """Build a RunConfig from already-parsed JSON, then apply env overrides.

    Raises:
        ConfigError: If any value is missing or out of range.
    """
    base_url = os.environ.get("GRAVYLOAD_BASE_URL") or data.get("baseUrl", "")
    if not isinstance(base_url, str) or not base_url:
        msg = "baseUrl is required (or set GRAVYLOAD_BASE_URL)"
        raise ConfigError(msg)

    timeout_raw = os.environ.get("GRAVYLOAD_TIMEOUT", data.get("timeout", 30.0))
    try:
        timeout = float(timeout_raw)
    except (TypeError, ValueError):
        msg = f"timeout must be a number, got: {timeout_raw!r}"
        raise ConfigError(msg) from None
    if timeout <= 0:
        msg = f"timeout must be positive, got: {timeout}"
        raise ConfigError(msg)

    token_path = os.environ.get("GRAVYLOAD_TOKEN_PATH") or data.get("tokenPath", DEFAULT_TOKEN_PATH)
    if not isinstance(token_path, str) or not token_path.strip("."):
        msg = f"tokenPath must be a dotted JSON path, got: {token_path!r}"
        raise ConfigError(msg)

    project_id = data.get("projectID")

    return RunConfig(
        base_url=base_url.rstrip("/"),
        credentials=_parse_credentials(data.get("users")),
        vus=_parse_positive_int(data["vus"], "vus") if "vus" in data else None,
        duration_seconds=parse_duration(data["duration"]) if "duration" in data else None,
        stages=_parse_stages(data.get("stages")),
        thresholds=_parse_thresholds(data.get("thresholds")),
        token_path=token_path,
        request_timeout=timeout,
        project_id=str(project_id) if project_id is not None else None,
        influxdb=_parse_influx(data.get("influxdb")),
    )


def load_config(path: str | Path) -> RunConfig:
    """Load a RunConfig from a JSON file.

    Environment variables:
        GRAVYLOAD_BASE_URL: Overrides ``baseUrl``.
        GRAVYLOAD_TIMEOUT: Overrides ``timeout`` (seconds).
        GRAVYLOAD_TOKEN_PATH: Overrides ``tokenPath``.

    Raises:
        ConfigError: If the file is missing, not JSON, or invalid.
    """
    config_path = Path(path)
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        msg = f"Config file not found: {config_path}"
        raise ConfigError(msg) from None
    except json.JSONDecodeError as exc:
        msg = f"Config file {config_path} is not valid JSON: {exc}"
        raise ConfigError(msg) from exc

    if not isinstance(data, dict):
        msg = f"Config file {config_path} must contain a JSON object"
        raise ConfigError(msg)
    return config_from_dict(data)
