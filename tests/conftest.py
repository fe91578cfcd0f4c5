"""Shared test fixtures for the gravyload test suite."""

from __future__ import annotations

import asyncio
import json
import logging
import socket
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest
from aiohttp import web

from gravyload._internal.config import Credential, RunConfig

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# =============================================================================
# Fake SportsGravy API
# =============================================================================


@dataclass
class RecordedRequest:
    method: str
    path: str
    authorization: str | None
    body: Any


@dataclass
class FakeSportsGravy:
    """In-memory stand-in for the SportsGravy API.

    ``POST /auth/sign-in`` returns a token unless the email is listed in
    ``rejected_emails``. Every other route answers 201 for POST and 200 for
    GET unless overridden in ``statuses`` (keyed by ``"METHOD /path"``).
    Calls without a bearer token get 401.
    """

    url: str = ""
    token_style: str = "nested"
    rejected_emails: set[str] = field(default_factory=set)
    statuses: dict[str, int] = field(default_factory=dict)
    delay: float = 0.0
    requests: list[RecordedRequest] = field(default_factory=list)
    _issued: int = 0

    def paths(self, method: str | None = None) -> list[str]:
        return [r.path for r in self.requests if method is None or r.method == method]

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.path == path)

    async def handle(self, request: web.Request) -> web.Response:
        raw = await request.read()
        try:
            body = json.loads(raw) if raw else None
        except ValueError:
            body = raw.decode("utf-8", errors="replace")
        self.requests.append(
            RecordedRequest(
                method=request.method,
                path=request.path,
                authorization=request.headers.get("Authorization"),
                body=body,
            )
        )
        if self.delay:
            await asyncio.sleep(self.delay)

        if request.method == "POST" and request.path == "/auth/sign-in":
            return self._sign_in(body)

        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Bearer tok-"):
            return web.json_response({"message": "Unauthorized"}, status=401)

        default = 201 if request.method == "POST" else 200
        status = self.statuses.get(f"{request.method} {request.path}", default)
        return web.json_response({"ok": 200 <= status < 300}, status=status)

    def _sign_in(self, body: Any) -> web.Response:
        email = body.get("email") if isinstance(body, dict) else None
        if email is None or email in self.rejected_emails:
            return web.json_response({"message": "Incorrect username or password."}, status=403)
        self._issued += 1
        token = f"tok-{self._issued}"
        if self.token_style == "flat":
            return web.json_response({"idToken": token})
        return web.json_response({"AuthenticationResult": {"IdToken": token, "AccessToken": "access"}})

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle)
        return app


@pytest.fixture
async def fake_api() -> AsyncIterator[FakeSportsGravy]:
    """Fake API served from the test's own event loop."""
    api = FakeSportsGravy()
    port = _get_free_port()
    runner = web.AppRunner(api.app())
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    api.url = f"http://127.0.0.1:{port}"
    yield api
    await runner.cleanup()


@pytest.fixture
def sync_fake_api() -> Iterator[FakeSportsGravy]:
    """Fake API running in a background thread.

    For tests that call blocking entry points (``LoadTestRunner.run``, the
    CLI), which start their own event loop.
    """
    api = FakeSportsGravy()
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(api.app())
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)
    api.url = f"http://127.0.0.1:{port}"

    yield api

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)


# =============================================================================
# Config fixtures
# =============================================================================


CREDENTIALS = (
    Credential(email="coach@example.com", password="pw-1"),
    Credential(email="manager@example.com", password="pw-2"),
)


def _make_config(base_url: str, **overrides: Any) -> RunConfig:
    values: dict[str, Any] = {
        "base_url": base_url,
        "credentials": CREDENTIALS,
        "request_timeout": 5.0,
    }
    values.update(overrides)
    return RunConfig(**values)


@pytest.fixture
def make_config() -> Any:
    """Factory for a RunConfig aimed at a fake API, with short timeouts."""
    return _make_config


@pytest.fixture
def credentials() -> tuple[Credential, ...]:
    return CREDENTIALS


@pytest.fixture
def config_file(tmp_path: Path, sync_fake_api: FakeSportsGravy) -> Path:
    """Config file pointing at the threaded fake API."""
    data = {
        "baseUrl": sync_fake_api.url,
        "users": [{"email": c.email, "password": c.password} for c in CREDENTIALS],
        "vus": 2,
        "duration": "2s",
        "timeout": 5,
    }
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    return path


@pytest.fixture
def gravyload_logs(caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch) -> pytest.LogCaptureFixture:
    """caplog that also sees ``gravyload`` records after ``setup_logging`` turned propagation off."""
    monkeypatch.setattr(logging.getLogger("gravyload"), "propagate", True)
    caplog.set_level(logging.DEBUG, logger="gravyload")
    return caplog


@pytest.fixture(autouse=True)
def _reset_gravyload_logging() -> Iterator[None]:
    """Drop handlers installed by ``setup_logging`` so each test starts clean."""
    yield
    logger = logging.getLogger("gravyload")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
