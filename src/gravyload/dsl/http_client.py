"""Instrumented HTTP client with auto-timing and metric emission."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import aiohttp

if TYPE_CHECKING:
    from collections.abc import Callable

    from gravyload._internal.types import Headers

_UNSET = object()


def _noop_callback(metric: RequestMetric) -> None:
    """Default no-op metric callback."""


@dataclass
class RequestMetric:
    """Raw metric emitted for every HTTP request.

    Attributes:
        timestamp: Monotonic timestamp when the request started.
        name: Logical endpoint name (e.g., "team").
        method: HTTP method (GET, POST).
        url: Full request URL.
        status_code: HTTP response status code (0 if the request failed).
        latency_ms: Response time in milliseconds.
        content_length: Response body size in bytes.
        error: Transport error text, None when a response arrived.
    """

    timestamp: float
    name: str
    method: str
    url: str
    status_code: int
    latency_ms: float
    content_length: int
    error: str | None = None


@dataclass
class CallResponse:
    """A fully read response.

    The body is read eagerly so the connection goes back to the pool before
    the response is classified; JSON parsing is deferred to :meth:`json`.

    Attributes:
        status: HTTP status, or 0 when no response was received.
        body: Raw response body.
        latency_ms: Time from send to body fully read.
        error: Transport error text when ``status == 0``.
    """

    status: int
    body: bytes = b""
    latency_ms: float = 0.0
    error: str | None = None
    _parsed: Any = field(default=_UNSET, repr=False, compare=False)

    @property
    def text(self) -> str:
        """Body decoded as UTF-8 (lossy)."""
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Parse the body as JSON once and cache the result.

        Raises:
            ValueError: If the body is not valid JSON.
        """
        if self._parsed is _UNSET:
            self._parsed = json.loads(self.body)
        return self._parsed


class HttpClient:
    """Async HTTP client wrapping ``aiohttp.ClientSession``.

    Every request is timed and reported through ``metric_callback``.
    Transport failures (connection errors, timeouts) do not raise; they come
    back as a ``CallResponse`` with ``status == 0`` so callers classify them
    like any other failed call.

    Attributes:
        base_url: Base URL prepended to all request paths.
        headers: Headers applied to every request.
    """

    def __init__(
        self,
        base_url: str,
        headers: Headers | None = None,
        metric_callback: Callable[[RequestMetric], None] | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: Base URL prepended to all request paths.
            headers: Default headers applied to every request.
            metric_callback: Invoked with a ``RequestMetric`` after each request.
            timeout: Total per-request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.headers: dict[str, str] = {"Content-Type": "application/json", **(headers or {})}
        self._metric_callback = metric_callback or _noop_callback
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        """Open the underlying aiohttp session."""
        self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get(self, path: str, *, name: str | None = None, token: str | None = None) -> CallResponse:
        """Send a GET request."""
        return await self.send("GET", path, name=name, token=token)

    async def post(
        self,
        path: str,
        *,
        name: str | None = None,
        json: Any = None,
        token: str | None = None,
    ) -> CallResponse:
        """Send a POST request with a JSON body."""
        return await self.send("POST", path, name=name, json=json, token=token)

    async def send(
        self,
        method: str,
        path: str,
        *,
        name: str | None = None,
        json: Any = None,
        token: str | None = None,
    ) -> CallResponse:
        """Send one request, time it, and emit a metric.

        Args:
            method: HTTP method.
            path: URL path appended to ``base_url``.
            name: Logical endpoint name for metrics. Defaults to the path.
            json: Optional JSON-serialisable body.
            token: Optional bearer token, sent as ``Authorization: Bearer <token>``.

        Returns:
            The read response, or a status-0 response on transport failure.

        Raises:
            RuntimeError: If the client is used outside ``async with``.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        url = f"{self.base_url}{path}"
        headers = dict(self.headers)
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"

        start = time.monotonic()
        status_code = 0
        body = b""
        error: str | None = None

        try:
            async with self._session.request(method, url, headers=headers, json=json) as resp:
                status_code = resp.status
                body = await resp.read()
        except (aiohttp.ClientError, TimeoutError) as exc:
            status_code = 0
            error = f"{type(exc).__name__}: {exc}"
        finally:
            latency_ms = (time.monotonic() - start) * 1000
            self._metric_callback(
                RequestMetric(
                    timestamp=start,
                    name=name or path,
                    method=method,
                    url=url,
                    status_code=status_code,
                    latency_ms=latency_ms,
                    content_length=len(body),
                    error=error,
                )
            )

        return CallResponse(status=status_code, body=body, latency_ms=latency_ms, error=error)
