"""Custom exception hierarchy for gravyload."""

from __future__ import annotations


class GravyLoadError(Exception):
    """Base exception for all gravyload errors.

    Every exception raised by the harness inherits from this class, so a
    single ``except GravyLoadError`` at the CLI boundary covers them all.
    """


class ConfigError(GravyLoadError):
    """Raised when configuration is invalid or missing.

    Examples:
        - The config file is not valid JSON.
        - A credential entry has no password.
        - A duration string such as ``"5x"`` cannot be parsed.
    """


class ScenarioError(GravyLoadError):
    """Raised when a scenario definition is invalid or cannot be found."""


class EngineError(GravyLoadError):
    """Raised when the virtual-user engine fails to run a test."""


class ThresholdError(GravyLoadError):
    """Raised when a threshold expression cannot be parsed."""


class AuthenticationError(GravyLoadError):
    """Sign-in did not yield a usable bearer token.

    Attributes:
        status: HTTP status of the sign-in response (0 on transport error).
        body: Raw response body, kept for diagnostics.
    """

    def __init__(self, status: int, body: str, reason: str = "sign-in failed") -> None:
        super().__init__(f"{reason} (status={status})")
        self.status = status
        self.body = body
        self.reason = reason


class CallError(GravyLoadError):
    """A scripted call returned an unexpected status.

    Failed calls are recorded rather than raised: ``CallClassifier`` builds
    one per failure and logs it, so the message doubles as the diagnostic
    line.
    """

    def __init__(self, endpoint: str, expected: int, status: int, body: str) -> None:
        super().__init__(f"{endpoint} failed. Status: {status} (expected {expected}) Response: {body}")
        self.endpoint = endpoint
        self.expected = expected
        self.status = status
        self.body = body


class TransportError(CallError):
    """Network or timeout failure before any HTTP status was received."""

    def __init__(self, endpoint: str, expected: int, error: str) -> None:
        super().__init__(endpoint, expected, 0, "")
        self.error = error
        self.args = (f"{endpoint} failed: transport error: {error}",)
