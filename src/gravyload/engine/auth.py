"""Sign-in and bearer-token sessions."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from gravyload._internal.config import DEFAULT_TOKEN_PATH
from gravyload._internal.errors import AuthenticationError
from gravyload._internal.logging import get_logger, truncate_body
from gravyload.metrics.models import CallOutcome

if TYPE_CHECKING:
    from gravyload._internal.config import Credential
    from gravyload.dsl.http_client import CallResponse, HttpClient
    from gravyload.metrics.counters import MetricSet

logger = get_logger("engine.auth")

SIGN_IN_ENDPOINT = "sign_in"
SIGN_IN_PATH = "/auth/sign-in"


@dataclass(frozen=True)
class Session:
    """An authenticated user.

    Attributes:
        credential: The user the token belongs to.
        token: Opaque bearer token. Excluded from ``repr`` so it never
            ends up in logs.
        fetched_at: Wall-clock time the token was obtained.
    """

    credential: Credential
    token: str = field(repr=False)
    fetched_at: float = field(default_factory=time.time)


def extract_token(data: Any, path: str) -> str | None:
    """Follow a dotted *path* (e.g. ``AuthenticationResult.IdToken``) into parsed JSON.

    Returns:
        The token if it is a non-empty string, else None.
    """
    node = data
    for key in path.split("."):
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    if isinstance(node, str) and node:
        return node
    return None


class SessionManager:
    """Signs users in and counts the outcome under ``sign_in``.

    A sign-in succeeds only if the status is exactly 200 and the parsed body
    holds a non-empty token at ``token_path``. Successes are counted
    silently. Failures are counted, add one failure sample to the error
    rate, log the status and body, and raise ``AuthenticationError``.
    """

    def __init__(
        self,
        client: HttpClient,
        metrics: MetricSet,
        token_path: str = DEFAULT_TOKEN_PATH,
    ) -> None:
        self._client = client
        self._metrics = metrics
        self._token_path = token_path

    @property
    def token_path(self) -> str:
        return self._token_path

    async def authenticate(self, credential: Credential) -> Session:
        """Sign *credential* in.

        Returns:
            A fresh Session.

        Raises:
            AuthenticationError: On a non-200 status, a transport error, an
                unparsable body, or a missing/empty token.
        """
        response = await self._client.post(
            SIGN_IN_PATH,
            name=SIGN_IN_ENDPOINT,
            json={"email": credential.email, "password": credential.password},
        )

        token: str | None = None
        reason = "sign-in failed"
        if response.error is not None:
            reason = f"sign-in transport error: {response.error}"
        elif response.status != 200:
            reason = "sign-in rejected"
        else:
            try:
                token = extract_token(response.json(), self._token_path)
            except ValueError:
                reason = "sign-in response is not JSON"
            else:
                if token is None:
                    reason = f"sign-in response has no token at {self._token_path!r}"

        succeeded = token is not None
        self._metrics.record_outcome(
            CallOutcome(
                endpoint=SIGN_IN_ENDPOINT,
                succeeded=succeeded,
                http_status=response.status,
                expected_status=200,
                latency_ms=response.latency_ms,
                error=response.error,
            ),
            sample=not succeeded,
        )

        if token is None:
            self._log_failure(credential, response, reason)
            raise AuthenticationError(response.status, response.text, reason)

        return Session(credential=credential, token=token)

    @staticmethod
    def _log_failure(credential: Credential, response: CallResponse, reason: str) -> None:
        logger.warning(
            "Sign-in failed for %s: %s. Status: %d Response: %s",
            credential.email,
            reason,
            response.status,
            truncate_body(response.body),
            extra={"endpoint": SIGN_IN_ENDPOINT},
        )
