"""Virtual user bookkeeping shared by the session loop and its tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gravyload._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gravyload._internal.config import Credential

logger = get_logger("engine.user_utils")

# Extra seconds on top of the request timeout before in-flight users are cancelled.
SHUTDOWN_GRACE_SECONDS = 5.0


@dataclass
class VirtualUser:
    """One running virtual user.

    Each user has its own stop event so it can be scaled down without
    interrupting a call in flight; the session sets every user's event on
    shutdown.
    """

    user_id: int
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task[None] | None = None

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()


def pick_credential(credentials: Sequence[Credential], user_id: int, iteration: int) -> Credential:
    """Credential for *user_id* on its *iteration*-th pass.

    Users start on different credentials and each advances one per
    iteration, so every credential in the pool gets exercised.

    Raises:
        ValueError: If *credentials* is empty.
    """
    if not credentials:
        msg = "credential pool is empty"
        raise ValueError(msg)
    return credentials[(user_id + iteration) % len(credentials)]


async def stop_users(users: Sequence[VirtualUser], timeout: float) -> None:
    """Signal *users* to stop and wait up to *timeout* before cancelling.

    Calls in flight are allowed to finish (and be counted) within the
    timeout. Whatever is still running afterwards is cancelled.

    Args:
        users: Users to stop.
        timeout: Seconds to wait for a graceful finish.
    """
    for user in users:
        user.stop_event.set()

    tasks = [user.task for user in users if user.task is not None]
    if not tasks:
        return

    _done, pending = await asyncio.wait(tasks, timeout=timeout)
    for task in pending:
        task.cancel()
    if pending:
        logger.warning("Cancelled %d virtual users still busy after %.1fs", len(pending), timeout)
        await asyncio.wait(pending, timeout=2.0)


async def shutdown_all_users(users: list[VirtualUser], request_timeout: float) -> None:
    """Stop every virtual user and clear *users*.

    Args:
        users: Running users; emptied on return.
        request_timeout: Per-request timeout; the grace period is this plus
            ``SHUTDOWN_GRACE_SECONDS``.
    """
    await stop_users(users, request_timeout + SHUTDOWN_GRACE_SECONDS)
    users.clear()
    logger.debug("All virtual users shut down")
