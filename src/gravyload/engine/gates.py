"""Per-credential gate flags shared by all runners of a run."""

from __future__ import annotations

import threading


class GateStore:
    """Boolean flags keyed by credential email, then flag name.

    Several virtual users may hold the same credential at once. Writes are
    last-write-wins and reads see whatever was written most recently; the
    lock only keeps the dict itself consistent. Unknown flags read as False.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._flags: dict[str, dict[str, bool]] = {}

    def set(self, email: str, flag: str, value: bool) -> None:
        with self._lock:
            self._flags.setdefault(email, {})[flag] = value

    def get(self, email: str, flag: str) -> bool:
        with self._lock:
            return self._flags.get(email, {}).get(flag, False)
