"""Built-in scenarios. Importing this package registers them in ``registry``."""

from __future__ import annotations

from gravyload.scenarios.catalog import (
    COMBINED,
    CONNECTION_GATED,
    CREATE_CANNED_MESSAGE,
    CREATE_TEAM,
    CREATE_TRAINING_PROGRAM,
    LONG_POST,
    LONG_POST_FEED,
    SIGN_IN,
)

__all__ = [
    "COMBINED",
    "CONNECTION_GATED",
    "CREATE_CANNED_MESSAGE",
    "CREATE_TEAM",
    "CREATE_TRAINING_PROGRAM",
    "LONG_POST",
    "LONG_POST_FEED",
    "SIGN_IN",
]
