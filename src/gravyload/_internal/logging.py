"""Structured logging setup for gravyload."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

_ROOT = "gravyload"


class _JsonFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Emits one-line JSON objects with keys: timestamp, level, logger, message,
    plus ``endpoint`` when the record carries one.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A single-line JSON string.
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        endpoint = getattr(record, "endpoint", None)
        if endpoint is not None:
            log_entry["endpoint"] = endpoint
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the root ``gravyload`` logger.

    Sets up a stderr handler on the ``gravyload`` logger namespace. Repeated
    calls only adjust the level; handlers are never duplicated.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: If True, emit structured JSON logs. If False, emit
            human-readable logs.

    Returns:
        The configured ``gravyload`` logger.
    """
    logger = logging.getLogger(_ROOT)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``gravyload`` namespace.

    Args:
        name: Logger name, appended to the ``gravyload.`` prefix.
            Example: ``get_logger("engine.auth")`` returns
            ``logging.getLogger("gravyload.engine.auth")``.

    Returns:
        A child logger.
    """
    return logging.getLogger(f"{_ROOT}.{name}")


def truncate_body(body: bytes | str, limit: int = 500) -> str:
    """Decode and shorten a response body for a diagnostic line.

    Args:
        body: Raw or decoded response body.
        limit: Maximum characters kept before the truncation marker.

    Returns:
        The text, cut at *limit* characters and suffixed with
        ``...(truncated)`` when longer.
    """
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    if len(text) > limit:
        return text[:limit] + "...(truncated)"
    return text
