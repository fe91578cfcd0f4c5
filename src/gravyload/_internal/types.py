"""Shared type aliases for gravyload."""

from __future__ import annotations

from typing import Any

# HTTP headers dictionary.
Headers = dict[str, str]

# JSON request payload template (static per scenario).
Payload = dict[str, Any]

# k6-style threshold map: metric name -> list of expressions.
ThresholdSpec = dict[str, list[str]]
