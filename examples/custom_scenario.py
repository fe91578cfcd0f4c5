"""Custom scenario: check notifications and settings, then create a canned message.

Run with:

    gravyload run notifications-then-create --scenario-file examples/custom_scenario.py \
        --config config.json --users 5 --duration 1m
"""

from __future__ import annotations

from gravyload import ScenarioDefinition, SessionScope, get, pause, post
from gravyload.scenarios.payloads import CANNED_MESSAGE

NOTIFICATIONS_THEN_CREATE = ScenarioDefinition(
    name="notifications-then-create",
    description="Poll notifications and settings, then create a canned message",
    steps=(
        get("notification", "/notification"),
        get("setting", "/setting"),
        pause(1),
        post("canned_message", "/canned-message", CANNED_MESSAGE),
        pause(2),
    ),
    session_scope=SessionScope.USER,
    thresholds={"canned_message_failures": ["rate<0.05"], "notification_duration": ["p(95)<800"]},
)
