"""Built-in SportsGravy scenarios, registered in the global registry on import."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gravyload._internal.config import Stage
from gravyload.dsl.scenario import (
    AuthFailurePolicy,
    LoadOptions,
    ScenarioDefinition,
    SessionScope,
    registry,
)
from gravyload.dsl.steps import gate, get, pause, post, repeat
from gravyload.scenarios import payloads

if TYPE_CHECKING:
    from gravyload._internal.types import Payload

# Load profiles the scenarios were tuned with.
SHORT_RAMP = (Stage(30.0, 50), Stage(60.0, 100), Stage(30.0, 0))
SIGN_IN_SPIKE = (Stage(60.0, 500), Stage(180.0, 200), Stage(120.0, 1000), Stage(120.0, 0))
LONG_POST_RAMP = (Stage(60.0, 200), Stage(180.0, 100), Stage(60.0, 20))

FAST_RESPONSES = {"http_req_duration": ["p(95)<500"]}


def _create_one(name: str, endpoint: str, path: str, payload: Payload, description: str) -> ScenarioDefinition:
    """Sign in, create one resource, pause a second."""
    return ScenarioDefinition(
        name=name,
        description=description,
        steps=(post(endpoint, path, payload), pause(1)),
        thresholds={**FAST_RESPONSES, f"{endpoint}_duration": ["p(95)<500"]},
        load=LoadOptions(stages=SHORT_RAMP),
    )


SIGN_IN = registry.register(
    ScenarioDefinition(
        name="sign-in",
        description="Sign in only, spread across the credential pool",
        steps=(pause(1),),
        thresholds={**FAST_RESPONSES},
        load=LoadOptions(stages=SIGN_IN_SPIKE),
    )
)

CREATE_TEAM = registry.register(
    ScenarioDefinition(
        name="create-team",
        description="Sign in and create a team",
        steps=(post("team", "/team", payloads.TEAM), pause(1)),
        thresholds={**FAST_RESPONSES, "team_duration": ["p(95)<500"]},
        load=LoadOptions(stages=(Stage(30.0, 2), Stage(60.0, 1), Stage(30.0, 0))),
    )
)

CREATE_TRAINING_PROGRAM = registry.register(
    _create_one(
        "create-training-program",
        "training_program",
        "/training-program",
        payloads.TRAINING_PROGRAM,
        "Sign in and create a training program",
    )
)

CREATE_CANNED_MESSAGE = registry.register(
    _create_one(
        "create-canned-message",
        "canned_message",
        "/canned-message",
        payloads.CANNED_MESSAGE,
        "Sign in and create a canned message",
    )
)

LONG_POST = registry.register(
    ScenarioDefinition(
        name="long-post",
        description="Sign in, then post long posts until the run ends; a failed sign-in stops the run",
        steps=(repeat(None, post("long_post", "/post", payloads.LONG_POST), pause(1)),),
        on_auth_failure=AuthFailurePolicy.ABORT_RUN,
        thresholds={"errors": ["rate<0.01"]},
        load=LoadOptions(stages=LONG_POST_RAMP),
    )
)

LONG_POST_FEED = registry.register(
    ScenarioDefinition(
        name="long-post-feed",
        description="Sign in and create a long post through /feed/long-post",
        steps=(post("long_post", "/feed/long-post", payloads.LONG_POST_FEED), pause(1)),
        thresholds={"errors": ["rate<0.01"]},
        load=LoadOptions(stages=LONG_POST_RAMP),
    )
)

COMBINED = registry.register(
    ScenarioDefinition(
        name="combined",
        description="Browse more than create: five rounds of reads and creates per sign-in",
        steps=(
            repeat(
                5,
                get("team_list", "/team"),
                get("training_program_list", "/training-program"),
                pause(3),
                get("post_list", "/post"),
                pause(5),
                post("team", "/team", payloads.LOAD_TEST_TEAM),
                pause(2),
                post("training_program", "/training-program", payloads.LOAD_TEST_TRAINING_PROGRAM),
                pause(2),
                post("canned_message", "/canned-message", payloads.LOAD_TEST_CANNED_MESSAGE),
                pause(2),
                post("long_post", "/post", payloads.LOAD_TEST_LONG_POST),
                pause(12),
            ),
        ),
        thresholds={"http_req_duration": ["p(95)<5000"], "errors": ["rate<0.01"]},
        load=LoadOptions(vus=1, duration_seconds=300.0),
    )
)

CONNECTION_GATED = registry.register(
    ScenarioDefinition(
        name="connection-gated",
        description="Fetch connections and the feed; create a team and program only once connections load",
        steps=(
            get("connection", "/connection", flag="connections_fetched"),
            get("feed", "/feed"),
            get("notification", "/notification"),
            get("setting", "/setting"),
            pause(2),
            gate(
                "connections_fetched",
                post("team", "/team", payloads.LOAD_TEST_TEAM),
                pause(2),
                post("training_program", "/training-program", payloads.LOAD_TEST_TRAINING_PROGRAM),
            ),
            pause(5),
        ),
        session_scope=SessionScope.USER,
        thresholds={"http_req_duration": ["p(95)<5000"], "errors": ["rate<0.01"]},
        load=LoadOptions(vus=10, duration_seconds=300.0),
    )
)
