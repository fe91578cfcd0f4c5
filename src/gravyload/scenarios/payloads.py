"""Static JSON bodies for the SportsGravy create calls.

The single-endpoint scenarios and the combined scenario post slightly
different bodies; both shapes are kept as separate templates.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gravyload._internal.types import Payload

LEVEL_ID = "cltykjq9t0000w8mbydhoxyis"
SPORT_ID = "3"

SHARE_WITH_EVERYONE = [{"connectionType": "*", "connectionTypeId": "*"}]

TEAM: Payload = {
    "name": "Test Team",
    "organizationName": "Test Org",
    "sportId": SPORT_ID,
    "gender": "MALE",
    "userRole": ["COACH", "MANAGER"],
    "levelId": LEVEL_ID,
    "customSeason": {},
}

TRAINING_PROGRAM: Payload = {
    "name": "Test Program",
    "organizationName": "Test Org",
    "userRole": ["COACH"],
    "type": "SMALL_GROUP_TRAINING",
    "sportId": SPORT_ID,
    "levelId": LEVEL_ID,
    "gender": ["MALE"],
}

CANNED_MESSAGE: Payload = {
    "title": "Test Can",
    "sportId": SPORT_ID,
    "message": "Canned Message API Test",
    "genders": ["FEMALE", "MALE"],
}

LONG_POST: Payload = {
    "body": "This is a test post",
    "shareTo": SHARE_WITH_EVERYONE,
}

# The feed endpoint variant carries an explicit post id and media list.
LONG_POST_FEED: Payload = {
    "postId": "",
    "body": "This is a load test long post.",
    "mediaIds": [],
    "shareTo": SHARE_WITH_EVERYONE,
}

LOAD_TEST_TEAM: Payload = {**TEAM, "name": "Load Test Team", "organizationName": "Load Test Org"}

LOAD_TEST_TRAINING_PROGRAM: Payload = {
    **TRAINING_PROGRAM,
    "name": "Load Test Program",
    "organizationName": "Load Test Org",
}

LOAD_TEST_CANNED_MESSAGE: Payload = {
    **CANNED_MESSAGE,
    "title": "Load Test Can",
    "message": "Canned Message Load Test",
}

LOAD_TEST_LONG_POST: Payload = {
    "body": "This is a load test long post.",
    "shareTo": SHARE_WITH_EVERYONE,
}
