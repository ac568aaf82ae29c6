"""
Intent router: picks the sub-dialogue for a recognized top intent.
"""

from enum import Enum
from typing import Optional


class Route(Enum):
    """Sub-dialogues reachable from the greeting"""
    WHO_IS_X = "who_is_x"
    CREATE_MEETING = "create_meeting"
    UNKNOWN = "unknown"


INTENT_ROUTES = {
    "who_is_X": Route.WHO_IS_X,
    "who_is_x": Route.WHO_IS_X,
    "createMeeting": Route.CREATE_MEETING,
}


def route(top_intent: Optional[str]) -> Route:
    """Total mapping; anything unsupported falls through to UNKNOWN."""
    if not top_intent:
        return Route.UNKNOWN
    return INTENT_ROUTES.get(top_intent, Route.UNKNOWN)
