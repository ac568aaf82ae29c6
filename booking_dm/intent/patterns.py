"""
Intent patterns for the local booking interpreter

Regex rules that stand in for the cloud NLU service during development and
on the console. Each intent lists keywords and regex patterns; entity
patterns extract the spans the dialogue understands (person, day, time).
"""

from typing import Dict, Any
import re


def load_intent_patterns() -> Dict[str, Any]:
    """
    Load the intent patterns, in priority order.

    Pattern Categories:
        - who_is_X: questions about a person
        - createMeeting: requests to create or book a meeting
        - entities: entity extraction shared by all intents

    Returns:
        Dictionary with pattern categories
    """
    patterns = {
        "who_is_X": {
            "keywords": ["who is", "who's", "tell me about"],
            "regex_patterns": [
                r"\bwho\s+is\s+(?P<person>\w+)",
                r"\bwho's\s+(?P<person>\w+)",
                r"\btell\s+me\s+about\s+(?P<person>\w+)",
            ],
        },

        "createMeeting": {
            "keywords": [
                "meeting", "appointment", "meet", "schedule", "book", "create",
            ],
            "regex_patterns": [
                r"\b(create|schedule|book|set up|arrange|make)\s+(an?\s+)?(meeting|appointment)\b",
                r"\b(meeting|appointment)\s+(with|on|at|for)\b",
                r"\b(want|need|like)\s+to\s+meet\b",
            ],
        },

        "entities": {
            "entity_patterns": {
                "person": r"\bwith\s+(?P<value>\w+)",
                "meeting_day": (
                    r"\b(?P<value>monday|tuesday|wednesday|thursday|friday|saturday|sunday"
                    r"|today|tomorrow|next week)\b"
                ),
                "meeting_time": (
                    r"\b(?:at\s+)?(?P<value>\d{1,2}(?::\d{2})?(?:\s*(?:am|pm))?"
                    r"|morning|afternoon|evening|noon)\b"
                ),
            },
        },
    }

    return patterns


def compile_patterns(patterns: Dict[str, Any]) -> Dict[str, Any]:
    """
    Pre-compile regex patterns for matching.

    Args:
        patterns: Pattern dictionary from load_intent_patterns()

    Returns:
        Dictionary with compiled regex patterns, same shape as the input
    """
    compiled = {}

    for intent_name, intent_data in patterns.items():
        compiled[intent_name] = {}

        for key, value in intent_data.items():
            if key == "regex_patterns":
                compiled[intent_name][key] = [
                    re.compile(pattern, re.IGNORECASE)
                    for pattern in value
                ]
            elif key == "entity_patterns":
                compiled[intent_name][key] = {
                    entity_name: re.compile(entity_pattern, re.IGNORECASE)
                    for entity_name, entity_pattern in value.items()
                }
            else:
                compiled[intent_name][key] = value

    return compiled
