"""
Tests for the local pattern interpreter.
"""

import pytest

from ..nlu_adapter import adapt, parse_interpretation
from ..pattern_interpreter import PatternInterpreter
from ..router import Route, route


@pytest.fixture(scope="module")
def interpreter():
    return PatternInterpreter()


class TestPatternInterpreter:
    """Test regex intent and entity extraction"""

    def test_who_is(self, interpreter):
        result = interpreter.interpret("Who is Taylor?")

        assert result["topIntent"] == "who_is_X"
        assert result["entities"] == [{
            "category": "person",
            "text": "Taylor",
            "confidenceScore": 0.95,
            "offset": 7,
            "length": 6,
        }]

    def test_tell_me_about(self, interpreter):
        result = interpreter.interpret("tell me about Rosé")
        assert result["topIntent"] == "who_is_X"
        assert result["entities"][0]["text"] == "Rosé"

    def test_create_meeting_entities(self, interpreter):
        result = interpreter.interpret("Create a meeting with Vlad on Friday at 10")

        assert result["topIntent"] == "createMeeting"
        slots = adapt(parse_interpretation(result))
        assert slots.person == "Vlad"
        assert slots.day == "Friday"
        assert slots.time == "10"

    def test_keyword_only_match(self, interpreter):
        result = interpreter.interpret("meeting tomorrow")
        assert result["topIntent"] == "createMeeting"
        assert result["intents"][0]["confidenceScore"] == 0.6

    def test_no_intent(self, interpreter):
        result = interpreter.interpret("order a pizza")

        assert result["topIntent"] == "None"
        assert result["intents"] == []
        assert result["entities"] == []
        assert route(result["topIntent"]) == Route.UNKNOWN

    def test_result_follows_wire_contract(self, interpreter):
        interpretation = parse_interpretation(interpreter.interpret("who is Jennie"))
        assert interpretation.top_intent == "who_is_X"
        assert interpretation.confidence == 0.95
