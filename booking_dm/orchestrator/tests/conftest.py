"""
Pytest fixtures for dialogue runner tests.
"""

from collections import deque
from typing import Iterable, List, Optional

import pytest
from unittest.mock import AsyncMock

from booking_dm.appointment.fsm_manager import DialogueMachine
from booking_dm.appointment.models import Variant
from booking_dm.shared.events import Command, CommandType, DialogueEvent


class ScriptedSpeechBoundary:
    """
    Fake speech engine replaying canned user turns.

    PREPARE is answered with ENGINE_READY and SPEAK with SPEAK_COMPLETE.
    Each LISTEN consumes the next scripted turn: a string is recognised,
    None is a no-input, a (text, interpretation) tuple carries an NLU result.
    """

    def __init__(self, turns: Iterable = ()):
        self.turns = deque(turns)
        self.sent: List[Command] = []
        self._events = deque()

    @property
    def spoken(self) -> List[Optional[str]]:
        return [c.utterance for c in self.sent if c.type == CommandType.SPEAK]

    async def send(self, command: Command) -> None:
        self.sent.append(command)
        if command.type == CommandType.PREPARE:
            self._events.append(DialogueEvent.engine_ready())
        elif command.type == CommandType.SPEAK:
            self._events.append(DialogueEvent.speak_complete())
        elif command.type == CommandType.LISTEN:
            self._events.append(self._next_turn())

    async def receive(self) -> DialogueEvent:
        if not self._events:
            raise AssertionError("dialogue is waiting for an event the script does not provide")
        return self._events.popleft()

    def _next_turn(self) -> DialogueEvent:
        turn = self.turns.popleft()
        if turn is None:
            return DialogueEvent.no_input()
        if isinstance(turn, tuple):
            text, interpretation = turn
            return DialogueEvent.recognised(text, 0.9, interpretation)
        return DialogueEvent.recognised(turn, 0.9)


@pytest.fixture
def grammar_machine():
    return DialogueMachine(variant=Variant.GRAMMAR)


@pytest.fixture
def nlu_machine():
    return DialogueMachine(variant=Variant.NLU)


@pytest.fixture
def mock_redis_client():
    """Create a mock Redis client."""
    client = AsyncMock()
    client.xadd = AsyncMock(return_value="1-0")
    client.xread = AsyncMock(return_value=[])
    return client
