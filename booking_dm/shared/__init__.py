"""
Shared Utilities Module for the Booking Dialogue Manager

Provides the event/command vocabulary used between the dialogue manager and
the speech boundary, plus the Redis Streams broker used when the speech
engine runs out of process.

Usage:
    from booking_dm.shared import DialogueEvent, Command, EventBroker

    broker = EventBroker(redis_client)
    await broker.publish(command_stream("abc"), envelope)
"""

from .events import (
    EventType,
    CommandType,
    DialogueEvent,
    Command,
    VoiceEvent,
)

from .event_broker import (
    EventBroker,
    command_stream,
    event_stream,
)

__all__ = [
    "EventType",
    "CommandType",
    "DialogueEvent",
    "Command",
    "VoiceEvent",
    "EventBroker",
    "command_stream",
    "event_stream",
]
