"""
Turn controller for the Booking Dialogue Manager

Drives one dialogue between the turn state machine and a speech boundary.
"""

from .boundary import QueueSpeechBoundary, RedisSpeechBoundary, SpeechBoundary
from .runner import DialogueError, DialogueNotActive, DialogueRunner, ProtocolViolation

__all__ = [
    "DialogueRunner",
    "DialogueError",
    "DialogueNotActive",
    "ProtocolViolation",
    "SpeechBoundary",
    "QueueSpeechBoundary",
    "RedisSpeechBoundary",
]
