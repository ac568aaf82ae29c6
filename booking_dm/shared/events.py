"""
Event and command vocabulary shared by the dialogue manager and the speech boundary.

Inbound events flow from the speech engine (and the UI) into the turn state
machine; outbound commands flow from the state machine to the speech engine.
`VoiceEvent` is the transport envelope used on Redis Streams.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Any, Optional
import time
import json
import uuid


class EventType(Enum):
    """Events consumed by the dialogue manager"""
    ENGINE_READY = "engine_ready"
    SPEAK_COMPLETE = "speak_complete"
    RECOGNISED = "recognised"
    NO_INPUT = "no_input"
    CLICK = "click"
    # Raised internally by a Listen sub-state, never sent by the boundary
    LISTEN_COMPLETE = "listen_complete"


class CommandType(Enum):
    """Commands issued to the speech boundary"""
    PREPARE = "prepare"
    SPEAK = "speak"
    LISTEN = "listen"


@dataclass(frozen=True)
class DialogueEvent:
    """
    One event delivered to the dialogue manager.

    `interpretation` carries the raw NLU payload bundled with a RECOGNISED
    event (wire format, see `booking_dm.intent.nlu_adapter.parse_interpretation`).
    """
    type: EventType
    utterance: Optional[str] = None
    confidence: Optional[float] = None
    interpretation: Optional[Dict[str, Any]] = None

    @classmethod
    def engine_ready(cls) -> "DialogueEvent":
        return cls(EventType.ENGINE_READY)

    @classmethod
    def speak_complete(cls) -> "DialogueEvent":
        return cls(EventType.SPEAK_COMPLETE)

    @classmethod
    def recognised(
        cls,
        utterance: str,
        confidence: Optional[float] = None,
        interpretation: Optional[Dict[str, Any]] = None,
    ) -> "DialogueEvent":
        return cls(EventType.RECOGNISED, utterance, confidence, interpretation)

    @classmethod
    def no_input(cls) -> "DialogueEvent":
        return cls(EventType.NO_INPUT)

    @classmethod
    def click(cls) -> "DialogueEvent":
        return cls(EventType.CLICK)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.utterance is not None:
            payload["utterance"] = self.utterance
        if self.confidence is not None:
            payload["confidence"] = self.confidence
        if self.interpretation is not None:
            payload["interpretation"] = self.interpretation
        return payload

    @classmethod
    def from_payload(cls, event_type: str, payload: Dict[str, Any]) -> "DialogueEvent":
        return cls(
            type=EventType(event_type),
            utterance=payload.get("utterance"),
            confidence=payload.get("confidence"),
            interpretation=payload.get("interpretation"),
        )


@dataclass(frozen=True)
class Command:
    """One command issued to the speech boundary."""
    type: CommandType
    utterance: Optional[str] = None
    use_nlu: bool = False

    @classmethod
    def prepare(cls) -> "Command":
        return cls(CommandType.PREPARE)

    @classmethod
    def speak(cls, utterance: str) -> "Command":
        return cls(CommandType.SPEAK, utterance=utterance)

    @classmethod
    def listen(cls, use_nlu: bool = False) -> "Command":
        return cls(CommandType.LISTEN, use_nlu=use_nlu)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value}
        if self.type == CommandType.SPEAK:
            data["utterance"] = self.utterance
        elif self.type == CommandType.LISTEN:
            data["use_nlu"] = self.use_nlu
        return data


@dataclass
class VoiceEvent:
    """
    Transport envelope for events and commands on Redis Streams.
    """
    event_type: str
    session_id: str
    payload: Dict[str, Any]
    source: str
    timestamp: float = field(default_factory=time.time)
    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    def to_redis_dict(self) -> Dict[str, str]:
        """
        Convert to Redis-compatible dictionary (all values must be strings/bytes).
        The payload and metadata are JSON serialized.
        """
        return {
            "event_type": self.event_type,
            "session_id": self.session_id,
            "source": self.source,
            "timestamp": str(self.timestamp),
            "correlation_id": self.correlation_id,
            "payload": json.dumps(self.payload),
            "metadata": json.dumps(self.metadata)
        }

    @classmethod
    def from_redis_dict(cls, data: Dict[Any, Any]) -> 'VoiceEvent':
        """Create VoiceEvent from Redis stream data."""
        # Redis may hand back bytes keys and values
        def get(key: str):
            val = data.get(key)
            if val is None:
                val = data.get(key.encode())
            return val.decode('utf-8') if isinstance(val, bytes) else val

        return cls(
            event_type=get("event_type"),
            session_id=get("session_id"),
            source=get("source"),
            timestamp=float(get("timestamp") or 0.0),
            correlation_id=get("correlation_id"),
            payload=json.loads(get("payload") or "{}"),
            metadata=json.loads(get("metadata") or "{}")
        )

    def validate_payload(self) -> None:
        """Validate payload schema for event types that carry data."""
        required = {
            EventType.RECOGNISED.value: ["utterance"],
            CommandType.SPEAK.value: ["utterance"],
        }

        fields = required.get(self.event_type)
        if fields:
            missing = [f for f in fields if f not in self.payload]
            if missing:
                raise ValueError(
                    f"Event {self.event_type} payload missing required fields: {missing}. "
                    f"Payload: {self.payload}"
                )
