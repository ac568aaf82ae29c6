"""
Speech boundary adapters

The dialogue manager talks to the speech engine over two channels: an
outbound command channel (prepare, speak, listen) and an inbound event
channel (engine ready, speak complete, recognised, no input). Each adapter
implements both ends for one transport.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

import redis.asyncio as redis

from booking_dm.shared.event_broker import EventBroker, command_stream, event_stream
from booking_dm.shared.events import Command, CommandType, DialogueEvent, VoiceEvent
from booking_dm.intent.nlu_adapter import parse_interpretation

logger = logging.getLogger(__name__)


class SpeechBoundary(Protocol):
    """Structural type for speech boundary adapters."""

    async def send(self, command: Command) -> None: ...

    async def receive(self) -> DialogueEvent: ...


class QueueSpeechBoundary:
    """
    In-process boundary backed by two asyncio queues.

    The speech engine side reads `commands` and feeds `events`.
    """

    def __init__(self) -> None:
        self.commands: "asyncio.Queue[Command]" = asyncio.Queue()
        self.events: "asyncio.Queue[DialogueEvent]" = asyncio.Queue()

    async def send(self, command: Command) -> None:
        await self.commands.put(command)

    async def receive(self) -> DialogueEvent:
        return await self.events.get()

    async def deliver(self, event: DialogueEvent) -> None:
        """Speech engine side: hand an event to the dialogue manager."""
        await self.events.put(event)


class RedisSpeechBoundary:
    """
    Boundary over Redis Streams for a speech engine running in another process.

    Commands go to `dm:commands:<session>`, events are read from
    `dm:events:<session>`. PREPARE carries the speech settings in its payload.
    """

    SOURCE = "dialogue_manager"

    def __init__(
        self,
        session_id: str,
        redis_client: redis.Redis,
        speech_settings: Optional[Dict[str, Any]] = None,
        block_ms: int = 0,
    ):
        self.session_id = session_id
        self.broker = EventBroker(redis_client)
        self.speech_settings = speech_settings or {}
        self.block_ms = block_ms
        self._last_id = "0-0"
        self._buffer: "asyncio.Queue[DialogueEvent]" = asyncio.Queue()

    async def send(self, command: Command) -> None:
        payload = command.to_dict()
        payload.pop("type")
        if command.type == CommandType.PREPARE and self.speech_settings:
            payload["settings"] = self.speech_settings
        envelope = VoiceEvent(
            event_type=command.type.value,
            session_id=self.session_id,
            payload=payload,
            source=self.SOURCE,
        )
        await self.broker.publish(command_stream(self.session_id), envelope)

    async def receive(self) -> DialogueEvent:
        while self._buffer.empty():
            entries = await self.broker.read_events(
                event_stream(self.session_id), self._last_id, count=10, block=self.block_ms
            )
            for msg_id, envelope in entries:
                self._last_id = msg_id
                try:
                    event = DialogueEvent.from_payload(envelope.event_type, envelope.payload)
                    parse_interpretation(event.interpretation)
                except ValueError as e:
                    logger.warning(
                        f"[{self.session_id}] Skipping malformed event {msg_id} "
                        f"({envelope.event_type!r}): {e}"
                    )
                    continue
                await self._buffer.put(event)
        return await self._buffer.get()
