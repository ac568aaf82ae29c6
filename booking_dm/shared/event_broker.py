"""
Redis Streams Event Broker Wrapper.

Carries dialogue commands and speech-engine events between the dialogue
manager and an out-of-process speech boundary.
"""

import logging
from typing import Dict, List, Tuple
import redis.asyncio as redis
from .events import VoiceEvent

logger = logging.getLogger(__name__)

COMMAND_STREAM_PREFIX = "dm:commands:"
EVENT_STREAM_PREFIX = "dm:events:"


def command_stream(session_id: str) -> str:
    return f"{COMMAND_STREAM_PREFIX}{session_id}"


def event_stream(session_id: str) -> str:
    return f"{EVENT_STREAM_PREFIX}{session_id}"


class EventBroker:
    """
    Wrapper around Redis Streams for dialogue commands and events.
    """
    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    async def publish(self, stream_key: str, event: VoiceEvent, max_len: int = 10000) -> str:
        """
        Publish an event to a Redis Stream.

        Args:
            stream_key: The Redis key for the stream (e.g., "dm:commands:abc")
            event: VoiceEvent object
            max_len: Maximum stream length (older entries are trimmed)

        Returns:
            The message ID of the published event.
        """
        try:
            event.validate_payload()
            message_id = await self.redis.xadd(
                stream_key, event.to_redis_dict(), maxlen=max_len, approximate=True
            )
            return message_id
        except Exception as e:
            logger.error(f"Failed to publish event to {stream_key}: {e}")
            raise

    async def consume(
        self,
        streams: Dict[str, str],
        count: int = 10,
        block: int = 100
    ) -> List[Tuple[str, List[Tuple[str, Dict]]]]:
        """
        Consume raw entries from one or more streams (XREAD).

        Args:
            streams: Dict mapping stream_key -> last_id (e.g. {"dm:events:abc": "$"})
            count: Max messages per stream
            block: Block time in ms (0 = infinite)

        Returns:
            List of [stream_key, [(msg_id, data), ...]]
        """
        return await self.redis.xread(streams, count=count, block=block)

    async def read_events(
        self,
        stream_key: str,
        last_id: str,
        count: int = 1,
        block: int = 0
    ) -> List[Tuple[str, VoiceEvent]]:
        """
        Read and decode events from a single stream after `last_id`.

        Returns:
            List of (message_id, VoiceEvent) in stream order
        """
        decoded: List[Tuple[str, VoiceEvent]] = []
        for _, messages in await self.consume({stream_key: last_id}, count=count, block=block):
            for msg_id, data in messages:
                if isinstance(msg_id, bytes):
                    msg_id = msg_id.decode("utf-8")
                decoded.append((msg_id, VoiceEvent.from_redis_dict(data)))
        return decoded
