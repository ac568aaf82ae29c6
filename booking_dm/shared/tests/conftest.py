"""
Pytest fixtures for shared module tests.
"""

import pytest
from unittest.mock import AsyncMock


@pytest.fixture
def mock_redis_client():
    """Create a mock Redis client."""
    client = AsyncMock()

    client.xadd = AsyncMock(return_value="1234567890-0")
    client.xread = AsyncMock(return_value=[])
    client.ping = AsyncMock(return_value=True)

    return client


@pytest.fixture
def sample_voice_event():
    """Create a sample VoiceEvent for testing."""
    from booking_dm.shared.events import VoiceEvent

    return VoiceEvent(
        event_type="recognised",
        session_id="test_session_123",
        source="speech_engine",
        payload={"utterance": "vlad", "confidence": 0.95},
        metadata={"locale": "en-US"}
    )


@pytest.fixture
def sample_event_dict():
    """Create a sample event as a Redis-compatible dict."""
    return {
        "event_type": "recognised",
        "session_id": "test_session_123",
        "source": "speech_engine",
        "timestamp": "1234567890.123",
        "correlation_id": "abc-123-def",
        "payload": '{"utterance": "vlad", "confidence": 0.95}',
        "metadata": '{"locale": "en-US"}'
    }
