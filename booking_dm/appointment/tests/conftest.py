"""
Test configuration and fixtures for appointment dialogue tests.

Mocks the Redis client and configuration for isolated testing.
"""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from booking_dm.appointment.app import app
from booking_dm.appointment.config import DialogueConfig
from booking_dm.appointment.fsm_manager import DialogueMachine
from booking_dm.appointment.models import Variant


@pytest.fixture
def test_config():
    """Test configuration fixture"""
    return DialogueConfig(
        variant="grammar",
        redis_url="redis://localhost:6379",
        log_state_transitions=False,
    )


@pytest.fixture
def grammar_machine():
    return DialogueMachine(variant=Variant.GRAMMAR)


@pytest.fixture
def nlu_machine():
    return DialogueMachine(variant=Variant.NLU)


@pytest.fixture
def mock_redis_client():
    """Mock Redis client for testing"""
    mock_client = AsyncMock()
    published = []

    async def mock_xadd(stream_key, fields, maxlen=None, approximate=True):
        published.append((stream_key, fields))
        return f"{len(published)}-0"

    mock_client.xadd.side_effect = mock_xadd
    mock_client.ping.return_value = True
    mock_client.published = published
    return mock_client


@pytest.fixture
def client(mock_redis_client, test_config):
    """FastAPI test client with mocked dependencies"""
    with patch('booking_dm.appointment.app.redis_client', mock_redis_client), \
         patch('booking_dm.appointment.app.config', test_config), \
         patch('booking_dm.appointment.app.runner', None):
        yield TestClient(app)


@pytest.fixture
def offline_client(test_config):
    """FastAPI test client without Redis"""
    with patch('booking_dm.appointment.app.redis_client', None), \
         patch('booking_dm.appointment.app.config', test_config), \
         patch('booking_dm.appointment.app.runner', None):
        yield TestClient(app)
