"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - gateway: scripted gateway installed in place of the provider client
    - async_client: HTTPX client for the relay app
    - message_log / blob_store: in-memory storage
    - sync_config: synchronizer settings pointing at the in-process relay
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from chatrelay.api import app
from chatrelay.storage.memory import InMemoryBlobStore, InMemoryMessageLog
from chatrelay.sync.config import SyncConfig
from tests.fakes import ScriptedGateway

RELAY_URL = "http://test/api/chat"


@pytest.fixture
def gateway(monkeypatch: pytest.MonkeyPatch) -> ScriptedGateway:
    """Install a scripted gateway behind the relay endpoint.

    Tests adjust its fragments or failure mode before making requests.
    """
    scripted = ScriptedGateway()
    monkeypatch.setattr("chatrelay.api.chat.get_gateway_service", lambda: scripted)
    return scripted


@pytest.fixture
def relay_transport() -> ASGITransport:
    """ASGI transport that returns partial bodies instead of raising app errors."""
    return ASGITransport(app=app, raise_app_exceptions=False)


@pytest.fixture
async def async_client(relay_transport: ASGITransport) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    async with AsyncClient(transport=relay_transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def message_log() -> InMemoryMessageLog:
    return InMemoryMessageLog()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(relay_url=RELAY_URL, request_timeout=5.0)
