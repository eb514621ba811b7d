"""Shared test fixtures and configuration for backend tests."""
import random

import pytest
from fastapi.testclient import TestClient

from chatrelay.chat.identity import IdentityAllocator
from chatrelay.chat.manager import BroadcastRouter, set_relay
from chatrelay.chat.registry import SessionRegistry
from chatrelay.main import app


@pytest.fixture(autouse=True)
def relay():
    """Install a fresh relay for every test so no state leaks between tests."""
    fresh = BroadcastRouter(
        registry=SessionRegistry(IdentityAllocator(random.Random(1234)))
    )
    set_relay(fresh)
    yield fresh
    set_relay(None)


@pytest.fixture
def api_client():
    """Provide a TestClient for the main FastAPI app."""
    return TestClient(app)
