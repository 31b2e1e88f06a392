"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeClock:
    """Controllable UTC clock for TTL tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from relay.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def tracker(storage):
    """Create Tracker with storage."""
    from relay.tracker import Tracker

    return Tracker(storage)


@pytest.fixture
def mock_tracker():
    """Tracker double that records calls."""
    tr = Mock()
    tr.track = AsyncMock()
    tr.report = AsyncMock()
    return tr


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def state(storage, mock_tracker, clock):
    """Create SessionStateStore on in-memory storage with a fake clock."""
    from relay.state import SessionStateStore

    return SessionStateStore(storage, mock_tracker, clock=clock)


@pytest.fixture
def mock_client():
    """Dialogue client double; tests set return values per call."""
    from relay.models import DialogueResponse

    client = Mock()
    client.start = AsyncMock(return_value=DialogueResponse(session_id="sess-new"))
    client.continue_chat = AsyncMock(return_value=DialogueResponse(session_id="sess-1"))
    client.update_flow = AsyncMock(return_value=None)
    client.close = AsyncMock()
    return client


@pytest.fixture
def resolver(mock_client, state, mock_tracker):
    """Create DialogueSessionResolver with a mocked dialogue client."""
    from relay.dialogue import DialogueSessionResolver

    return DialogueSessionResolver(mock_client, state, mock_tracker, "default")
