from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from community_events.backends.memory import MemoryBackend
from community_events.backends.sqlite import SQLiteBackend
from community_events.errors import BackendError
from community_events.models import EventItem, Identity, format_instant

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def event_row(start: datetime = NOW + timedelta(days=1), **overrides) -> dict:
    """A raw ``events`` row as a backend would store it."""
    row = {
        "title": "Live Jazz in the Park",
        "description": "An evening of smooth jazz with local artists.",
        "category": "Music",
        "start": format_instant(start),
        "end": None,
        "address": "Riverside Park, Springfield",
        "price": "$10",
        "website": "https://example.com/jazz-park",
        "lat": 39.7969,
        "lng": -89.6502,
        "status": "approved",
        "organizer_id": "organizer-1",
    }
    row.update(overrides)
    return row


def make_event(id: str = "1", **overrides) -> EventItem:
    data = {
        "id": id,
        "title": "Downtown Farmers' Market",
        "description": "Local produce, baked goods, and handmade crafts.",
        "category": "Food",
        "start": "2026-02-17T09:00:00.000Z",
        "address": "100 Main St, Springfield",
        "price": "Free",
        "lat": 39.8015,
        "lng": -89.6437,
    }
    data.update(overrides)
    return EventItem.model_validate(data)


class BrokenBackend(MemoryBackend):
    """Every table call fails the way an unreachable store would."""

    async def select(self, query):
        raise BackendError("connection refused")

    async def insert(self, table, row):
        raise BackendError('new row for relation "events" violates check constraint')

    async def update(self, query, values):
        raise BackendError("connection refused")

    async def delete(self, query):
        raise BackendError("connection refused")


@pytest.fixture
def organizer() -> Identity:
    return Identity(id="organizer-1", email="organizer@example.com")


@pytest.fixture
def admin_identity() -> Identity:
    return Identity(id="admin-1", email="admin@example.com")


@pytest_asyncio.fixture
async def sqlite_backend(tmp_path):
    backend = SQLiteBackend(tmp_path / "events.db")
    await backend.setup()
    yield backend
    await backend.aclose()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def backend(request, tmp_path):
    if request.param == "memory":
        backend = MemoryBackend()
    else:
        backend = SQLiteBackend(tmp_path / "events.db")
    await backend.setup()
    yield backend
    await backend.aclose()
