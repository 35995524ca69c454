"""Pytest fixtures for plogtrack tests."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from plogtrack.db.connection import DatabaseConnection
from plogtrack.tracking.engine import TrackingEngine
from plogtrack.tracking.models import PositionFix
from plogtrack.tracking.store import InMemorySessionStore, SqliteSessionStore


class FakeClock:
    """Manually advanced epoch-milliseconds clock."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def temp_db():
    """Create a temporary database with schema."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    db = DatabaseConnection(db_path)
    db.initialize_schema()

    yield db

    # Cleanup
    db_path.unlink(missing_ok=True)


@pytest.fixture
def sqlite_store(temp_db):
    """SQLite-backed session store with fast retries."""
    return SqliteSessionStore(temp_db, retry_attempts=2, retry_backoff_s=0.0)


@pytest.fixture
def memory_store():
    return InMemorySessionStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(memory_store, clock):
    """Idle engine over an in-memory store with a fake clock."""
    return TrackingEngine(memory_store, clock=clock)


@pytest.fixture
def walk():
    """A short walk heading east along the equator, about 11 m per step."""
    return [
        PositionFix(latitude=0.0, longitude=0.0001 * i, timestamp=1000 * (i + 1))
        for i in range(6)
    ]
