"""Tests for the in-memory and SQLite session stores."""

from __future__ import annotations

import pytest

from plogtrack.db.connection import DatabaseConnection
from plogtrack.db.schema import SCHEMA_VERSION
from plogtrack.tracking.errors import SessionNotFound, StoreUnavailable
from plogtrack.tracking.models import PositionFix, SessionAggregate, SessionSummary
from plogtrack.tracking.store import SqliteSessionStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request, memory_store, sqlite_store):
    """Run each test against both store implementations."""
    return memory_store if request.param == "memory" else sqlite_store


def finished_session(start: int, fixes: int = 2) -> SessionAggregate:
    session = SessionAggregate.begin(start)
    for i in range(fixes):
        session.append_fix(PositionFix(latitude=0.0, longitude=0.001 * i, timestamp=start + i))
    session.finish(start + 60_000)
    return session


class TestActiveSlot:
    """Tests for the single active-session slot."""

    def test_empty_at_start(self, store) -> None:
        assert store.get_active() is None

    def test_put_and_get(self, store) -> None:
        session = SessionAggregate.begin(1000)
        session.append_fix(PositionFix(latitude=1.0, longitude=2.0, timestamp=1001))
        store.put_active(session)

        loaded = store.get_active()
        assert loaded == session
        assert loaded is not session

    def test_replace_whole_value(self, store) -> None:
        first = SessionAggregate.begin(1000)
        second = SessionAggregate.begin(2000)
        store.put_active(first)
        store.put_active(second)
        assert store.get_active().id == second.id

    def test_clear(self, store) -> None:
        store.put_active(SessionAggregate.begin(1000))
        store.put_active(None)
        assert store.get_active() is None

    def test_returned_copy_does_not_alias(self, store) -> None:
        store.put_active(SessionAggregate.begin(1000))
        loaded = store.get_active()
        loaded.append_fix(PositionFix(latitude=0.0, longitude=0.0, timestamp=1))
        assert store.get_active().fix_count == 0


class TestCompletedCollection:
    """Tests for completed sessions."""

    def test_append_list_get(self, store) -> None:
        a = finished_session(1000)
        b = finished_session(5000)
        store.append_completed(a)
        store.append_completed(b)

        assert [s.id for s in store.list_completed()] == [a.id, b.id]
        assert store.get_completed(b.id) == b
        assert store.get_completed("nope") is None
        assert store.has_completed(a.id)

    def test_append_same_id_does_not_duplicate(self, store) -> None:
        a = finished_session(1000)
        b = finished_session(5000)
        store.append_completed(a)
        store.append_completed(b)
        store.append_completed(a)

        assert [s.id for s in store.list_completed()] == [a.id, b.id]

    def test_replace(self, store) -> None:
        a = finished_session(1000)
        store.append_completed(a)
        updated = a.with_summary(SessionSummary.create(300, ["metal"]))
        store.replace_completed(updated)
        assert store.get_completed(a.id).summary == updated.summary

    def test_replace_unknown(self, store) -> None:
        with pytest.raises(SessionNotFound):
            store.replace_completed(finished_session(1000))

    def test_delete(self, store) -> None:
        a = finished_session(1000)
        store.append_completed(a)
        store.delete_completed(a.id)
        assert store.list_completed() == []
        with pytest.raises(SessionNotFound):
            store.delete_completed(a.id)

    def test_active_and_completed_independent(self, store) -> None:
        active = SessionAggregate.begin(9000)
        store.put_active(active)
        store.append_completed(finished_session(1000))
        store.put_active(None)
        assert len(store.list_completed()) == 1


class TestSqliteStore:
    """SQLite-specific behaviour."""

    def test_survives_reopen(self, temp_db) -> None:
        """A new store over the same file sees what the old one wrote."""
        session = SessionAggregate.begin(1000)
        session.append_fix(PositionFix(latitude=1.0, longitude=1.0, timestamp=1000))
        SqliteSessionStore(temp_db).put_active(session)

        reopened = SqliteSessionStore(DatabaseConnection(temp_db.db_path))
        assert reopened.get_active() == session

    def test_single_active_row(self, sqlite_store, temp_db) -> None:
        sqlite_store.put_active(SessionAggregate.begin(1))
        sqlite_store.put_active(SessionAggregate.begin(2))
        assert temp_db.row_count("active_session") == 1

    def test_schema_version_stamped(self, sqlite_store, temp_db) -> None:
        assert temp_db.schema_version() == SCHEMA_VERSION

    def test_row_count_rejects_unknown_table(self, temp_db) -> None:
        with pytest.raises(ValueError, match="Unknown table"):
            temp_db.row_count("sqlite_master")

    def test_unreachable_database(self, tmp_path) -> None:
        """A path that cannot be opened is reported as StoreUnavailable."""
        with pytest.raises(StoreUnavailable):
            SqliteSessionStore(DatabaseConnection(tmp_path), retry_attempts=2, retry_backoff_s=0.0)

    def test_write_failure_retried_then_raised(self, sqlite_store, temp_db, monkeypatch) -> None:
        import sqlite3

        calls = []

        def broken():
            calls.append(1)
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(temp_db, "get_connection", broken)
        with pytest.raises(StoreUnavailable, match="database is locked"):
            sqlite_store.put_active(SessionAggregate.begin(1))
        assert len(calls) == 2
