"""Tests for recovering an active session after a restart."""

from __future__ import annotations

import pytest

from plogtrack.db.connection import DatabaseConnection
from plogtrack.tracking.engine import EngineState, TrackingEngine
from plogtrack.tracking.errors import AlreadyActive
from plogtrack.tracking.geo import path_distance
from plogtrack.tracking.models import PositionFix
from plogtrack.tracking.serialization import session_to_json
from plogtrack.tracking.store import SqliteSessionStore


def restart(temp_db, clock) -> TrackingEngine:
    """Simulate a new process: fresh connection, store and engine."""
    store = SqliteSessionStore(DatabaseConnection(temp_db.db_path), retry_attempts=1)
    return TrackingEngine(store, clock=clock)


class TestRecover:
    """Tests for recover()."""

    def test_nothing_to_recover(self, temp_db, clock) -> None:
        engine = restart(temp_db, clock)
        assert engine.recover() is None
        assert engine.state is EngineState.IDLE

    def test_empty_session_right_after_start(self, temp_db, clock) -> None:
        first = restart(temp_db, clock)
        session = first.start()

        second = restart(temp_db, clock)
        recovered = second.recover()
        assert recovered.id == session.id
        assert recovered.fixes == []
        assert second.is_active

    def test_recovers_acknowledged_fixes(self, temp_db, clock, walk) -> None:
        first = restart(temp_db, clock)
        first.start()
        results = [first.ingest(f) for f in walk]
        assert all(r.persisted for r in results)

        second = restart(temp_db, clock)
        recovered = second.recover()
        assert recovered.fixes == walk
        assert recovered.distance_m == pytest.approx(first.current().distance_m, rel=1e-9)

    def test_unacknowledged_fix_not_recovered(self, temp_db, clock, walk, monkeypatch) -> None:
        """A write that failed leaves the last acknowledged state behind."""
        first = restart(temp_db, clock)
        first.start()
        first.ingest(walk[0])
        first.ingest(walk[1])

        def refuse(_session):
            from plogtrack.tracking.errors import StoreUnavailable

            raise StoreUnavailable("power loss")

        monkeypatch.setattr(first.store, "put_active", refuse)
        result = first.ingest(walk[2])
        assert not result.persisted

        recovered = restart(temp_db, clock).recover()
        assert recovered.fixes == walk[:2]

    def test_resumes_ingesting(self, temp_db, clock, walk) -> None:
        first = restart(temp_db, clock)
        first.start()
        first.ingest(walk[0])
        first.ingest(walk[1])

        second = restart(temp_db, clock)
        second.recover()
        result = second.ingest(walk[2])
        assert result.accepted
        assert result.snapshot.fix_count == 3
        assert result.snapshot.distance_m == pytest.approx(path_distance(walk[:3]), rel=1e-6)

    def test_idempotent(self, temp_db, clock, walk) -> None:
        first = restart(temp_db, clock)
        first.start()
        for fix in walk:
            first.ingest(fix)

        engine = restart(temp_db, clock)
        once = engine.recover()
        clock.advance(5000)
        twice = engine.recover()
        assert session_to_json(once) == session_to_json(twice)

    def test_start_after_recover_fails(self, temp_db, clock) -> None:
        restart(temp_db, clock).start()
        engine = restart(temp_db, clock)
        engine.recover()
        with pytest.raises(AlreadyActive):
            engine.start()

    def test_recover_publishes_snapshot(self, temp_db, clock) -> None:
        restart(temp_db, clock).start()
        engine = restart(temp_db, clock)
        seen = []
        engine.subscribe(seen.append)
        engine.recover()
        engine.recover()
        assert len(seen) == 1

    def test_recomputes_drifted_distance(self, temp_db, clock, walk) -> None:
        first = restart(temp_db, clock)
        first.start()
        for fix in walk:
            first.ingest(fix)
        tampered = first.store.get_active()
        tampered.distance_m = 1.0
        first.store.put_active(tampered)

        recovered = restart(temp_db, clock).recover()
        assert recovered.distance_m == pytest.approx(path_distance(walk), rel=1e-9)


class TestInterruptedStop:
    """A crash between the two writes of stop()."""

    def test_completed_and_still_in_active_slot(self, temp_db, clock, walk) -> None:
        first = restart(temp_db, clock)
        session = first.start()
        first.ingest(walk[0])
        first.store.append_completed(first.current())  # first write of stop()
        # crash before the active slot is cleared

        second = restart(temp_db, clock)
        assert second.recover() is None
        assert second.state is EngineState.IDLE
        assert second.store.get_active() is None
        assert [s.id for s in second.store.list_completed()] == [session.id]

    def test_ended_session_in_active_slot(self, temp_db, clock) -> None:
        first = restart(temp_db, clock)
        first.start()
        ended = first.current()
        ended.finish(clock.now + 10)
        first.store.put_active(ended)

        second = restart(temp_db, clock)
        assert second.recover() is None
        assert second.store.get_completed(ended.id) == ended
        assert second.store.get_active() is None

    def test_stop_after_recover(self, temp_db, clock, walk) -> None:
        first = restart(temp_db, clock)
        session = first.start()
        first.ingest(walk[0])

        second = restart(temp_db, clock)
        second.recover()
        clock.advance(30_000)
        final = second.stop()
        assert final.id == session.id
        assert final.duration_ms == 30_000
        assert second.store.get_active() is None
        assert second.store.get_completed(session.id) == final


def test_fix_order_survives_restart(temp_db, clock) -> None:
    """Arrival order, not timestamp order, is what gets persisted."""
    engine = restart(temp_db, clock)
    engine.start()
    late = PositionFix(latitude=0.0, longitude=0.001, timestamp=5000)
    early = PositionFix(latitude=0.0, longitude=0.0, timestamp=1000)
    engine.ingest(late)
    engine.ingest(early)

    recovered = restart(temp_db, clock).recover()
    assert [f.timestamp for f in recovered.fixes] == [5000, 1000]
