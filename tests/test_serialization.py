"""Tests for session record encoding."""

from __future__ import annotations

import json

from plogtrack.tracking.models import PositionFix, SessionAggregate, SessionSummary
from plogtrack.tracking.serialization import (
    decode_session,
    encode_fix,
    encode_session,
    session_from_json,
    session_to_json,
)


class TestSessionEncoding:
    """Tests for the persisted record shape."""

    def test_fix_leaves_out_unknown_readings(self) -> None:
        data = encode_fix(PositionFix(latitude=1.5, longitude=2.5, timestamp=42, speed=1.2))
        assert data == {"latitude": 1.5, "longitude": 2.5, "timestamp": 42, "speed": 1.2}

    def test_active_session_record(self, walk) -> None:
        session = SessionAggregate.begin(500)
        for fix in walk[:2]:
            session.append_fix(fix)
        data = encode_session(session)

        assert data["id"] == session.id
        assert data["start_time"] == 500
        assert data["end_time"] is None
        assert data["summary"] is None
        assert len(data["fixes"]) == 2
        assert "name" not in data
        json.dumps(data)

    def test_finished_session_with_summary_restores(self, walk) -> None:
        session = SessionAggregate.begin(500, name="beach")
        for fix in walk:
            session.append_fix(fix)
        session.finish(9500)
        session = session.with_summary(SessionSummary.create(2500, ["glass", "plastic"]))

        restored = decode_session(json.loads(json.dumps(encode_session(session))))

        assert restored == session
        assert encode_session(session)["summary"] == {
            "weight_grams": 2500,
            "categories": ["plastic", "glass"],
        }

    def test_json_text_is_stable(self, walk) -> None:
        session = SessionAggregate.begin(500)
        session.append_fix(walk[0])
        text = session_to_json(session)
        assert session_to_json(session_from_json(text)) == text

    def test_decode_minimal_record(self) -> None:
        restored = decode_session({"id": "session_1", "start_time": 1})
        assert restored.fixes == []
        assert restored.distance_m == 0.0
        assert restored.is_active
