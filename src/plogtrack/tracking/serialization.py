"""Encoding of sessions to and from plain, JSON-serializable records.

The record shape is what the session store persists: one dict per
session, with fixes nested as a list in arrival order. Units are stored
as-is (degrees, meters, epoch milliseconds, grams).
"""

from __future__ import annotations

import json
from typing import Any, Optional

from plogtrack.tracking.models import (
    PositionFix,
    SessionAggregate,
    SessionSummary,
)

_OPTIONAL_FIX_FIELDS = ("accuracy", "altitude", "speed")


def encode_fix(fix: PositionFix) -> dict[str, Any]:
    """Convert a PositionFix to a dict, leaving out unknown optional readings."""
    data: dict[str, Any] = {
        "latitude": fix.latitude,
        "longitude": fix.longitude,
        "timestamp": fix.timestamp,
    }
    for name in _OPTIONAL_FIX_FIELDS:
        value = getattr(fix, name)
        if value is not None:
            data[name] = value
    return data


def decode_fix(data: dict[str, Any]) -> PositionFix:
    """Convert a dict produced by encode_fix() back into a PositionFix."""
    optional: dict[str, Optional[float]] = {}
    for name in _OPTIONAL_FIX_FIELDS:
        value = data.get(name)
        optional[name] = float(value) if value is not None else None
    return PositionFix(
        latitude=float(data["latitude"]),
        longitude=float(data["longitude"]),
        timestamp=int(data["timestamp"]),
        **optional,
    )


def encode_summary(summary: SessionSummary) -> dict[str, Any]:
    return {
        "weight_grams": summary.weight_grams,
        "categories": [c.value for c in summary.sorted_categories()],
    }


def decode_summary(data: dict[str, Any]) -> SessionSummary:
    return SessionSummary.create(
        weight_grams=int(data["weight_grams"]),
        categories=data.get("categories", []),
    )


def encode_session(session: SessionAggregate) -> dict[str, Any]:
    """Convert a SessionAggregate to a JSON-serializable dict.

    Args:
        session: The session to encode

    Returns:
        Dictionary compatible with decode_session()
    """
    data: dict[str, Any] = {
        "id": session.id,
        "start_time": session.start_time,
        "end_time": session.end_time,
        "fixes": [encode_fix(f) for f in session.fixes],
        "distance_m": session.distance_m,
        "duration_ms": session.duration_ms,
        "summary": encode_summary(session.summary) if session.summary else None,
    }
    if session.name is not None:
        data["name"] = session.name
    return data


def decode_session(data: dict[str, Any]) -> SessionAggregate:
    """Convert a dict produced by encode_session() back into a SessionAggregate.

    Args:
        data: Dictionary containing the encoded session

    Returns:
        SessionAggregate reconstructed from the data
    """
    end_time = data.get("end_time")
    summary_data = data.get("summary")
    return SessionAggregate(
        id=str(data["id"]),
        start_time=int(data["start_time"]),
        end_time=int(end_time) if end_time is not None else None,
        fixes=[decode_fix(f) for f in data.get("fixes", [])],
        distance_m=float(data.get("distance_m", 0.0)),
        duration_ms=int(data.get("duration_ms", 0)),
        summary=decode_summary(summary_data) if summary_data else None,
        name=data.get("name"),
    )


def session_to_json(session: SessionAggregate) -> str:
    """Compact, key-sorted JSON text for a session (stable byte output)."""
    return json.dumps(encode_session(session), sort_keys=True, separators=(",", ":"))


def session_from_json(text: str) -> SessionAggregate:
    return decode_session(json.loads(text))
