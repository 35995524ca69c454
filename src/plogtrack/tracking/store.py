"""Durable storage for the active session slot and completed sessions.

A store exposes whole-value reads and replaces over two keys: the single
active slot and the collection of completed sessions. There are no
transactions spanning both; callers that need to move a session from one to
the other order the writes themselves.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, TypeVar

from plogtrack.db.connection import DatabaseConnection
from plogtrack.tracking.errors import SessionNotFound, StoreUnavailable
from plogtrack.tracking.models import SessionAggregate
from plogtrack.tracking.serialization import decode_session, encode_session

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionStore(ABC):
    """Persistence interface used by the tracking engine and summary finalizer.

    Every method returns independent copies; mutating a returned aggregate
    never changes what is stored.
    """

    @abstractmethod
    def get_active(self) -> Optional[SessionAggregate]:
        """Return the session in the active slot, or None."""

    @abstractmethod
    def put_active(self, session: Optional[SessionAggregate]) -> None:
        """Replace the active slot. None clears it."""

    @abstractmethod
    def append_completed(self, session: SessionAggregate) -> None:
        """Add a session to the completed collection.

        An id that is already present is replaced in place, so repeating
        the write after a crash cannot create a duplicate.
        """

    @abstractmethod
    def list_completed(self) -> list[SessionAggregate]:
        """Return all completed sessions in the order they were first appended."""

    @abstractmethod
    def get_completed(self, session_id: str) -> Optional[SessionAggregate]:
        """Return one completed session by id, or None."""

    @abstractmethod
    def delete_completed(self, session_id: str) -> None:
        """Delete a completed session. Raises SessionNotFound for unknown ids."""

    @abstractmethod
    def replace_completed(self, session: SessionAggregate) -> None:
        """Overwrite an existing completed session. Raises SessionNotFound."""

    def has_completed(self, session_id: str) -> bool:
        return self.get_completed(session_id) is not None


class InMemorySessionStore(SessionStore):
    """Store kept in process memory.

    Records are held in their encoded form, the same shape the sqlite store
    persists, so stored values never alias live aggregates.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: Optional[dict[str, Any]] = None
        self._completed: dict[str, dict[str, Any]] = {}

    def get_active(self) -> Optional[SessionAggregate]:
        with self._lock:
            record = self._active
        return decode_session(record) if record is not None else None

    def put_active(self, session: Optional[SessionAggregate]) -> None:
        record = encode_session(session) if session is not None else None
        with self._lock:
            self._active = record

    def append_completed(self, session: SessionAggregate) -> None:
        record = encode_session(session)
        with self._lock:
            self._completed[session.id] = record

    def list_completed(self) -> list[SessionAggregate]:
        with self._lock:
            records = list(self._completed.values())
        return [decode_session(r) for r in records]

    def get_completed(self, session_id: str) -> Optional[SessionAggregate]:
        with self._lock:
            record = self._completed.get(session_id)
        return decode_session(record) if record is not None else None

    def delete_completed(self, session_id: str) -> None:
        with self._lock:
            if session_id not in self._completed:
                raise SessionNotFound(session_id)
            del self._completed[session_id]

    def replace_completed(self, session: SessionAggregate) -> None:
        record = encode_session(session)
        with self._lock:
            if session.id not in self._completed:
                raise SessionNotFound(session.id)
            self._completed[session.id] = record


class SqliteSessionStore(SessionStore):
    """Session store backed by a SQLite database.

    Each write runs in its own transaction, so a reader (or a process that
    restarts after a crash) sees either the previous value or the new one.
    Locked or unreachable databases are retried with a linear backoff and
    then reported as StoreUnavailable.
    """

    def __init__(
        self,
        db: DatabaseConnection,
        retry_attempts: int = 3,
        retry_backoff_s: float = 0.05,
    ):
        """Initialize the store and make sure its tables exist.

        Args:
            db: Connection manager for the database file
            retry_attempts: Total tries per operation (minimum 1)
            retry_backoff_s: Sleep before retry n is n * retry_backoff_s
        """
        self.db = db
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff_s = retry_backoff_s
        self._run("initialize schema", lambda: db.initialize_schema())

    def _run(self, action: str, operation: Callable[[], T]) -> T:
        last_error: Optional[sqlite3.Error] = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return operation()
            except sqlite3.DatabaseError as exc:
                last_error = exc
                logger.debug(
                    "store %s failed (attempt %d/%d): %s",
                    action,
                    attempt,
                    self.retry_attempts,
                    exc,
                )
                if attempt < self.retry_attempts:
                    time.sleep(self.retry_backoff_s * attempt)
        raise StoreUnavailable(f"could not {action}: {last_error}") from last_error

    def get_active(self) -> Optional[SessionAggregate]:
        def read() -> Optional[str]:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT payload FROM active_session WHERE slot = 1"
                ).fetchone()
                return row["payload"] if row else None

        payload = self._run("read active session", read)
        return decode_session(json.loads(payload)) if payload else None

    def put_active(self, session: Optional[SessionAggregate]) -> None:
        if session is None:

            def clear() -> None:
                with self.db.get_connection() as conn:
                    conn.execute("DELETE FROM active_session WHERE slot = 1")

            self._run("clear active session", clear)
            return

        payload = json.dumps(encode_session(session))

        def write() -> None:
            with self.db.get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO active_session (slot, session_id, payload, updated_at)
                    VALUES (1, ?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(slot) DO UPDATE SET
                        session_id = excluded.session_id,
                        payload = excluded.payload,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (session.id, payload),
                )

        self._run("write active session", write)

    def append_completed(self, session: SessionAggregate) -> None:
        payload = json.dumps(encode_session(session))

        def write() -> None:
            with self.db.get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO completed_sessions (session_id, start_time, payload, seq)
                    VALUES (?, ?, ?, (SELECT COALESCE(MAX(seq), 0) + 1 FROM completed_sessions))
                    ON CONFLICT(session_id) DO UPDATE SET
                        start_time = excluded.start_time,
                        payload = excluded.payload,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (session.id, session.start_time, payload),
                )

        self._run("append completed session", write)

    def list_completed(self) -> list[SessionAggregate]:
        def read() -> list[str]:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    "SELECT payload FROM completed_sessions ORDER BY seq"
                ).fetchall()
                return [row["payload"] for row in rows]

        payloads = self._run("list completed sessions", read)
        return [decode_session(json.loads(p)) for p in payloads]

    def get_completed(self, session_id: str) -> Optional[SessionAggregate]:
        def read() -> Optional[str]:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT payload FROM completed_sessions WHERE session_id = ?",
                    (session_id,),
                ).fetchone()
                return row["payload"] if row else None

        payload = self._run("read completed session", read)
        return decode_session(json.loads(payload)) if payload else None

    def delete_completed(self, session_id: str) -> None:
        def delete() -> int:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    "DELETE FROM completed_sessions WHERE session_id = ?",
                    (session_id,),
                )
                return cursor.rowcount

        if self._run("delete completed session", delete) == 0:
            raise SessionNotFound(session_id)

    def replace_completed(self, session: SessionAggregate) -> None:
        payload = json.dumps(encode_session(session))

        def update() -> int:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    UPDATE completed_sessions
                    SET start_time = ?, payload = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE session_id = ?
                    """,
                    (session.start_time, payload, session.id),
                )
                return cursor.rowcount

        if self._run("replace completed session", update) == 0:
            raise SessionNotFound(session.id)
