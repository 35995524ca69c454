"""Connections to the session database."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from plogtrack.db.schema import SCHEMA_VERSION, TABLES, get_schema_sql


class DatabaseConnection:
    """Hands out short-lived connections to one session database file.

    A connection lives for a single ``with`` block, which is also a single
    transaction. Connections are never shared between threads; the inbox
    consumer and the CLI each open their own.
    """

    def __init__(self, db_path: Path, timeout: float = 5.0):
        """
        Args:
            db_path: SQLite file; missing parent directories are created
            timeout: Seconds to wait on a database locked by another process
        """
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on a clean exit, roll back on error.

        Writes are synchronous, so a session acknowledged as saved survives
        the process being killed right after.
        """
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA synchronous = FULL")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize_schema(self) -> None:
        """Create the session tables if needed and stamp the schema version."""
        with self.get_connection() as conn:
            conn.executescript(get_schema_sql())
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

    def schema_version(self) -> int:
        """0 for a database the schema was never applied to."""
        with self.get_connection() as conn:
            return conn.execute("PRAGMA user_version").fetchone()[0]

    def row_count(self, table: str) -> int:
        """Number of rows in one of the session tables.

        Raises:
            ValueError: table is not part of the session schema
        """
        if table not in TABLES:
            raise ValueError(f"Unknown table '{table}'. Expected one of: {', '.join(TABLES)}")
        with self.get_connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


_db: Optional[DatabaseConnection] = None


def get_db() -> DatabaseConnection:
    """Process-wide database, opened on first use at the configured path."""
    global _db
    if _db is None:
        from plogtrack.config import get_settings

        _db = DatabaseConnection(get_settings().database.path)
    return _db


def set_db(db: Optional[DatabaseConnection]) -> None:
    """Replace the process-wide database; None makes get_db() re-read settings."""
    global _db
    _db = db
