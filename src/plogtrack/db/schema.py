"""SQLite database schema definitions."""

# Stored in PRAGMA user_version once the schema has been applied
SCHEMA_VERSION = 1

TABLES = ("active_session", "completed_sessions")

SCHEMA_SQL = """
-- Slot for the single in-progress session. At most one row, slot = 1.
CREATE TABLE IF NOT EXISTS active_session (
    slot INTEGER PRIMARY KEY CHECK (slot = 1),
    session_id TEXT NOT NULL,
    payload TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Finished sessions, one JSON record each, keyed by session id
CREATE TABLE IF NOT EXISTS completed_sessions (
    session_id TEXT PRIMARY KEY,
    start_time INTEGER NOT NULL,
    payload TEXT NOT NULL,
    seq INTEGER NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_completed_sessions_start ON completed_sessions(start_time);
CREATE INDEX IF NOT EXISTS idx_completed_sessions_seq ON completed_sessions(seq);
"""


def get_schema_sql() -> str:
    """Return the complete schema SQL."""
    return SCHEMA_SQL
