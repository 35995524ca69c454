"""Session tracking engine.

Turns a stream of positional fixes from one or more sources into a durable,
resumable session record with live distance and duration.

Key components:
- Haversine distance over fixes (geo)
- SessionAggregate and friends (models)
- SessionStore with in-memory and SQLite implementations (store)
- Foreground and background sample sources sharing one inbox (sources)
- TrackingEngine, the single owner of the active session (engine)
- SummaryFinalizer for post-hoc weight and categories (summary)
"""

from __future__ import annotations

from plogtrack.tracking.engine import (
    EngineState,
    IngestResult,
    Subscription,
    TrackingEngine,
)
from plogtrack.tracking.errors import (
    AlreadyActive,
    InvalidSummary,
    NotActive,
    SessionNotFound,
    SourceUnavailable,
    StoreUnavailable,
    TrackingError,
)
from plogtrack.tracking.geo import distance, path_distance
from plogtrack.tracking.models import (
    Category,
    PositionFix,
    SessionAggregate,
    SessionSummary,
)
from plogtrack.tracking.sources import (
    BackgroundTask,
    FixInbox,
    ForegroundWatcher,
    SampleSource,
    SourceConfig,
    SourceKind,
    SourceManager,
)
from plogtrack.tracking.store import (
    InMemorySessionStore,
    SessionStore,
    SqliteSessionStore,
)
from plogtrack.tracking.summary import SummaryFinalizer

__all__ = [
    "AlreadyActive",
    "BackgroundTask",
    "Category",
    "EngineState",
    "FixInbox",
    "ForegroundWatcher",
    "InMemorySessionStore",
    "IngestResult",
    "InvalidSummary",
    "NotActive",
    "PositionFix",
    "SampleSource",
    "SessionAggregate",
    "SessionNotFound",
    "SessionStore",
    "SessionSummary",
    "SourceConfig",
    "SourceKind",
    "SourceManager",
    "SourceUnavailable",
    "SqliteSessionStore",
    "StoreUnavailable",
    "Subscription",
    "SummaryFinalizer",
    "TrackingEngine",
    "TrackingError",
    "distance",
    "path_distance",
]
