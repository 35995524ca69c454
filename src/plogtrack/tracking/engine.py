"""The tracking engine: owner of the active session.

One engine instance per process owns the active-session slot. It is created
at startup, given a SessionStore, asked to recover() whatever was in
progress when the process last exited, and then handed to every component
that needs to start, stop or feed a session.

All mutations (start, ingest, stop, recover) run under a single re-entrant
lock, together with the persistence write that follows them, so the durable
record is never ahead of the in-memory one and no fix is half applied.
Sources do not call ingest() directly; they push into a FixInbox that one
consumer thread drains through drain().
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from plogtrack.tracking.errors import (
    AlreadyActive,
    NotActive,
    StoreUnavailable,
    TrackingError,
)
from plogtrack.tracking.geo import path_distance
from plogtrack.tracking.models import PositionFix, SessionAggregate, now_ms
from plogtrack.tracking.sources import FixInbox
from plogtrack.tracking.store import SessionStore

logger = logging.getLogger(__name__)

Observer = Callable[[SessionAggregate], None]

# Relative drift tolerated between a stored distance and a recomputed one
DISTANCE_REL_TOLERANCE = 1e-6


class EngineState(Enum):
    """Lifecycle states of the engine."""

    IDLE = "idle"
    ACTIVE = "active"
    STOPPING = "stopping"


@dataclass(frozen=True)
class IngestResult:
    """Outcome of one ingest() call.

    Attributes:
        accepted: The fix was appended to the active session
        persisted: The updated session reached the store
        snapshot: Session state after the call (None when not accepted)
        error: NotActive when rejected, StoreUnavailable when not persisted
        out_of_order: The fix is older than the fix that arrived before it
    """

    accepted: bool
    persisted: bool = False
    snapshot: Optional[SessionAggregate] = None
    error: Optional[TrackingError] = None
    out_of_order: bool = False


class Subscription:
    """Handle returned by subscribe(); cancel() detaches the observer."""

    def __init__(self, engine: "TrackingEngine", callback: Observer):
        self._engine = engine
        self.callback = callback

    def cancel(self) -> None:
        self._engine.unsubscribe(self)


class TrackingEngine:
    """Owns the lifecycle of the single active tracking session."""

    def __init__(self, store: SessionStore, clock: Callable[[], int] = now_ms):
        """Initialize an idle engine.

        Args:
            store: Durable store for the active slot and completed sessions
            clock: Returns the current time as epoch milliseconds
        """
        self.store = store
        self.clock = clock
        self._lock = threading.RLock()
        self._state = EngineState.IDLE
        self._session: Optional[SessionAggregate] = None
        self._subscriptions: list[Subscription] = []
        self._persist_error: Optional[StoreUnavailable] = None

    # ------------------------------------------------------------------
    # State inspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is EngineState.ACTIVE

    @property
    def durable(self) -> bool:
        """False while the last persistence write failed."""
        return self._persist_error is None

    @property
    def persist_error(self) -> Optional[StoreUnavailable]:
        """The failure behind the last unsuccessful write, None once durable.

        start() returns only the session, so a failed initial write is
        reported here; ingest() also carries it on its IngestResult.
        """
        return self._persist_error

    def current(self) -> Optional[SessionAggregate]:
        """Snapshot of the active session, or None when idle."""
        with self._lock:
            if self._session is None:
                return None
            return self._session.snapshot()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, callback: Observer) -> Subscription:
        """Receive a snapshot after every start, ingest, stop and recover."""
        subscription = Subscription(self, callback)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _publish(self, session: SessionAggregate) -> None:
        for subscription in list(self._subscriptions):
            try:
                subscription.callback(session.snapshot())
            except Exception:
                logger.exception("session observer %r failed", subscription.callback)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist_active(self, session: Optional[SessionAggregate]) -> Optional[StoreUnavailable]:
        try:
            self.store.put_active(session)
        except StoreUnavailable as exc:
            if self._persist_error is None:
                logger.warning("active session not persisted, durability lost: %s", exc)
            self._persist_error = exc
            return exc
        if self._persist_error is not None:
            logger.info("active session persisted again, durability restored")
        self._persist_error = None
        return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, name: Optional[str] = None) -> SessionAggregate:
        """Begin a new session.

        The empty session is written to the active slot straight away, so a
        crash right after start() still recovers it. If that write fails the
        session starts anyway and the failure is left in persist_error.

        Raises:
            AlreadyActive: A session is already active (it is left untouched)
        """
        with self._lock:
            if self._session is not None:
                raise AlreadyActive(self._session.id)

            started = self.clock()
            session = SessionAggregate.begin(started, name=name)
            self._session = session
            self._state = EngineState.ACTIVE

            self._persist_active(session)
            logger.info("session %s started", session.id)
            self._publish(session)
            return session.snapshot()

    def ingest(self, fix: PositionFix, source: Optional[str] = None) -> IngestResult:
        """Append one fix to the active session.

        Never raises: a fix arriving while idle or stopping is rejected with
        NotActive, and a failed write is reported through the result while
        the in-memory session still advances.
        """
        with self._lock:
            session = self._session
            if session is None or self._state is not EngineState.ACTIVE:
                logger.info("fix from %s ignored: no active session", source or "caller")
                return IngestResult(accepted=False, error=NotActive("ingest"))

            previous = session.last_fix
            out_of_order = previous is not None and fix.timestamp < previous.timestamp
            if out_of_order:
                logger.debug(
                    "fix from %s arrived out of order (%d < %d)",
                    source or "caller",
                    fix.timestamp,
                    previous.timestamp,
                )

            session.append_fix(fix)
            session.touch(self.clock())

            error = self._persist_active(session)
            snapshot = session.snapshot()
            self._publish(session)
            return IngestResult(
                accepted=True,
                persisted=error is None,
                snapshot=snapshot,
                error=error,
                out_of_order=out_of_order,
            )

    def stop(self) -> SessionAggregate:
        """Finish the active session and move it to the completed collection.

        The completed record is written first; only once that write has
        succeeded is the active slot cleared. A crash between the two leaves
        the session in both places, which recover() resolves.

        Raises:
            NotActive: No session is active; the store is not touched
            StoreUnavailable: The completed record could not be written; the
                session stays active and nothing is lost
        """
        with self._lock:
            session = self._session
            if session is None or self._state is not EngineState.ACTIVE:
                raise NotActive("stop")

            self._state = EngineState.STOPPING
            final = session.snapshot()
            final.finish(self.clock())

            try:
                self.store.append_completed(final)
            except StoreUnavailable:
                self._state = EngineState.ACTIVE
                logger.warning("session %s could not be completed; still active", session.id)
                raise

            try:
                self.store.put_active(None)
            except StoreUnavailable as exc:
                logger.warning(
                    "session %s completed but active slot not cleared: %s", session.id, exc
                )

            self._session = None
            self._state = EngineState.IDLE
            self._persist_error = None
            logger.info(
                "session %s stopped: %d fixes, %.1f m, %d ms",
                final.id,
                final.fix_count,
                final.distance_m,
                final.duration_ms,
            )
            self._publish(final)
            return final.snapshot()

    def recover(self) -> Optional[SessionAggregate]:
        """Adopt the session left in the active slot by a previous process.

        The engine does not restart sources itself; when this returns a
        session, the caller re-attaches whichever sources it has permission
        for. Calling recover() again while that session is still active
        returns the same state without touching the store.

        Raises:
            StoreUnavailable: The active slot could not be read
        """
        with self._lock:
            if self._session is not None:
                return self._session.snapshot()

            stored = self.store.get_active()
            if stored is None:
                return None

            if self.store.has_completed(stored.id):
                logger.warning(
                    "session %s was already completed; finishing interrupted stop", stored.id
                )
                self._persist_active(None)
                return None

            if stored.end_time is not None:
                # An ended session never belongs in the active slot.
                logger.warning("active slot held ended session %s; completing it", stored.id)
                self.store.append_completed(stored)
                self._persist_active(None)
                return None

            recomputed = path_distance(stored.fixes)
            if not math.isclose(
                recomputed, stored.distance_m, rel_tol=DISTANCE_REL_TOLERANCE, abs_tol=1e-9
            ):
                logger.warning(
                    "session %s stored distance %.3f m differs from path %.3f m; using path",
                    stored.id,
                    stored.distance_m,
                    recomputed,
                )
                stored.distance_m = recomputed

            self._session = stored
            self._state = EngineState.ACTIVE
            logger.info(
                "recovered session %s with %d fixes", stored.id, stored.fix_count
            )
            self._publish(stored)
            return stored.snapshot()

    # ------------------------------------------------------------------
    # Fan-in
    # ------------------------------------------------------------------

    def drain(self, inbox: FixInbox) -> int:
        """Ingest fixes from inbox until it is closed.

        Returns:
            Number of fixes accepted
        """
        accepted = 0
        for item in inbox:
            result = self.ingest(item.fix, source=item.source)
            if result.accepted:
                accepted += 1
        return accepted

    def start_consumer(self, inbox: FixInbox) -> threading.Thread:
        """Run drain() on a daemon thread and return it."""
        thread = threading.Thread(
            target=self.drain, args=(inbox,), name="plogtrack-inbox", daemon=True
        )
        thread.start()
        return thread
