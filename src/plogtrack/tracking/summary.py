"""Post-hoc summaries: weight collected and categories found."""

from __future__ import annotations

import logging
import math
from typing import Iterable, Optional

from plogtrack.tracking.errors import InvalidSummary, SessionNotFound
from plogtrack.tracking.models import Category, SessionAggregate, SessionSummary
from plogtrack.tracking.store import SessionStore

logger = logging.getLogger(__name__)


def weight_grams_from_kg(weight_kg: float) -> int:
    """Convert a kilogram entry to whole grams.

    Raises:
        InvalidSummary: weight_kg is negative or not a finite number
    """
    if not math.isfinite(weight_kg):
        raise InvalidSummary(f"weight must be a finite number, got {weight_kg}")
    if weight_kg < 0:
        raise InvalidSummary(f"weight must be 0 or greater, got {weight_kg}")
    return int(round(weight_kg * 1000))


class SummaryFinalizer:
    """Attaches summaries to completed sessions.

    Reads and writes the completed collection only; it never feeds back
    into tracking.
    """

    def __init__(self, store: SessionStore):
        self.store = store

    def attach_summary(
        self,
        session_id: str,
        weight_grams: int,
        categories: Iterable[Category | str],
    ) -> SessionAggregate:
        """Attach (or overwrite) the summary of a completed session.

        Args:
            session_id: Id of a completed session
            weight_grams: Collected weight in grams, 0 or greater
            categories: Non-empty collection of categories or category names

        Returns:
            The stored session with its new summary

        Raises:
            InvalidSummary: Weight or categories fail validation
            SessionNotFound: No completed session has this id (an active
                session does not count)
        """
        summary = SessionSummary.create(weight_grams, categories)

        session = self.store.get_completed(session_id)
        if session is None:
            raise SessionNotFound(session_id)

        updated = session.with_summary(summary)
        self.store.replace_completed(updated)
        logger.info(
            "summary attached to %s: %d g, %s",
            session_id,
            summary.weight_grams,
            ", ".join(c.value for c in summary.sorted_categories()),
        )
        return updated

    def get_summary(self, session_id: str) -> Optional[SessionSummary]:
        """Current summary of a completed session, for pre-filling an edit.

        Raises:
            SessionNotFound: No completed session has this id
        """
        session = self.store.get_completed(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session.summary
