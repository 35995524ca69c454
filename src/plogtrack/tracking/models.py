"""Data models for positional fixes and tracking sessions."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional

from plogtrack.tracking.errors import InvalidSummary
from plogtrack.tracking.geo import distance


def now_ms() -> int:
    """Return the current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def new_session_id(start_time: int) -> str:
    """Return a fresh session id; the random suffix keeps ids unique."""
    return f"session_{start_time}_{uuid.uuid4().hex[:8]}"


class Category(str, Enum):
    """Litter categories that can be recorded in a session summary."""

    MIXED = "mixed"
    PLASTIC = "plastic"
    METAL = "metal"
    GLASS = "glass"
    PAPER = "paper"
    OTHER = "other"


@dataclass(frozen=True)
class PositionFix:
    """A single positional reading.

    Attributes:
        latitude: Latitude in decimal degrees, [-90, 90]
        longitude: Longitude in decimal degrees, [-180, 180]
        timestamp: Epoch milliseconds reported by the positioning source
        accuracy: Horizontal accuracy in meters, if known
        altitude: Altitude in meters, if known
        speed: Speed in meters/second, if known
    """

    latitude: float
    longitude: float
    timestamp: int
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    speed: Optional[float] = None

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude must be in [-90, 90], got {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(
                f"longitude must be in [-180, 180], got {self.longitude}"
            )


@dataclass(frozen=True)
class SessionSummary:
    """Post-hoc summary of what was collected during a session."""

    weight_grams: int
    categories: frozenset[Category]

    def __post_init__(self) -> None:
        if isinstance(self.weight_grams, bool) or not isinstance(self.weight_grams, int):
            raise InvalidSummary(
                f"weight_grams must be an integer, got {self.weight_grams!r}"
            )
        if self.weight_grams < 0:
            raise InvalidSummary(
                f"weight_grams must be 0 or greater, got {self.weight_grams}"
            )
        if not self.categories:
            raise InvalidSummary("at least one category is required")
        for category in self.categories:
            if not isinstance(category, Category):
                raise InvalidSummary(f"unknown category: {category!r}")

    @classmethod
    def create(
        cls, weight_grams: int, categories: Iterable[Category | str]
    ) -> "SessionSummary":
        """Build a summary, accepting category names as well as members."""
        parsed = set()
        for category in categories:
            try:
                parsed.add(Category(category))
            except ValueError:
                valid = ", ".join(c.value for c in Category)
                raise InvalidSummary(
                    f"unknown category '{category}', expected one of: {valid}"
                ) from None
        return cls(weight_grams=weight_grams, categories=frozenset(parsed))

    def sorted_categories(self) -> list[Category]:
        """Categories in declaration order, for stable output."""
        return [c for c in Category if c in self.categories]


@dataclass
class SessionAggregate:
    """The append-only record of one tracking session.

    Only the tracking engine mutates an active aggregate. Everyone else
    works with snapshots.
    """

    id: str
    start_time: int
    end_time: Optional[int] = None
    fixes: list[PositionFix] = field(default_factory=list)
    distance_m: float = 0.0
    duration_ms: int = 0
    summary: Optional[SessionSummary] = None
    name: Optional[str] = None

    @classmethod
    def begin(cls, start_time: int, name: Optional[str] = None) -> "SessionAggregate":
        """Create a fresh, empty session starting at start_time."""
        return cls(id=new_session_id(start_time), start_time=start_time, name=name)

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    @property
    def fix_count(self) -> int:
        return len(self.fixes)

    @property
    def last_fix(self) -> Optional[PositionFix]:
        return self.fixes[-1] if self.fixes else None

    def append_fix(self, fix: PositionFix) -> float:
        """Append a fix in arrival order and extend the running distance.

        Distance is measured against the previously arrived fix, not the
        previous fix by timestamp.

        Returns:
            Meters added to distance_m by this fix
        """
        if not self.is_active:
            raise ValueError(f"session {self.id} has ended; fixes are frozen")
        previous = self.last_fix
        self.fixes.append(fix)
        if previous is None:
            return 0.0
        step = distance(previous, fix)
        self.distance_m += step
        return step

    def touch(self, now: int) -> None:
        """Refresh the live duration."""
        if self.is_active:
            self.duration_ms = max(0, now - self.start_time)

    def finish(self, now: int) -> None:
        """Set end_time once and freeze the duration."""
        if not self.is_active:
            raise ValueError(f"session {self.id} has already ended")
        self.end_time = now
        self.duration_ms = max(0, now - self.start_time)

    def with_summary(self, summary: SessionSummary) -> "SessionAggregate":
        """Return a copy of this finished session carrying summary."""
        if self.is_active:
            raise ValueError(f"session {self.id} is still active")
        return replace(self, fixes=list(self.fixes), summary=summary)

    def snapshot(self) -> "SessionAggregate":
        """Independent copy; fixes are immutable so a shallow list copy is enough."""
        return replace(self, fixes=list(self.fixes))
