"""Error taxonomy for the tracking engine and its collaborators."""

from __future__ import annotations

from typing import Optional


class TrackingError(Exception):
    """Base class for all tracking errors."""


class AlreadyActive(TrackingError):
    """A session was started while another one is still active."""

    def __init__(self, session_id: str):
        super().__init__(f"session {session_id} is already active")
        self.session_id = session_id


class NotActive(TrackingError):
    """An operation needing an active session was called while idle."""

    def __init__(self, operation: str):
        super().__init__(f"cannot {operation}: no active session")
        self.operation = operation


class SourceUnavailable(TrackingError):
    """A sample source cannot deliver fixes.

    Attributes:
        kind: Source kind that failed ('foreground' or 'background')
        reason: 'permission' when the user denied access, 'platform' when
            the capability does not exist on this platform
    """

    def __init__(self, kind: str, reason: str, detail: Optional[str] = None):
        message = f"{kind} source unavailable ({reason})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.kind = kind
        self.reason = reason


class StoreUnavailable(TrackingError):
    """The durable session store could not complete a read or write."""


class SessionNotFound(TrackingError, LookupError):
    """No completed session exists with the given id."""

    def __init__(self, session_id: str):
        super().__init__(f"session not found: {session_id}")
        self.session_id = session_id


class InvalidSummary(TrackingError, ValueError):
    """Summary values failed validation."""
