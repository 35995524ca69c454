"""Display formatting for sessions."""

from plogtrack.export.formatters import (
    SessionTableFormatter,
    format_date,
    format_distance,
    format_duration,
    format_weight,
    session_to_display_dict,
    sort_sessions,
)

__all__ = [
    "SessionTableFormatter",
    "format_date",
    "format_distance",
    "format_duration",
    "format_weight",
    "session_to_display_dict",
    "sort_sessions",
]
