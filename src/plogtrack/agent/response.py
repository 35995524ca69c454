"""Response envelope for machine-readable CLI output."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from plogtrack.tracking.errors import (
    AlreadyActive,
    NotActive,
    SessionNotFound,
    SourceUnavailable,
    StoreUnavailable,
    TrackingError,
)

# Next steps offered for each kind of tracking error
ERROR_SUGGESTIONS: dict[type[TrackingError], list[str]] = {
    AlreadyActive: ["Stop the current session first: plogtrack stop"],
    NotActive: ["Start a session first: plogtrack start"],
    SessionNotFound: ["List completed sessions: plogtrack sessions list"],
    SourceUnavailable: [
        "Grant location access in the system settings, then resume tracking"
    ],
    StoreUnavailable: ["Check that the database path in the config is writable"],
}


@dataclass
class CommandResponse:
    """Standardized response envelope for all CLI commands.

    Every --json command prints this shape. On failure error_type names
    the TrackingError subclass, so scripts can branch without parsing text.
    """

    success: bool
    command: str
    data: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    human_summary: str = ""
    error_type: Optional[str] = None
    schema_version: str = "1.0"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "command": self.command,
            "data": self.data,
            "errors": self.errors,
            "warnings": self.warnings,
            "suggestions": self.suggestions,
            "human_summary": self.human_summary,
            "error_type": self.error_type,
            "timestamp": datetime.now().isoformat(),
            "schema_version": self.schema_version,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


def create_response(
    command: str,
    success: bool = True,
    data: Optional[dict[str, Any]] = None,
    warnings: Optional[list[str]] = None,
    human_summary: str = "",
) -> CommandResponse:
    """Create a CommandResponse with defaults.

    Args:
        command: The command that was executed
        success: Whether the command succeeded
        data: Command-specific result data
        warnings: Non-fatal warning messages
        human_summary: One-line description for humans

    Returns:
        CommandResponse instance
    """
    return CommandResponse(
        success=success,
        command=command,
        data=data or {},
        warnings=warnings or [],
        human_summary=human_summary,
    )


def error_response(command: str, error: str | Exception) -> CommandResponse:
    """Create an error response, with suggestions for known tracking errors.

    Args:
        command: The command that failed
        error: Error message or the exception itself

    Returns:
        CommandResponse with success=False
    """
    suggestions: list[str] = []
    if isinstance(error, TrackingError):
        for error_type, hints in ERROR_SUGGESTIONS.items():
            if isinstance(error, error_type):
                suggestions = list(hints)
                break
    message = str(error)
    return CommandResponse(
        success=False,
        command=command,
        errors=[message],
        suggestions=suggestions,
        human_summary=f"Error: {message}",
        error_type=type(error).__name__ if isinstance(error, Exception) else None,
    )
