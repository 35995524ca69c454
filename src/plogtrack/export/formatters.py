"""Display formatting for sessions.

Storage keeps meters, milliseconds and grams; conversion to km, clock time
and kg happens only here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from plogtrack.tracking.models import SessionAggregate


def format_duration(milliseconds: int) -> str:
    """Format a duration as m:ss, or h:mm:ss from one hour up."""
    total_seconds = max(0, int(milliseconds)) // 1000
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def format_distance(meters: float) -> str:
    """Format a distance as whole meters below 1 km, else km with 2 decimals."""
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000:.2f} km"


def format_weight(grams: int) -> str:
    return f"{grams / 1000:.2f} kg"


def format_date(timestamp_ms: int) -> str:
    """Local date and time for an epoch-milliseconds timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def sort_sessions(sessions: Iterable[SessionAggregate]) -> list[SessionAggregate]:
    """Newest first, the order session lists are shown in."""
    return sorted(sessions, key=lambda s: s.start_time, reverse=True)


def session_to_display_dict(session: SessionAggregate) -> dict[str, Any]:
    """Summarise a session for JSON output (without the raw fixes)."""
    data: dict[str, Any] = {
        "id": session.id,
        "name": session.name,
        "active": session.is_active,
        "start_time": session.start_time,
        "end_time": session.end_time,
        "fix_count": session.fix_count,
        "distance_m": round(session.distance_m, 3),
        "duration_ms": session.duration_ms,
        "distance": format_distance(session.distance_m),
        "duration": format_duration(session.duration_ms),
        "summary": None,
    }
    if session.summary is not None:
        data["summary"] = {
            "weight_grams": session.summary.weight_grams,
            "categories": [c.value for c in session.summary.sorted_categories()],
        }
    return data


class SessionTableFormatter:
    """Format sessions as Rich tables for terminal display."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize the formatter.

        Args:
            console: Rich console for output. If None, creates a new one.
        """
        self.console = console or Console()

    def format_live(self, session: SessionAggregate, title: str = "Tracking") -> None:
        """Print the live metrics panel for one session."""
        status = "[green]ACTIVE[/green]" if session.is_active else "[blue]FINISHED[/blue]"
        lines = [
            f"[bold]{session.name or session.id}[/bold]",
            f"Status: {status}",
            f"Started: {format_date(session.start_time)}",
            f"Duration: {format_duration(session.duration_ms)}",
            f"Distance: {format_distance(session.distance_m)}",
            f"Points: {session.fix_count}",
        ]
        if session.summary is not None:
            categories = ", ".join(c.value for c in session.summary.sorted_categories())
            lines.append(f"Collected: {format_weight(session.summary.weight_grams)} ({categories})")
        self.console.print(Panel("\n".join(lines), title=title))

    def format_list(self, sessions: Iterable[SessionAggregate]) -> None:
        """Print completed sessions, newest first."""
        ordered = sort_sessions(sessions)
        if not ordered:
            self.console.print("[yellow]No sessions yet.[/yellow]")
            self.console.print("Start tracking with: [cyan]plogtrack start[/cyan]")
            return

        table = Table(title="Sessions")
        table.add_column("ID", style="cyan")
        table.add_column("Date")
        table.add_column("Duration", justify="right")
        table.add_column("Distance", justify="right")
        table.add_column("Points", justify="right")
        table.add_column("Collected", justify="right", style="green")

        total_distance = 0.0
        total_grams = 0
        for session in ordered:
            collected = "-"
            if session.summary is not None:
                collected = format_weight(session.summary.weight_grams)
                total_grams += session.summary.weight_grams
            table.add_row(
                session.id,
                format_date(session.start_time),
                format_duration(session.duration_ms),
                format_distance(session.distance_m),
                str(session.fix_count),
                collected,
            )
            total_distance += session.distance_m

        table.add_row(
            "[bold]TOTAL[/bold]",
            "",
            "",
            f"[bold]{format_distance(total_distance)}[/bold]",
            "",
            f"[bold]{format_weight(total_grams)}[/bold]",
            style="bold",
        )
        self.console.print(table)

    def format_fixes(self, session: SessionAggregate, limit: int = 20) -> None:
        """Print the last `limit` fixes of a session."""
        table = Table(title=f"Last {min(limit, session.fix_count)} of {session.fix_count} points")
        table.add_column("Time")
        table.add_column("Latitude", justify="right")
        table.add_column("Longitude", justify="right")
        table.add_column("Accuracy", justify="right")
        for fix in session.fixes[-limit:] if limit > 0 else []:
            table.add_row(
                format_date(fix.timestamp),
                f"{fix.latitude:.6f}",
                f"{fix.longitude:.6f}",
                f"{fix.accuracy:.1f} m" if fix.accuracy is not None else "-",
            )
        self.console.print(table)
