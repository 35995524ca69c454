"""CLI interface using Typer."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from plogtrack.agent.response import CommandResponse, create_response, error_response
from plogtrack.config import configure_logging, get_settings
from plogtrack.db import get_db
from plogtrack.export.formatters import (
    SessionTableFormatter,
    format_distance,
    format_duration,
    format_weight,
    session_to_display_dict,
    sort_sessions,
)
from plogtrack.tracking.engine import TrackingEngine
from plogtrack.tracking.errors import TrackingError
from plogtrack.tracking.models import Category, PositionFix, now_ms
from plogtrack.tracking.replay import ReplayProvider, load_fixes_from_csv
from plogtrack.tracking.sources import (
    BackgroundTask,
    FixInbox,
    ForegroundWatcher,
    SampleSource,
    SourceConfig,
    SourceKind,
    SourceManager,
    StaticGate,
)
from plogtrack.tracking.store import SqliteSessionStore
from plogtrack.tracking.summary import SummaryFinalizer, weight_grams_from_kg

app = typer.Typer(
    help="Track litter-collection walks: distance, duration and what you picked up",
    no_args_is_help=True,
)
console = Console()

sessions_app = typer.Typer(help="Browse and delete completed sessions")
summary_app = typer.Typer(help="Record weight and categories for a finished session")

app.add_typer(sessions_app, name="sessions")
app.add_typer(summary_app, name="summary")


# ============================================================================
# Helpers
# ============================================================================


def output_json(response: CommandResponse | dict) -> None:
    """Print a response envelope (or plain dict) as JSON to stdout."""
    if isinstance(response, CommandResponse):
        print(response.to_json())
    else:
        print(json.dumps(response, indent=2))


def fail(command: str, error: Exception, json_output: bool) -> None:
    """Report an error the way the caller asked for, then exit 1."""
    if json_output:
        output_json(error_response(command, error))
    else:
        console.print(f"[red]Error: {error}[/red]")
    raise typer.Exit(1)


def open_store() -> SqliteSessionStore:
    settings = get_settings()
    return SqliteSessionStore(
        get_db(),
        retry_attempts=settings.store.retry_attempts,
        retry_backoff_s=settings.store.retry_backoff_s,
    )


def open_engine(command: str, json_output: bool) -> TrackingEngine:
    """Build the engine and recover whatever session a previous run left active."""
    try:
        engine = TrackingEngine(open_store())
        engine.recover()
    except TrackingError as exc:
        fail(command, exc, json_output)
    return engine


def permission_gate() -> StaticGate:
    """Kinds of source the user enabled in the config."""
    settings = get_settings()
    granted = []
    if settings.sources.foreground:
        granted.append(SourceKind.FOREGROUND)
    if settings.sources.background:
        granted.append(SourceKind.BACKGROUND)
    return StaticGate(granted)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show info-level logs"),
) -> None:
    """Configure logging before any command runs."""
    level = "INFO" if verbose else get_settings().logging.level
    configure_logging(level)


# ============================================================================
# Tracking lifecycle
# ============================================================================


@app.command()
def start(
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Label for the session"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Start a new tracking session."""
    engine = open_engine("start", json_output)
    try:
        session = engine.start(name=name)
    except TrackingError as exc:
        fail("start", exc, json_output)

    warnings = []
    if engine.persist_error is not None:
        warnings.append(f"Session not saved yet, will retry: {engine.persist_error}")
    if json_output:
        output_json(
            create_response(
                "start",
                data=session_to_display_dict(session),
                warnings=warnings,
                human_summary=f"Started {session.id}",
            )
        )
        return
    console.print(f"[green]Started session[/green] [cyan]{session.id}[/cyan]")
    for warning in warnings:
        console.print(f"[yellow]{warning}[/yellow]")


@app.command()
def stop(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Stop the active session and save it."""
    engine = open_engine("stop", json_output)
    try:
        session = engine.stop()
    except TrackingError as exc:
        fail("stop", exc, json_output)

    if json_output:
        output_json(
            create_response(
                "stop",
                data=session_to_display_dict(session),
                human_summary=(
                    f"Stopped {session.id}: {format_distance(session.distance_m)} "
                    f"in {format_duration(session.duration_ms)}"
                ),
            )
        )
        return
    SessionTableFormatter(console).format_live(session, title="Session finished")
    console.print(
        f"Add what you collected: [cyan]plogtrack summary attach {session.id} "
        "--weight-kg 1.5 --category plastic[/cyan]"
    )


@app.command()
def status(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the active session, if any."""
    engine = open_engine("status", json_output)
    session = engine.current()

    if json_output:
        output_json(
            create_response(
                "status",
                data={
                    "state": engine.state.value,
                    "session": session_to_display_dict(session) if session else None,
                },
                human_summary=engine.state.value,
            )
        )
        return
    if session is None:
        console.print("[yellow]No active session.[/yellow]")
        return
    SessionTableFormatter(console).format_live(session)


@app.command()
def fix(
    latitude: float = typer.Argument(..., help="Latitude in decimal degrees"),
    longitude: float = typer.Argument(..., help="Longitude in decimal degrees"),
    timestamp: Optional[int] = typer.Option(
        None, "--time", "-t", help="Epoch milliseconds (default: now)"
    ),
    accuracy: Optional[float] = typer.Option(None, "--accuracy", help="Accuracy in meters"),
    altitude: Optional[float] = typer.Option(None, "--altitude", help="Altitude in meters"),
    speed: Optional[float] = typer.Option(None, "--speed", help="Speed in m/s"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Add one position fix to the active session."""
    try:
        position = PositionFix(
            latitude=latitude,
            longitude=longitude,
            timestamp=timestamp if timestamp is not None else now_ms(),
            accuracy=accuracy,
            altitude=altitude,
            speed=speed,
        )
    except ValueError as exc:
        fail("fix", exc, json_output)

    engine = open_engine("fix", json_output)
    result = engine.ingest(position, source="cli")
    if not result.accepted:
        fail("fix", result.error, json_output)

    session = result.snapshot
    warnings = [] if result.persisted else [f"Not saved: {result.error}"]
    if result.out_of_order:
        warnings.append("Fix is older than the previous one; distance uses arrival order")
    if json_output:
        output_json(
            create_response(
                "fix",
                data=session_to_display_dict(session),
                warnings=warnings,
                human_summary=f"{session.fix_count} points, {format_distance(session.distance_m)}",
            )
        )
        return
    console.print(
        f"[green]Recorded[/green] point {session.fix_count}: "
        f"{format_distance(session.distance_m)} in {format_duration(session.duration_ms)}"
    )
    for warning in warnings:
        console.print(f"[yellow]{warning}[/yellow]")


@app.command()
def replay(
    csv_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Track CSV"),
    background: bool = typer.Option(
        False, "--background/--foreground", help="Deliver as one background batch"
    ),
    paced: bool = typer.Option(
        False, "--paced", help="Poll at sources.time_interval_ms instead of as fast as possible"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Feed a recorded track into the active session (starting one if idle)."""
    try:
        fixes, parse_summary = load_fixes_from_csv(csv_path)
    except KeyError as exc:
        fail("replay", ValueError(exc.args[0]), json_output)

    engine = open_engine("replay", json_output)
    if not engine.is_active:
        engine.start(name=csv_path.stem)

    settings = get_settings()
    inbox = FixInbox()
    consumer = engine.start_consumer(inbox)
    manager = SourceManager(
        inbox,
        SourceConfig(
            time_interval_ms=settings.sources.time_interval_ms if paced else 0,
            distance_interval_m=settings.sources.distance_interval_m,
        ),
    )

    source: SampleSource
    if background:
        source = BackgroundTask(name="replay-background", gate=permission_gate())
        if manager.attach(source) is not None:
            source.deliver(fixes)
    else:
        provider = ReplayProvider(fixes)
        source = ForegroundWatcher(provider, name="replay-foreground", gate=permission_gate())
        if manager.attach(source) is not None:
            provider.finished.wait()

    manager.stop_all()
    inbox.close()
    consumer.join()

    session = engine.current()
    warnings = [str(exc) for exc in manager.unavailable]
    if parse_summary.rows_skipped:
        warnings.append(f"{parse_summary.rows_skipped} unparsable rows skipped")
    if not engine.durable:
        warnings.append("Latest state could not be saved")

    if json_output:
        output_json(
            create_response(
                "replay",
                success=not manager.unavailable,
                data=session_to_display_dict(session) if session else {},
                warnings=warnings,
                human_summary=f"Replayed {parse_summary.rows_parsed} rows",
            )
        )
    else:
        for warning in warnings:
            console.print(f"[yellow]{warning}[/yellow]")
        if session is not None:
            SessionTableFormatter(console).format_live(session)
    if manager.unavailable:
        raise typer.Exit(1)


# ============================================================================
# Completed sessions
# ============================================================================


@sessions_app.command("list")
def sessions_list(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List completed sessions, newest first."""
    try:
        sessions = sort_sessions(open_store().list_completed())
    except TrackingError as exc:
        fail("sessions list", exc, json_output)

    if json_output:
        output_json(
            create_response(
                "sessions list",
                data={"sessions": [session_to_display_dict(s) for s in sessions]},
                human_summary=f"{len(sessions)} sessions",
            )
        )
        return
    SessionTableFormatter(console).format_list(sessions)


@sessions_app.command("show")
def sessions_show(
    session_id: str = typer.Argument(..., help="Session id"),
    points: int = typer.Option(10, "--points", "-p", help="Number of recent points to show"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show one completed session."""
    from plogtrack.tracking.errors import SessionNotFound
    from plogtrack.tracking.serialization import encode_session

    try:
        session = open_store().get_completed(session_id)
    except TrackingError as exc:
        fail("sessions show", exc, json_output)
    if session is None:
        fail("sessions show", SessionNotFound(session_id), json_output)

    if json_output:
        data = session_to_display_dict(session)
        data["fixes"] = encode_session(session)["fixes"]
        output_json(create_response("sessions show", data=data, human_summary=session.id))
        return
    formatter = SessionTableFormatter(console)
    formatter.format_live(session, title="Session")
    if points > 0 and session.fix_count:
        formatter.format_fixes(session, limit=points)


@sessions_app.command("delete")
def sessions_delete(
    session_id: str = typer.Argument(..., help="Session id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Delete a completed session."""
    if not yes and not json_output:
        typer.confirm(f"Delete session {session_id}?", abort=True)
    try:
        open_store().delete_completed(session_id)
    except TrackingError as exc:
        fail("sessions delete", exc, json_output)

    if json_output:
        output_json(
            create_response(
                "sessions delete",
                data={"id": session_id},
                human_summary=f"Deleted {session_id}",
            )
        )
        return
    console.print(f"[green]Deleted[/green] {session_id}")


# ============================================================================
# Summaries
# ============================================================================


@summary_app.command("attach")
def summary_attach(
    session_id: str = typer.Argument(..., help="Id of a completed session"),
    weight_kg: float = typer.Option(..., "--weight-kg", "-w", help="Weight collected in kg"),
    categories: list[Category] = typer.Option(
        ..., "--category", "-c", help="Category found (repeatable)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Record weight and categories for a finished session (overwrites)."""
    try:
        finalizer = SummaryFinalizer(open_store())
        session = finalizer.attach_summary(
            session_id, weight_grams_from_kg(weight_kg), categories
        )
    except TrackingError as exc:
        fail("summary attach", exc, json_output)

    if json_output:
        output_json(
            create_response(
                "summary attach",
                data=session_to_display_dict(session),
                human_summary=f"Saved summary for {session_id}",
            )
        )
        return
    names = ", ".join(c.value for c in session.summary.sorted_categories())
    console.print(
        f"[green]Saved[/green] {format_weight(session.summary.weight_grams)} ({names}) "
        f"for {session_id}"
    )


@summary_app.command("show")
def summary_show(
    session_id: str = typer.Argument(..., help="Id of a completed session"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the summary recorded for a session."""
    try:
        summary = SummaryFinalizer(open_store()).get_summary(session_id)
    except TrackingError as exc:
        fail("summary show", exc, json_output)

    data = None
    if summary is not None:
        data = {
            "weight_grams": summary.weight_grams,
            "categories": [c.value for c in summary.sorted_categories()],
        }
    if json_output:
        output_json(
            create_response(
                "summary show",
                data={"id": session_id, "summary": data},
                human_summary="no summary" if data is None else format_weight(summary.weight_grams),
            )
        )
        return
    if summary is None:
        console.print(f"[yellow]No summary recorded for {session_id}.[/yellow]")
        return
    console.print(
        f"{format_weight(summary.weight_grams)}: "
        + ", ".join(c.value for c in summary.sorted_categories())
    )


if __name__ == "__main__":
    app()
