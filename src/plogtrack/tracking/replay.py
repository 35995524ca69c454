"""Replay recorded tracks from CSV files.

Recorded tracks are fed through the same sources as live positions, which
makes them useful for testing a setup end to end without hardware.
"""

from __future__ import annotations

import csv
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence, TextIO

from plogtrack.tracking.models import PositionFix

logger = logging.getLogger(__name__)

# Accepted spellings of the timestamp column
TIMESTAMP_COLUMNS = ("timestamp", "geoTime", "time_ms")


@dataclass(frozen=True)
class ReplaySummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    parsed = float(value)
    # Some exports write -1 for "unknown"
    return None if parsed < 0 else parsed


def _timestamp_column(fieldnames: Sequence[str]) -> str:
    for name in TIMESTAMP_COLUMNS:
        if name in fieldnames:
            return name
    raise KeyError(
        f"CSV is missing a timestamp column ({', '.join(TIMESTAMP_COLUMNS)}). "
        f"Found: {list(fieldnames)}"
    )


def _parse_row(row: dict[str, str], time_column: str) -> PositionFix:
    altitude = row.get("altitude")
    return PositionFix(
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        timestamp=int(float(row[time_column])),
        accuracy=_optional_float(row.get("accuracy") or row.get("horizontalAccuracy")),
        altitude=float(altitude) if altitude and altitude.strip() else None,
        speed=_optional_float(row.get("speed")),
    )


def _read_track(f: TextIO) -> tuple[Sequence[str], Iterator[Optional[PositionFix]]]:
    """Validate the header of an open track file and parse its rows lazily.

    Returns:
        (fieldnames, rows) where rows yields the parsed fix for each data
        row, or None for a row that could not be parsed

    Raises:
        KeyError: A required column is missing
    """
    reader = csv.DictReader(f)
    fieldnames = reader.fieldnames or ()
    if not fieldnames:
        return (), iter(())
    time_column = _timestamp_column(fieldnames)
    for field in ("latitude", "longitude"):
        if field not in fieldnames:
            raise KeyError(f"CSV is missing column '{field}'. Found: {list(fieldnames)}")

    def rows() -> Iterator[Optional[PositionFix]]:
        for row in reader:
            try:
                yield _parse_row(row, time_column)
            except (ValueError, TypeError):
                yield None

    return fieldnames, rows()


def iter_fixes_from_csv(csv_path: str | Path) -> Iterator[PositionFix]:
    """Yield PositionFix objects from a track CSV.

    Args:
        csv_path: Path to a CSV with latitude, longitude and a timestamp
            column in epoch milliseconds; accuracy, altitude and speed are
            optional

    Yields:
        Fixes for every row that parses; broken rows are skipped

    Raises:
        KeyError: Required columns are missing
    """
    with Path(csv_path).open("r", encoding="utf-8", newline="") as f:
        _, rows = _read_track(f)
        for fix in rows:
            if fix is not None:
                yield fix


def load_fixes_from_csv(csv_path: str | Path) -> tuple[list[PositionFix], ReplaySummary]:
    """Load all fixes into memory.

    Returns:
        (fixes, summary)

    Raises:
        KeyError: Required columns are missing
    """
    rows_total = 0
    parsed: list[PositionFix] = []
    with Path(csv_path).open("r", encoding="utf-8", newline="") as f:
        fieldnames, rows = _read_track(f)
        for fix in rows:
            rows_total += 1
            if fix is not None:
                parsed.append(fix)

    summary = ReplaySummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("%s rows of %s could not be parsed and were skipped", summary.rows_skipped, csv_path)
    return parsed, summary


class ReplayProvider:
    """Position provider that hands out recorded fixes one per call.

    Plugs into a ForegroundWatcher. Returns None once the track is used up
    and sets the finished event.
    """

    def __init__(self, fixes: Iterable[PositionFix]):
        self._fixes = iter(fixes)
        self._lock = threading.Lock()
        self.finished = threading.Event()
        self.served = 0

    def __call__(self) -> Optional[PositionFix]:
        with self._lock:
            if self.finished.is_set():
                return None
            try:
                fix = next(self._fixes)
            except StopIteration:
                self.finished.set()
                return None
            self.served += 1
            return fix
