"""Tests for loading recorded tracks."""

from __future__ import annotations

import pytest

from plogtrack.tracking.replay import (
    ReplayProvider,
    iter_fixes_from_csv,
    load_fixes_from_csv,
)


@pytest.fixture
def track_csv(tmp_path):
    path = tmp_path / "track.csv"
    path.write_text(
        "timestamp,latitude,longitude,accuracy,altitude,speed\n"
        "1000,0.0,0.0,5.0,12.5,1.2\n"
        "2000,0.0,0.001,-1,,\n"
        "oops,0.0,0.002,,,\n"
        "4000,0.0,0.003,,,\n",
        encoding="utf-8",
    )
    return path


class TestLoadFixes:
    """Tests for CSV parsing."""

    def test_load_with_summary(self, track_csv) -> None:
        fixes, summary = load_fixes_from_csv(track_csv)
        assert [f.timestamp for f in fixes] == [1000, 2000, 4000]
        assert summary.rows_total == 4
        assert summary.rows_parsed == 3
        assert summary.rows_skipped == 1

    def test_optional_columns(self, track_csv) -> None:
        first, second, _ = load_fixes_from_csv(track_csv)[0]
        assert first.accuracy == 5.0
        assert first.altitude == 12.5
        assert first.speed == 1.2
        # -1 and blanks mean unknown
        assert second.accuracy is None
        assert second.altitude is None
        assert second.speed is None

    def test_geotime_column_accepted(self, tmp_path) -> None:
        path = tmp_path / "export.csv"
        path.write_text(
            "geoTime,latitude,longitude,horizontalAccuracy\n1700000000000,31.2,121.5,8\n",
            encoding="utf-8",
        )
        (fix,) = list(iter_fixes_from_csv(path))
        assert fix.timestamp == 1_700_000_000_000
        assert fix.accuracy == 8.0

    def test_missing_timestamp_column(self, tmp_path) -> None:
        path = tmp_path / "bad.csv"
        path.write_text("latitude,longitude\n1,2\n", encoding="utf-8")
        with pytest.raises(KeyError):
            load_fixes_from_csv(path)
        with pytest.raises(KeyError):
            list(iter_fixes_from_csv(path))

    def test_missing_longitude_column(self, tmp_path) -> None:
        """A track without longitude is rejected up front, not read as all-broken rows."""
        path = tmp_path / "no_lon.csv"
        path.write_text("timestamp,latitude\n1000,45.0\n2000,45.1\n", encoding="utf-8")
        with pytest.raises(KeyError, match="longitude"):
            load_fixes_from_csv(path)
        with pytest.raises(KeyError, match="longitude"):
            list(iter_fixes_from_csv(path))

    def test_empty_file(self, tmp_path) -> None:
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        fixes, summary = load_fixes_from_csv(path)
        assert fixes == []
        assert summary.rows_total == 0

    def test_out_of_range_rows_skipped(self, tmp_path) -> None:
        path = tmp_path / "range.csv"
        path.write_text("timestamp,latitude,longitude\n1,95.0,0\n2,45.0,0\n", encoding="utf-8")
        fixes, summary = load_fixes_from_csv(path)
        assert [f.timestamp for f in fixes] == [2]
        assert summary.rows_skipped == 1


class TestReplayProvider:
    """Tests for ReplayProvider."""

    def test_serves_each_fix_once(self, walk) -> None:
        provider = ReplayProvider(walk)
        served = [provider() for _ in walk]
        assert served == walk
        assert not provider.finished.is_set()
        assert provider() is None
        assert provider.finished.is_set()
        assert provider.served == len(walk)
