"""Tests for configuration loading."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.logging import RichHandler

from plogtrack.config import configure_logging
from plogtrack.config.settings import Settings


class TestSettings:
    """Tests for YAML settings."""

    def test_defaults_when_missing(self, tmp_path) -> None:
        settings = Settings.load(tmp_path / "missing.yaml")
        assert settings.sources.time_interval_ms == 1000
        assert settings.sources.distance_interval_m == 5.0
        assert settings.store.retry_attempts == 3
        assert settings.database.path.name == "plogtrack.db"

    def test_load_overrides(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "database:\n"
            f"  path: {tmp_path / 'walks.db'}\n"
            "sources:\n"
            "  time_interval_ms: 2000\n"
            "  background: false\n"
            "store:\n"
            "  retry_attempts: 5\n"
            "logging:\n"
            "  level: info\n",
            encoding="utf-8",
        )
        settings = Settings.load(path)
        assert settings.database.path == tmp_path / "walks.db"
        assert settings.sources.time_interval_ms == 2000
        assert settings.sources.background is False
        assert settings.sources.foreground is True
        assert settings.store.retry_attempts == 5
        assert settings.logging.level == "INFO"

    def test_save_round_trip(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        settings = Settings()
        settings.database.path = Path(tmp_path / "x.db")
        settings.sources.distance_interval_m = 2.5
        settings.save(path)

        loaded = Settings.load(path)
        assert loaded.database.path == settings.database.path
        assert loaded.sources.distance_interval_m == 2.5

    def test_env_override(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "env.yaml"
        path.write_text("store:\n  retry_backoff_s: 0.5\n", encoding="utf-8")
        monkeypatch.setenv("PLOGTRACK_CONFIG", str(path))
        assert Settings.load().store.retry_backoff_s == 0.5


class TestConfigureLogging:
    """Tests for the Rich log handler setup."""

    def test_installs_one_handler(self) -> None:
        logger = configure_logging("INFO")
        configure_logging("DEBUG")
        handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
        assert len(handlers) == 1
        assert logger.level == logging.DEBUG
        configure_logging("WARNING")

    def test_unknown_level_falls_back(self) -> None:
        logger = configure_logging("chatty")
        assert logger.level == logging.WARNING
