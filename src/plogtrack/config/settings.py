"""Application settings and configuration management."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

CONFIG_ENV_VAR = "PLOGTRACK_CONFIG"


def _default_config_dir() -> Path:
    """Return the default configuration directory."""
    return Path.home() / ".plogtrack"


def _default_db_path() -> Path:
    """Return the default database path."""
    return _default_config_dir() / "plogtrack.db"


def default_config_path() -> Path:
    """Return the config file path, honouring the PLOGTRACK_CONFIG override."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return _default_config_dir() / "config.yaml"


@dataclass
class DatabaseConfig:
    """Database configuration."""

    path: Path = field(default_factory=_default_db_path)


@dataclass
class SourcesConfig:
    """Sample source configuration. Intervals are advisory."""

    time_interval_ms: int = 1000
    distance_interval_m: float = 5.0
    foreground: bool = True
    background: bool = True


@dataclass
class StoreConfig:
    """Retry policy for the session store."""

    retry_attempts: int = 3
    retry_backoff_s: float = 0.05


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "WARNING"


@dataclass
class Settings:
    """Main application settings."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from YAML file or return defaults.

        Args:
            config_path: Path to config.yaml. If None, uses PLOGTRACK_CONFIG
                or ~/.plogtrack/config.yaml

        Returns:
            Settings instance
        """
        if config_path is None:
            config_path = default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        settings = cls()

        # Parse database config
        if "database" in data:
            db_data = data["database"] or {}
            if "path" in db_data:
                settings.database.path = Path(db_data["path"]).expanduser()

        # Parse sources config
        if "sources" in data:
            src_data = data["sources"] or {}
            if "time_interval_ms" in src_data:
                settings.sources.time_interval_ms = int(src_data["time_interval_ms"])
            if "distance_interval_m" in src_data:
                settings.sources.distance_interval_m = float(
                    src_data["distance_interval_m"]
                )
            if "foreground" in src_data:
                settings.sources.foreground = bool(src_data["foreground"])
            if "background" in src_data:
                settings.sources.background = bool(src_data["background"])

        # Parse store config
        if "store" in data:
            store_data = data["store"] or {}
            if "retry_attempts" in store_data:
                settings.store.retry_attempts = int(store_data["retry_attempts"])
            if "retry_backoff_s" in store_data:
                settings.store.retry_backoff_s = float(store_data["retry_backoff_s"])

        # Parse logging config
        if "logging" in data:
            log_data = data["logging"] or {}
            if "level" in log_data:
                settings.logging.level = str(log_data["level"]).upper()

        return settings

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save current settings to YAML file.

        Args:
            config_path: Path to save config.yaml. If None, uses the default path
        """
        if config_path is None:
            config_path = default_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "database": {
                "path": str(self.database.path),
            },
            "sources": {
                "time_interval_ms": self.sources.time_interval_ms,
                "distance_interval_m": self.sources.distance_interval_m,
                "foreground": self.sources.foreground,
                "background": self.sources.background,
            },
            "store": {
                "retry_attempts": self.store.retry_attempts,
                "retry_backoff_s": self.store.retry_backoff_s,
            },
            "logging": {
                "level": self.logging.level,
            },
        }

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, loading from disk if needed."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings() -> Settings:
    """Force reload settings from disk."""
    global _settings
    _settings = Settings.load()
    return _settings
