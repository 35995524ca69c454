"""Configuration loading and logging setup."""

from plogtrack.config.logging_setup import configure_logging
from plogtrack.config.settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "configure_logging", "get_settings", "reload_settings"]
