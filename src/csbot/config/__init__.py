"""Configuration module for csbot."""

from .logging import JSONFormatter, SanitizingFilter, TextFormatter, configure_logging
from .settings import (
    EngineSettings,
    LoggingSettings,
    ServerSettings,
    Settings,
    TimeoutSettings,
    get_settings,
    load_settings,
)

__all__ = [
    "Settings",
    "ServerSettings",
    "LoggingSettings",
    "TimeoutSettings",
    "EngineSettings",
    "get_settings",
    "load_settings",
    "configure_logging",
    "JSONFormatter",
    "SanitizingFilter",
    "TextFormatter",
]
