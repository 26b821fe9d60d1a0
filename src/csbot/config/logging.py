"""Logging configuration with JSON format support."""

import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TextIO

from csbot.utils.validation import sanitize_log_message

LEVEL_ALIASES = {"warn": "WARNING"}


class SanitizingFilter(logging.Filter):
    """Filter that redacts passwords and session tokens from log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Sanitize the log message."""
        if record.msg:
            record.msg = sanitize_log_message(str(record.msg))
        if record.args:
            sanitized_args = []
            for arg in record.args:
                if isinstance(arg, str):
                    sanitized_args.append(sanitize_log_message(arg))
                else:
                    sanitized_args.append(arg)
            record.args = tuple(sanitized_args)
        return True


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    # Optional fields to extract from log records
    _OPTIONAL_FIELDS = (
        "workflow",
        "action",
        "action_type",
        "beacon_id",
        "duration_ms",
    )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in self._OPTIONAL_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class TextFormatter(logging.Formatter):
    """Standard text formatter with consistent format."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y/%m/%d %H:%M:%S",
        )


def resolve_level(level: str) -> int:
    """Map a level name (``debug``, ``warn``, ``ERROR`` ...) to its number."""
    name = LEVEL_ALIASES.get(level.lower(), level.upper())
    return getattr(logging, name, logging.INFO)


def configure_logging(
    level: str = "INFO",
    format: str = "text",
    log_file: str | Path | None = None,
    sanitize_logs: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARN/WARNING, ERROR, CRITICAL)
        format: Log format ('text' or 'json')
        log_file: Also append records to this file
        sanitize_logs: If True, redact passwords and tokens from logs
        stream: Console stream (default: stdout)
    """
    numeric_level = resolve_level(level)
    formatter = JSONFormatter() if format.lower() == "json" else TextFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        if sanitize_logs:
            handler.addFilter(SanitizingFilter())
        root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
