"""
Structured JSON logging with tick ID propagation.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .context import get_tick_id

_RESERVED_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    )
)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging, one object per line.

    Output format:
    {
        "timestamp": "2025-01-15T02:00:00.000Z",
        "level": "WARNING",
        "logger": "footy_maint.observability.monitor",
        "message": "Slow query detected",
        "tick_id": "tick-abc123",
        "event": "slow_query",
        "duration_ms": 152.4,
        ...
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        tick_id = get_tick_id()
        if tick_id:
            log_obj["tick_id"] = tick_id

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        log_obj.update(_extra_fields(record))

        return json.dumps(log_obj, default=str)


class HumanFormatter(logging.Formatter):
    """Human-readable formatter for local development."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        tick_id = get_tick_id()
        tid_str = f"[{tick_id[:13]}] " if tick_id else ""
        extras = _extra_fields(record)
        extra_str = f" {json.dumps(extras, default=str)}" if extras else ""
        line = f"{timestamp} [{record.levelname}] {record.name}: {tid_str}{record.getMessage()}{extra_str}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
) -> None:
    """
    Configure logging for the service.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format. If None, auto-detect based on environment.
    """
    if json_format is None:
        # JSON when running as a service (not a TTY), human format in a terminal
        json_format = not sys.stderr.isatty()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else HumanFormatter())
    root_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("Backup created", extra={"bytes": 4096})
    """
    return logging.getLogger(name)
