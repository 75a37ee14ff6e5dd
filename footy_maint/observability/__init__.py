"""
Observability module: structured logging, tick IDs, metrics, query monitoring.

Usage:
    from footy_maint.observability import get_logger, TickContext

    logger = get_logger(__name__)

    with TickContext() as ctx:
        logger.info("Tick started", extra={"event": "tick_started"})

Monitoring:
    from footy_maint.observability import install_monitoring

    install_monitoring(db, threshold_ms=100)
"""

from .context import TickContext, generate_tick_id, get_tick_id, set_tick_id
from .logging import HumanFormatter, JSONFormatter, configure_logging, get_logger
from .metrics import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    backups_created,
    get_registry,
    last_tick_ok,
    slow_queries,
    tick_duration,
    tick_failures,
    ticks_total,
)
from .monitor import MonitorHandle, SlowQueryEvent, install_monitoring, redact_sql

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "JSONFormatter",
    "HumanFormatter",
    # Context
    "TickContext",
    "get_tick_id",
    "set_tick_id",
    "generate_tick_id",
    # Metrics
    "REGISTRY",
    "get_registry",
    "Counter",
    "Gauge",
    "Histogram",
    "ticks_total",
    "tick_failures",
    "tick_duration",
    "last_tick_ok",
    "slow_queries",
    "backups_created",
    # Monitoring
    "MonitorHandle",
    "SlowQueryEvent",
    "install_monitoring",
    "redact_sql",
]
