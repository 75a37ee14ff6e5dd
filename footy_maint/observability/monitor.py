"""
Query monitoring hooks for the Connection Handle.

install_monitoring() registers lifecycle and timing hooks. Queries slower than
the threshold are reported as a single WARNING record with event="slow_query".
"""

import asyncio
import inspect
import logging
import re
import time
import weakref
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..config import SLOW_QUERY_THRESHOLD_MS
from ..db_opt.connection import Database, HookEvent, QueryContext
from ..errors import MonitorSetupError
from . import metrics

logger = logging.getLogger(__name__)

MAX_SQL_LENGTH = 500

_STRING_LITERAL_RE = re.compile(r"'(?:[^']|'')*'")
_WHITESPACE_RE = re.compile(r"\s+")

_installed: "weakref.WeakKeyDictionary[Database, MonitorHandle]" = weakref.WeakKeyDictionary()


def redact_sql(sql: str) -> str:
    """Replace string literals with ?, collapse whitespace, cap the length."""
    text = _STRING_LITERAL_RE.sub("?", sql)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    if len(text) > MAX_SQL_LENGTH:
        text = text[: MAX_SQL_LENGTH - 3] + "..."
    return text


@dataclass(frozen=True)
class SlowQueryEvent:
    sql: str
    duration_ms: float
    threshold_ms: int
    bind_count: int = 0
    environment: str = "development"
    captured_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MonitorHandle:
    """Hooks installed on one Database. uninstall() removes them."""

    db: Database
    threshold_ms: int
    registrations: list[tuple[HookEvent, Callable[..., Any]]] = field(default_factory=list)
    slow_query_count: int = 0

    def uninstall(self) -> None:
        for event, handler in self.registrations:
            self.db.unregister_hook(event, handler)
        self.registrations.clear()
        _installed.pop(self.db, None)


def _resolve(result: Any) -> Any:
    """Wait for registrations that hand back an awaitable."""
    if not inspect.isawaitable(result):
        return result

    async def _wait() -> Any:
        return await result

    return asyncio.run(_wait())


def install_monitoring(
    db: Database,
    threshold_ms: int = SLOW_QUERY_THRESHOLD_MS,
    environment: str = "development",
    on_slow_query: Callable[[SlowQueryEvent], None] | None = None,
) -> MonitorHandle:
    """
    Register connection and query hooks on *db*.

    A second call for the same handle returns the existing MonitorHandle.

    Raises:
        MonitorSetupError: If any hook fails to register. Hooks registered
            before the failure are removed again.
    """
    existing = _installed.get(db)
    if existing is not None:
        logger.debug("Database monitoring already installed")
        return existing

    handle = MonitorHandle(db=db, threshold_ms=threshold_ms)

    def before_connect(_db: Database) -> None:
        logger.debug("Connecting to database", extra={"event": "db_connecting"})

    def after_connect(conn_db: Database) -> None:
        logger.info(
            "Database connection established",
            extra={"event": "db_connected", "storage_path": str(conn_db.storage_path())},
        )

    def before_disconnect(_db: Database) -> None:
        logger.info("Closing database connection", extra={"event": "db_disconnecting"})

    def after_disconnect(_db: Database) -> None:
        logger.debug("Database connection closed", extra={"event": "db_disconnected"})

    def before_query(ctx: QueryContext) -> None:
        ctx.extras["start"] = time.perf_counter()
        ctx.extras["bind_count"] = len(ctx.params)

    def after_query(ctx: QueryContext) -> None:
        start = ctx.extras.get("start")
        if start is None:
            return
        duration_ms = (time.perf_counter() - start) * 1000
        ctx.extras["duration_ms"] = duration_ms
        if duration_ms <= handle.threshold_ms:
            return

        event = SlowQueryEvent(
            sql=redact_sql(ctx.sql),
            duration_ms=round(duration_ms, 2),
            threshold_ms=handle.threshold_ms,
            bind_count=ctx.extras.get("bind_count", 0),
            environment=environment,
        )
        handle.slow_query_count += 1
        metrics.slow_queries.inc()
        logger.warning("Slow query detected", extra={"event": "slow_query", **event.to_dict()})
        if on_slow_query is not None:
            on_slow_query(event)

    hooks = (
        (HookEvent.BEFORE_CONNECT, before_connect),
        (HookEvent.AFTER_CONNECT, after_connect),
        (HookEvent.BEFORE_DISCONNECT, before_disconnect),
        (HookEvent.AFTER_DISCONNECT, after_disconnect),
        (HookEvent.BEFORE_QUERY, before_query),
        (HookEvent.AFTER_QUERY, after_query),
    )

    try:
        for event, handler in hooks:
            _resolve(db.register_hook(event, handler))
            handle.registrations.append((event, handler))
    except Exception as e:
        logger.error(f"Failed to set up database monitoring: {e}")
        for event, handler in handle.registrations:
            try:
                db.unregister_hook(event, handler)
            except Exception as cleanup_error:
                logger.warning(f"Could not remove {event.value} hook: {cleanup_error}")
        handle.registrations.clear()
        raise MonitorSetupError(f"Failed to set up database monitoring: {e}", e) from e

    _installed[db] = handle
    logger.info(
        "Database monitoring installed",
        extra={"event": "monitoring_installed", "threshold_ms": threshold_ms},
    )
    return handle
