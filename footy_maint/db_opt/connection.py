"""
Connection handle: the single connection surface to the embedded database.

Wraps one sqlite3 connection with:
- Lazy connect, explicit close (hooks survive reconnects)
- Lifecycle and query hooks (before/after connect, disconnect, query)
- Busy timeout on connect and a per-statement query timeout
- Serialized execution (single writer)

Classes:
- QueryKind: RAW statements return a QueryAck, SELECT returns rows as dicts
- HookEvent: Events a handler can be registered for
- QueryContext: Mutable per-query context passed to query hooks
- Database: The handle itself
"""

import enum
import logging
import sqlite3
import threading
import time
from collections.abc import Callable, Generator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import DatabaseConnectionError

logger = logging.getLogger(__name__)
sql_logger = logging.getLogger("footy_maint.sql")


class QueryKind(str, enum.Enum):
    RAW = "raw"
    SELECT = "select"


class HookEvent(str, enum.Enum):
    BEFORE_CONNECT = "beforeConnect"
    AFTER_CONNECT = "afterConnect"
    BEFORE_DISCONNECT = "beforeDisconnect"
    AFTER_DISCONNECT = "afterDisconnect"
    BEFORE_QUERY = "beforeQuery"
    AFTER_QUERY = "afterQuery"


@dataclass
class QueryContext:
    """Per-query context. Before-hooks stamp it, after-hooks read it."""

    sql: str
    params: tuple = ()
    kind: QueryKind = QueryKind.RAW
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class QueryAck:
    """Acknowledgement for RAW statements."""

    rowcount: int
    lastrowid: int | None = None


Hook = Callable[..., Any]


class Database:
    """
    Single-writer handle over one SQLite database file.

    Usage:
        db = Database("data/dev-old-man-footy.db")
        db.register_hook(HookEvent.AFTER_CONNECT, lambda handle: ...)
        rows = db.execute("SELECT COUNT(*) AS count FROM users", kind=QueryKind.SELECT)
        db.close()
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        busy_timeout_ms: int = 30000,
        query_timeout_ms: int = 30000,
        log_sql: bool = False,
    ):
        self.db_path = Path(db_path).expanduser().resolve()
        self.busy_timeout_ms = busy_timeout_ms
        self.query_timeout_ms = query_timeout_ms
        self.log_sql = log_sql
        self.conn: sqlite3.Connection | None = None
        self._hooks: dict[HookEvent, list[Hook]] = {event: [] for event in HookEvent}
        self._lock = threading.RLock()
        self._deadline: float | None = None

    @classmethod
    def from_config(cls, config) -> "Database":
        """Build a handle from a MaintenanceConfig."""
        return cls(
            config.db_path,
            busy_timeout_ms=config.pool.acquire_ms,
            query_timeout_ms=config.query_timeout_ms,
            log_sql=config.sql_logging,
        )

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def register_hook(self, event: HookEvent | str, handler: Hook) -> None:
        """Register *handler* for *event*. Handlers run in registration order."""
        event = HookEvent(event)
        with self._lock:
            self._hooks[event].append(handler)

    def unregister_hook(self, event: HookEvent | str, handler: Hook) -> bool:
        """Remove a handler. Returns False if it was not registered."""
        event = HookEvent(event)
        with self._lock:
            try:
                self._hooks[event].remove(handler)
                return True
            except ValueError:
                return False

    def hook_count(self, event: HookEvent | str) -> int:
        with self._lock:
            return len(self._hooks[HookEvent(event)])

    def _fire(self, event: HookEvent, *args: Any) -> None:
        for handler in list(self._hooks[event]):
            try:
                handler(*args)
            except Exception as e:
                logger.warning(f"{event.value} hook {handler!r} failed: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self.conn is not None

    def storage_path(self) -> Path:
        """Absolute path of the database file this handle reads and writes."""
        return self.db_path

    def _ensure_connected(self) -> sqlite3.Connection:
        if self.conn is not None:
            return self.conn

        self._fire(HookEvent.BEFORE_CONNECT, self)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys=ON")
            if self.query_timeout_ms > 0:
                conn.set_progress_handler(self._check_deadline, 1000)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Unable to connect to SQLite database at {self.db_path}: {e}")
            raise DatabaseConnectionError(
                f"Unable to connect to SQLite database at {self.db_path}: {e}", e
            ) from e

        self.conn = conn
        logger.debug(f"Database connected to {self.db_path}")
        self._fire(HookEvent.AFTER_CONNECT, self)
        return conn

    def _check_deadline(self) -> int:
        # Non-zero return aborts the running statement ("interrupted")
        if self._deadline is not None and time.perf_counter() > self._deadline:
            return 1
        return 0

    def close(self) -> None:
        """Release the underlying connection. Safe to call repeatedly."""
        with self._lock:
            if self.conn is None:
                return
            self._fire(HookEvent.BEFORE_DISCONNECT, self)
            conn, self.conn = self.conn, None
            try:
                conn.close()
            except sqlite3.Error as e:
                logger.error(f"Database.close failed: {e}")
                raise DatabaseConnectionError(f"Error closing database connection: {e}", e) from e
            logger.debug("Database connection closed")
            self._fire(HookEvent.AFTER_DISCONNECT, self)

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        kind: QueryKind = QueryKind.RAW,
        deadline: bool = True,
    ) -> list[dict[str, Any]] | QueryAck:
        """
        Execute one SQL statement.

        Args:
            sql: SQL statement
            params: Positional parameters for ? placeholders
            kind: SELECT returns rows as dicts; RAW returns a QueryAck
            deadline: Apply the query timeout. Statements run with
                deadline=False are never interrupted.

        Raises:
            DatabaseConnectionError: If the connection cannot be opened
            sqlite3.Error: If the statement fails
        """
        kind = QueryKind(kind)
        with self._lock:
            conn = self._ensure_connected()
            ctx = QueryContext(sql=sql, params=tuple(params or ()), kind=kind)
            self._fire(HookEvent.BEFORE_QUERY, ctx)

            if self.log_sql:
                sql_logger.debug(f"Executing ({kind.value}): {sql}")

            if deadline and self.query_timeout_ms > 0:
                self._deadline = time.perf_counter() + self.query_timeout_ms / 1000
            try:
                cursor = conn.execute(sql, ctx.params)
                if kind is QueryKind.SELECT:
                    result: list[dict[str, Any]] | QueryAck = [
                        dict(row) for row in cursor.fetchall()
                    ]
                else:
                    result = QueryAck(rowcount=cursor.rowcount, lastrowid=cursor.lastrowid)
            finally:
                self._deadline = None

            self._fire(HookEvent.AFTER_QUERY, ctx)
            return result

    def select(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        """Shorthand for execute(..., kind=QueryKind.SELECT)."""
        return self.execute(sql, params, kind=QueryKind.SELECT)

    def create_function(self, name: str, num_params: int, func: Callable[..., Any]) -> None:
        """Register a user-defined SQL function on the live connection."""
        with self._lock:
            self._ensure_connected().create_function(name, num_params, func)

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """
        Context manager for transactions.

        Commits on success, rolls back on exception.
        """
        with self._lock:
            conn = self._ensure_connected()
            conn.execute("BEGIN")
            try:
                yield
                conn.execute("COMMIT")
            except (sqlite3.Error, ValueError, OSError) as e:
                logger.error(f"Database.transaction error: {e}")
                conn.execute("ROLLBACK")
                raise
