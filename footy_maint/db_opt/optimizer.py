"""
Storage Optimizer — compaction, planner statistics and storage reporting.

Provides:
- compact(db): VACUUM
- analyze(db): ANALYZE
- optimize_hint(db): PRAGMA optimize (advisory only)
- optimize_database(db): The three phases in order
- analyze_and_report(db): Row counts, file size and index listing as StorageStats
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .. import safe_sql
from ..errors import OptimizeError
from .connection import Database

logger = logging.getLogger(__name__)

STATS_TABLES: tuple[str, ...] = ("carnivals", "users", "clubs", "email_subscriptions")
"""Tables whose row counts go into the end-of-tick report."""

PHASE_COMPACT = "compact"
PHASE_ANALYZE = "analyze"
PHASE_OPTIMIZE = "optimize"
PHASE_REPORT = "report"


@dataclass(frozen=True)
class IndexInfo:
    name: str
    table: str


@dataclass
class StorageStats:
    """Post-maintenance snapshot of the database."""

    table_row_counts: dict[str, int] = field(default_factory=dict)
    page_bytes: int = 0
    index_list: list[IndexInfo] = field(default_factory=list)
    captured_at: str = ""

    @property
    def database_size_kb(self) -> int:
        return round(self.page_bytes / 1024)

    def to_dict(self) -> dict:
        return {
            "table_row_counts": dict(self.table_row_counts),
            "database_size_kb": self.database_size_kb,
            "index_count": len(self.index_list),
            "indexes": [{"name": i.name, "table": i.table} for i in self.index_list],
            "captured_at": self.captured_at,
        }


def _run_phase(db: Database, phase: str, sql: str, deadline: bool = True) -> None:
    logger.info(f"Running {sql}")
    try:
        db.execute(sql, deadline=deadline)
    except sqlite3.Error as e:
        logger.error(f"{sql} failed: {e}")
        raise OptimizeError(phase, e) from e


def compact(db: Database) -> None:
    """
    Rewrite the file to reclaim free pages. Holds the write lock throughout.

    Runs without the query timeout: compaction takes time proportional to
    the live data and must complete or fail on its own.
    """
    _run_phase(db, PHASE_COMPACT, "VACUUM", deadline=False)


def analyze(db: Database) -> None:
    """Refresh planner statistics for every table."""
    _run_phase(db, PHASE_ANALYZE, "ANALYZE")


def optimize_hint(db: Database) -> None:
    # Effects vary by SQLite version; nothing downstream may rely on them
    _run_phase(db, PHASE_OPTIMIZE, "PRAGMA optimize")


def optimize_database(db: Database) -> None:
    """
    Compact, analyze and hint in that order.

    Raises:
        OptimizeError: Tagged with the failing phase; later phases are skipped
    """
    logger.info("Starting database optimization...")
    compact(db)
    analyze(db)
    optimize_hint(db)
    logger.info("Database optimization completed")


def analyze_and_report(db: Database, tables: tuple[str, ...] = STATS_TABLES) -> StorageStats:
    """
    Collect row counts, storage size and the user-defined index list.

    Raises:
        OptimizeError: phase="report" if any of the queries fail
    """
    stats = StorageStats(captured_at=datetime.now(timezone.utc).isoformat())
    try:
        for table in tables:
            rows = db.select(safe_sql.select_count_bare(table))
            stats.table_row_counts[table] = int(rows[0]["count"])

        rows = db.select(
            "SELECT page_count * page_size AS size FROM pragma_page_count(), pragma_page_size()"
        )
        stats.page_bytes = int(rows[0]["size"] or 0)

        rows = db.select(
            "SELECT name, tbl_name FROM sqlite_master "
            "WHERE type='index' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        stats.index_list = [IndexInfo(row["name"], row["tbl_name"]) for row in rows]
    except sqlite3.Error as e:
        logger.error(f"Storage report failed: {e}")
        raise OptimizeError(PHASE_REPORT, e) from e

    return stats
