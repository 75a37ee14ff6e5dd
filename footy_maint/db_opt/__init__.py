"""Database handle, schema probing, index provisioning and storage optimization."""

from footy_maint.db_opt.connection import (
    Database,
    HookEvent,
    QueryAck,
    QueryContext,
    QueryKind,
)
from footy_maint.db_opt.indexes import (
    DECLARED_INDEXES,
    And,
    Eq,
    IndexColumn,
    IndexReport,
    IndexSpec,
    IsNotNull,
    IsNull,
    SortOrder,
    ensure_indexes,
    missing_indexes,
)
from footy_maint.db_opt.optimizer import (
    STATS_TABLES,
    IndexInfo,
    StorageStats,
    analyze,
    analyze_and_report,
    compact,
    optimize_database,
    optimize_hint,
)
from footy_maint.db_opt.schema import SchemaProber, to_snake_case

__all__ = [
    # Connection handle
    "Database",
    "HookEvent",
    "QueryAck",
    "QueryContext",
    "QueryKind",
    # Schema probing
    "SchemaProber",
    "to_snake_case",
    # Index management
    "DECLARED_INDEXES",
    "IndexSpec",
    "IndexColumn",
    "SortOrder",
    "Eq",
    "IsNull",
    "IsNotNull",
    "And",
    "IndexReport",
    "ensure_indexes",
    "missing_indexes",
    # Storage optimization
    "STATS_TABLES",
    "IndexInfo",
    "StorageStats",
    "compact",
    "analyze",
    "optimize_hint",
    "optimize_database",
    "analyze_and_report",
]
