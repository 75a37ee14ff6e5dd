"""
Schema introspection over the Connection Handle.

Read-only PRAGMA lookups used by the index provisioner and the janitor.
"""

import logging
import re

from .. import safe_sql
from .connection import Database

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def to_snake_case(name: str) -> str:
    """createdByUserId -> created_by_user_id"""
    return _CAMEL_BOUNDARY_RE.sub("_", name).lower()


class SchemaProber:
    """Answers "does this index / column / table exist" for one handle."""

    def __init__(self, db: Database):
        self.db = db

    def list_tables(self) -> list[str]:
        rows = self.db.select(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        )
        return [row["name"] for row in rows]

    def table_exists(self, table: str) -> bool:
        rows = self.db.select(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table,),
        )
        return len(rows) > 0

    def list_indexes(self) -> list[str]:
        """Index names from PRAGMA index_list for every user table."""
        names: list[str] = []
        for table in self.list_tables():
            for row in self.db.select(safe_sql.pragma_index_list(table)):
                names.append(row["name"])
        return names

    def index_exists(self, name: str) -> bool:
        """True if any index name contains *name* or its snake_case form."""
        snake = to_snake_case(name)
        return any(name in existing or snake in existing for existing in self.list_indexes())

    def column_exists(self, table: str, column: str) -> bool:
        rows = self.db.select(safe_sql.pragma_table_info(table))
        return any(row["name"] == column for row in rows)
