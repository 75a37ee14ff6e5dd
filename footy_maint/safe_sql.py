"""
Centralized SQL construction with validated identifiers.

Table, column and index names are validated against _SAFE_IDENTIFIER_RE
before interpolation. Values are always passed as parameterized ? and never
interpolated.

SQLite does not support parameterized identifiers (? works only for values),
so PRAGMA and DDL statements are assembled here and nowhere else.
"""

# ruff: noqa: S608 — All identifiers validated via _validate() before interpolation.

from __future__ import annotations

import re

_SAFE_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate(name: str) -> str:
    """Validate that *name* is a safe SQL identifier.

    Returns the name unchanged if valid; raises ValueError otherwise.
    """
    if not isinstance(name, str) or not _SAFE_IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def validate_identifier(name: str) -> str:
    return _validate(name)


# ────────────────────────────────────────────────────────────
# PRAGMA helpers (SQLite metadata — cannot use ? for identifiers)
# ────────────────────────────────────────────────────────────


def pragma_table_info(table: str) -> str:
    """PRAGMA table_info for a validated table name."""
    return f"PRAGMA table_info([{_validate(table)}])"


def pragma_index_list(table: str) -> str:
    """PRAGMA index_list for a validated table name."""
    return f"PRAGMA index_list([{_validate(table)}])"


# ────────────────────────────────────────────────────────────
# DML / DDL
# ────────────────────────────────────────────────────────────


def select_count_bare(table: str, where: str | None = None) -> str:
    """Build SELECT COUNT(*) without alias, for raw count queries."""
    sql = f"SELECT COUNT(*) AS count FROM {_validate(table)}"
    if where:
        sql += f" WHERE {where}"
    return sql


def update(table: str, set_columns: list[str], where: str) -> str:
    """Build UPDATE SET with validated table+column names."""
    _validate(table)
    for col in set_columns:
        _validate(col)
    sets = ", ".join(f"{col} = ?" for col in set_columns)
    return f"UPDATE {table} SET {sets} WHERE {where}"


def delete(table: str, where: str) -> str:
    """Build DELETE with validated table name."""
    return f"DELETE FROM {_validate(table)} WHERE {where}"


def create_index(
    name: str,
    table: str,
    column_exprs: list[str],
    where: str | None = None,
) -> str:
    """Build CREATE INDEX IF NOT EXISTS.

    *column_exprs* are ``"<column>"`` or ``"<column> DESC"``; the column part
    is validated. *where* is a predicate already rendered from validated parts.
    """
    _validate(name)
    _validate(table)
    rendered = []
    for expr in column_exprs:
        col, _, direction = expr.partition(" ")
        _validate(col)
        if direction and direction not in ("ASC", "DESC"):
            raise ValueError(f"Invalid sort direction: {direction!r}")
        rendered.append(expr)
    sql = f"CREATE INDEX IF NOT EXISTS {name} ON {table}({', '.join(rendered)})"
    if where:
        sql += f" WHERE {where}"
    return sql
