"""
Index Management — Declared Partial and Composite Indexes

Provides:
- IndexSpec: Structured index declaration, rendered to DDL once
- Eq / IsNull / IsNotNull / And: The predicate operators allowed in partial indexes
- DECLARED_INDEXES: The portal's index set
- ensure_indexes(db): Creates all declared indexes idempotently
- missing_indexes(db): Declared indexes not yet present
- IndexReport: Tracks created and existing indexes

All indexes use CREATE INDEX IF NOT EXISTS for idempotent operation.
Can be called multiple times without errors or duplicates. Only adds
schema objects; nothing here drops or alters an index.
"""

import enum
import logging
import re
import sqlite3
from dataclasses import dataclass, field
from typing import Union

from .. import safe_sql
from ..errors import IndexProvisioningError
from .connection import Database
from .schema import SchemaProber, to_snake_case

logger = logging.getLogger(__name__)

_INDEX_NAME_RE = re.compile(r"^idx_[a-z0-9_]+$")


class SortOrder(str, enum.Enum):
    ASC = "ASC"
    DESC = "DESC"


@dataclass(frozen=True)
class IndexColumn:
    name: str
    order: SortOrder = SortOrder.ASC

    def render(self) -> str:
        if self.order is SortOrder.DESC:
            return f"{self.name} DESC"
        return self.name


# ────────────────────────────────────────────────────────────
# Partial index predicates
# ────────────────────────────────────────────────────────────


def _literal(value: Union[bool, int, str]) -> str:
    # DDL cannot take bound parameters, so literals are rendered inline
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        escaped = value.replace("'", "''")
        return f"'{escaped}'"
    raise TypeError(f"Unsupported predicate literal: {value!r}")


@dataclass(frozen=True)
class Eq:
    column: str
    value: Union[bool, int, str]

    def render(self) -> str:
        return f"{safe_sql.validate_identifier(self.column)} = {_literal(self.value)}"


@dataclass(frozen=True)
class IsNull:
    column: str

    def render(self) -> str:
        return f"{safe_sql.validate_identifier(self.column)} IS NULL"


@dataclass(frozen=True)
class IsNotNull:
    column: str

    def render(self) -> str:
        return f"{safe_sql.validate_identifier(self.column)} IS NOT NULL"


@dataclass(frozen=True)
class And:
    terms: tuple["Predicate", ...]

    def __post_init__(self) -> None:
        if len(self.terms) < 2:
            raise ValueError("And needs at least two terms")

    def render(self) -> str:
        return " AND ".join(
            f"({term.render()})" if isinstance(term, And) else term.render()
            for term in self.terms
        )


Predicate = Union[Eq, IsNull, IsNotNull, And]


# ────────────────────────────────────────────────────────────
# Index declarations
# ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class IndexSpec:
    """
    One declared index.

    The name is derived as idx_<stem>_<suffix>, where the stem defaults to the
    snake_case table name.
    """

    table: str
    columns: tuple[IndexColumn, ...]
    suffix: str
    where: Predicate | None = None
    stem: str | None = None

    def __post_init__(self) -> None:
        if not self.columns:
            raise ValueError(f"IndexSpec for {self.table} declares no columns")
        if not _INDEX_NAME_RE.match(self.name):
            raise ValueError(f"Index name {self.name!r} does not match idx_<table>_<purpose>")

    @property
    def name(self) -> str:
        return f"idx_{self.stem or to_snake_case(self.table)}_{self.suffix}"

    @property
    def is_partial(self) -> bool:
        return self.where is not None

    def to_sql(self) -> str:
        return safe_sql.create_index(
            self.name,
            self.table,
            [column.render() for column in self.columns],
            self.where.render() if self.where is not None else None,
        )


def _cols(*names: str) -> tuple[IndexColumn, ...]:
    return tuple(IndexColumn(name) for name in names)


ACTIVE = Eq("isActive", 1)

DECLARED_INDEXES: tuple[IndexSpec, ...] = (
    # Carnivals: upcoming/active listings, state filter, "my carnivals", newest first
    IndexSpec("carnivals", _cols("date", "isActive"), "date_active", where=ACTIVE),
    IndexSpec("carnivals", _cols("state", "date"), "state_date"),
    IndexSpec("carnivals", _cols("createdByUserId", "isActive"), "user_active", where=ACTIVE),
    IndexSpec("carnivals", (IndexColumn("createdAt", SortOrder.DESC),), "created"),
    # Users: club delegates and pending invitations
    IndexSpec("users", _cols("clubId", "isActive"), "club_active", where=ACTIVE),
    IndexSpec("users", _cols("isPrimaryDelegate", "isActive"), "primary_active", where=ACTIVE),
    IndexSpec(
        "users", _cols("invitationToken"), "invitation", where=IsNotNull("invitationToken")
    ),
    # Clubs
    IndexSpec("clubs", _cols("state", "isActive"), "state_active", where=ACTIVE),
    IndexSpec("clubs", _cols("clubName"), "name"),
    # Email subscriptions
    IndexSpec(
        "email_subscriptions",
        _cols("states", "isActive"),
        "state_active",
        where=ACTIVE,
        stem="subscriptions",
    ),
    # Sponsors and players
    IndexSpec("sponsors", _cols("sponsorName"), "name"),
    IndexSpec("club_players", _cols("lastName", "firstName"), "name"),
)


@dataclass
class IndexReport:
    """Report of index creation results."""

    created: list[str] = field(default_factory=list)
    already_existed: list[str] = field(default_factory=list)
    total_checked: int = 0

    def add_success(self, index_name: str, was_new: bool = True) -> None:
        """Record successful index creation or existing."""
        if was_new:
            self.created.append(index_name)
        else:
            self.already_existed.append(index_name)

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization."""
        return {
            "created": len(self.created),
            "already_existed": len(self.already_existed),
            "total_checked": self.total_checked,
            "created_names": self.created,
        }


def ensure_indexes(
    db: Database,
    prober: SchemaProber | None = None,
    specs: tuple[IndexSpec, ...] = DECLARED_INDEXES,
) -> IndexReport:
    """
    Create all declared indexes idempotently.

    Every spec is issued exactly once per call, even if it already exists.

    Args:
        db: Connection handle
        prober: Schema prober; one is built over *db* when omitted
        specs: Declarations to apply

    Returns:
        IndexReport with creation status for each index

    Raises:
        IndexProvisioningError: At the first failing statement. Indexes created
            before it are kept.

    Usage:
        report = ensure_indexes(db)
        logger.info(f"Created {len(report.created)} indexes")
    """
    prober = prober or SchemaProber(db)
    report = IndexReport()

    for spec in specs:
        report.total_checked += 1
        try:
            existed = prober.index_exists(spec.name)
            db.execute(spec.to_sql())
        except sqlite3.Error as e:
            logger.error(f"Failed to create index {spec.name} on {spec.table}: {e}")
            raise IndexProvisioningError(spec.name, e) from e

        report.add_success(spec.name, was_new=not existed)
        if existed:
            logger.debug(f"Index {spec.name} already exists")
        else:
            logger.info(f"Created index {spec.name} on {spec.table}")

    logger.info(
        "Database indexes ensured",
        extra={
            "event": "indexes_ensured",
            "created_count": len(report.created),
            "existing_count": len(report.already_existed),
        },
    )
    return report


def missing_indexes(
    db: Database,
    prober: SchemaProber | None = None,
    specs: tuple[IndexSpec, ...] = DECLARED_INDEXES,
) -> list[IndexSpec]:
    """Declared indexes that are not present yet."""
    prober = prober or SchemaProber(db)
    existing = set(prober.list_indexes())
    return [spec for spec in specs if spec.name not in existing]
