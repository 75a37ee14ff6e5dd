"""
Portal data-model operations used by the janitor.

Each operation is one atomic statement against the Connection Handle and
returns the number of rows it touched. Dates in portal tables are stored in
the mapper's SQLite text format (see to_db_timestamp), so string comparison
is chronological.
"""

import logging
from datetime import datetime, timezone

from . import safe_sql
from .db_opt.connection import Database
from .db_opt.schema import SchemaProber

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_db_timestamp(dt: datetime) -> str:
    """
    Render a datetime as stored by the portal: 'YYYY-MM-DD HH:MM:SS.sss +00:00'.

    Naive datetimes are taken to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S.") + f"{dt.microsecond // 1000:03d} +00:00"


def subtract_years(dt: datetime, years: int) -> datetime:
    """Calendar-year subtraction; Feb 29 lands on Feb 28 in non-leap years."""
    try:
        return dt.replace(year=dt.year - years)
    except ValueError:
        return dt.replace(year=dt.year - years, day=28)


class UserModel:
    TABLE = "users"

    @staticmethod
    def cleanup_expired_invitations(db: Database, now: datetime | None = None) -> int:
        """
        Clear invitation tokens whose expiry has passed.

        invitationExpires is cleared too where the column exists.
        """
        now = now or utc_now()
        columns = ["invitationToken", "tokenExpires"]
        if SchemaProber(db).column_exists(UserModel.TABLE, "invitationExpires"):
            columns.append("invitationExpires")

        sql = safe_sql.update(
            UserModel.TABLE,
            columns,
            "tokenExpires < ? AND invitationToken IS NOT NULL",
        )
        ack = db.execute(sql, [None] * len(columns) + [to_db_timestamp(now)])
        return ack.rowcount


class CarnivalModel:
    TABLE = "carnivals"

    @staticmethod
    def archive_old_carnivals(db: Database, now: datetime | None = None, years: int = 2) -> int:
        """Mark active carnivals dated before now - years as inactive."""
        now = now or utc_now()
        cutoff = subtract_years(now, years)
        sql = safe_sql.update(
            CarnivalModel.TABLE,
            ["isActive", "archivedAt"],
            "date < ? AND isActive = 1",
        )
        ack = db.execute(sql, [0, to_db_timestamp(now), to_db_timestamp(cutoff)])
        return ack.rowcount


class SessionModel:
    TABLE = "sessions"

    @staticmethod
    def cleanup_expired(db: Database, now: datetime | None = None) -> int:
        """Delete expired sessions. Returns 0 when the portal keeps no sessions table."""
        if not SchemaProber(db).table_exists(SessionModel.TABLE):
            logger.debug("No sessions table; skipping session cleanup")
            return 0
        now = now or utc_now()
        ack = db.execute(
            safe_sql.delete(SessionModel.TABLE, "expires < ?"),
            [to_db_timestamp(now)],
        )
        return ack.rowcount
