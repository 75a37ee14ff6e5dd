"""
Data janitor. Prunes stale business rows before compaction.

The janitor holds no business rules. It runs named cleanup capabilities
(zero-argument callables returning a row count), by default the model
operations in footy_maint.models bound to one handle and one timestamp.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass
from datetime import datetime

from .db_opt.connection import Database
from .errors import JanitorError
from .models import CarnivalModel, SessionModel, UserModel, utc_now

logger = logging.getLogger(__name__)

OP_EXPIRED_INVITATIONS = "cleanup_expired_invitations"
OP_ARCHIVE_CARNIVALS = "archive_old_carnivals"
OP_EXPIRED_SESSIONS = "cleanup_expired_sessions"

_REPORT_FIELDS = {
    OP_EXPIRED_INVITATIONS: "expired_invitations",
    OP_ARCHIVE_CARNIVALS: "archived_carnivals",
    OP_EXPIRED_SESSIONS: "expired_sessions",
}


@dataclass
class JanitorReport:
    expired_invitations: int = 0
    archived_carnivals: int = 0
    expired_sessions: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


Capability = Callable[[], int]


def default_capabilities(
    db: Database, now: datetime | None = None, archive_age_years: int = 2
) -> dict[str, Capability]:
    """Bind the portal model operations to *db* and a single cutoff instant."""
    now = now or utc_now()
    return {
        OP_EXPIRED_INVITATIONS: lambda: UserModel.cleanup_expired_invitations(db, now),
        OP_ARCHIVE_CARNIVALS: lambda: CarnivalModel.archive_old_carnivals(
            db, now, archive_age_years
        ),
        OP_EXPIRED_SESSIONS: lambda: SessionModel.cleanup_expired(db, now),
    }


class DataJanitor:
    """
    Runs each capability once, in declaration order.

    Usage:
        janitor = DataJanitor(default_capabilities(db, fired_at, years))
        report = janitor.run()
    """

    def __init__(self, capabilities: Mapping[str, Capability]):
        unknown = set(capabilities) - set(_REPORT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown janitor operations: {sorted(unknown)}")
        self.capabilities = dict(capabilities)

    def run(self) -> JanitorReport:
        """
        Raises:
            JanitorError: On the first failing operation. Nothing is retried.
        """
        report = JanitorReport()
        for op, capability in self.capabilities.items():
            try:
                count = int(capability())
            except Exception as e:
                logger.error(f"Janitor operation {op} failed: {e}")
                raise JanitorError(op, e) from e
            setattr(report, _REPORT_FIELDS[op], count)
            logger.info(f"{op}: {count} rows", extra={"event": "janitor_op", "op": op, "count": count})
        return report
