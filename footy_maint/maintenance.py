"""
Maintenance coordinator: one scheduled tick, start to finish.

Phase order within a tick is fixed:

    indexes -> janitor -> compact -> analyze -> optimize -> backup -> report

Declared indexes are re-provisioned first, so an ok tick always leaves the
full index set behind. The handle is closed on every exit path. Nothing is
retried; the next scheduled tick is the retry.
"""

import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .backup import BackupRotator, backup_status
from .config import MaintenanceConfig
from .db_opt import optimizer
from .db_opt.connection import Database
from .db_opt.indexes import ensure_indexes
from .errors import MaintenanceError
from .janitor import DataJanitor, JanitorReport, default_capabilities
from .models import utc_now
from .observability import metrics
from .observability.context import TickContext

logger = logging.getLogger(__name__)


class TickOutcome(str, enum.Enum):
    OK = "ok"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class PhaseResult:
    name: str
    ok: bool
    duration_ms: float
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass
class TickReport:
    """Everything one tick did, for logging and for tests."""

    fired_at: datetime
    tick_id: str = ""
    finished_at: datetime | None = None
    outcome: TickOutcome = TickOutcome.OK
    phases: list[PhaseResult] = field(default_factory=list)
    error: dict[str, Any] | None = None
    janitor: JanitorReport | None = None
    backup: Any = None
    stats: optimizer.StorageStats | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is TickOutcome.OK

    def phase(self, name: str) -> PhaseResult | None:
        for result in self.phases:
            if result.name == name:
                return result
        return None

    def to_dict(self) -> dict:
        return {
            "tick_id": self.tick_id,
            "fired_at": self.fired_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "outcome": self.outcome.value,
            "phases": [
                {"name": p.name, "ok": p.ok, "duration_ms": p.duration_ms} for p in self.phases
            ],
            "error": self.error,
        }


JanitorFactory = Callable[[datetime], DataJanitor]


class MaintenanceCoordinator:
    """
    Runs maintenance ticks against one Database.

    Usage:
        coordinator = MaintenanceCoordinator(db, config)
        report = coordinator.run_tick()
    """

    def __init__(
        self,
        db: Database,
        config: MaintenanceConfig,
        janitor_factory: JanitorFactory | None = None,
        rotator: BackupRotator | None = None,
        should_stop: Callable[[], bool] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.config = config
        self.janitor_factory = janitor_factory or self._default_janitor
        self.rotator = rotator or BackupRotator.from_config(config)
        self.should_stop = should_stop or (lambda: False)
        self.clock = clock
        self._last_fired_at: datetime | None = None

    def _default_janitor(self, now: datetime) -> DataJanitor:
        return DataJanitor(default_capabilities(self.db, now, self.config.archive_age_years))

    def _next_fired_at(self) -> datetime:
        fired_at = self.clock()
        if self._last_fired_at is not None and fired_at < self._last_fired_at:
            fired_at = self._last_fired_at
        self._last_fired_at = fired_at
        return fired_at

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _phase_indexes(self, report: TickReport) -> dict:
        return ensure_indexes(self.db).to_dict()

    def _phase_janitor(self, report: TickReport) -> dict:
        report.janitor = self.janitor_factory(report.fired_at).run()
        return report.janitor.to_dict()

    def _phase_compact(self, report: TickReport) -> dict:
        optimizer.compact(self.db)
        return {}

    def _phase_analyze(self, report: TickReport) -> dict:
        optimizer.analyze(self.db)
        return {}

    def _phase_optimize(self, report: TickReport) -> dict:
        optimizer.optimize_hint(self.db)
        return {}

    def _phase_backup(self, report: TickReport) -> dict:
        report.backup = self.rotator.run(self.db, now=report.fired_at)
        return report.backup.to_dict()

    def _phase_report(self, report: TickReport) -> dict:
        report.stats = optimizer.analyze_and_report(self.db)
        logger.info(
            "Database storage statistics",
            extra={"event": "storage_stats", **report.stats.to_dict()},
        )
        return {
            "table_row_counts": report.stats.table_row_counts,
            "database_size_kb": report.stats.database_size_kb,
        }

    def _phases(self) -> list[tuple[str, Callable[[TickReport], dict]]]:
        return [
            ("indexes", self._phase_indexes),
            ("janitor", self._phase_janitor),
            ("compact", self._phase_compact),
            ("analyze", self._phase_analyze),
            ("optimize", self._phase_optimize),
            ("backup", self._phase_backup),
            ("report", self._phase_report),
        ]

    def _run_phase(self, report: TickReport, name: str, phase: Callable[[TickReport], dict]) -> None:
        logger.info(f"Phase {name} starting", extra={"event": "phase_started", "phase": name})
        start = time.perf_counter()
        try:
            detail = phase(report)
        except MaintenanceError as e:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            report.phases.append(PhaseResult(name, False, duration_ms, e.to_log_record()))
            raise
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        report.phases.append(PhaseResult(name, True, duration_ms, detail))
        logger.info(
            f"Phase {name} completed",
            extra={"event": "phase_completed", "phase": name, "duration_ms": duration_ms},
        )

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def run_tick(self) -> TickReport:
        """
        Run one tick. Component errors are caught here, once.

        Returns:
            TickReport with outcome ok, partial (shutdown requested between
            phases) or failed (a MaintenanceError was raised)
        """
        report = TickReport(fired_at=self._next_fired_at())
        start = time.perf_counter()
        metrics.ticks_total.inc()

        with TickContext() as ctx:
            report.tick_id = ctx.tick_id
            logger.info(
                "Performing database maintenance...",
                extra={"event": "tick_started", "fired_at": report.fired_at.isoformat()},
            )
            try:
                for index, (name, phase) in enumerate(self._phases()):
                    if index > 0 and self.should_stop():
                        logger.info(
                            f"Shutdown requested; skipping phases from {name}",
                            extra={"event": "tick_interrupted", "next_phase": name},
                        )
                        report.outcome = TickOutcome.PARTIAL
                        break
                    self._run_phase(report, name, phase)
            except MaintenanceError as e:
                report.outcome = TickOutcome.FAILED
                report.error = e.to_log_record()
                logger.error(
                    f"Database maintenance failed: {e.message}",
                    extra={"event": "tick_failed", **report.error},
                )
            finally:
                self._release(report)
                report.finished_at = utc_now()
                duration = time.perf_counter() - start
                metrics.tick_duration.observe(duration)
                metrics.last_tick_ok.set(1.0 if report.ok else 0.0)
                if report.outcome is TickOutcome.FAILED:
                    metrics.tick_failures.inc()

            if report.ok and self.rotator.enabled:
                logger.info(backup_status(self.rotator.backup_dir, now=report.fired_at))
            logger.info(
                "Database maintenance completed",
                extra={
                    "event": "tick_finished",
                    "outcome": report.outcome.value,
                    "duration_ms": round(duration * 1000, 2),
                    "metrics": metrics.REGISTRY.to_dict(),
                },
            )
        return report

    def _release(self, report: TickReport) -> None:
        try:
            self.db.close()
        except MaintenanceError as e:
            logger.error(f"Failed to release database: {e.message}", extra=e.to_log_record())
            if report.outcome is not TickOutcome.FAILED:
                report.outcome = TickOutcome.FAILED
                report.error = e.to_log_record()
