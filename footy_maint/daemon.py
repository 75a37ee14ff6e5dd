"""
Maintenance daemon — fires the coordinator on a cron schedule.

Features:
- croniter-driven fire times, evaluated in local time
- Serial ticks; fire times missed while a tick runs are skipped, not queued
- Graceful shutdown on SIGTERM/SIGINT: the running tick stops at the next
  phase boundary and releases the database
"""

import logging
import signal
import threading
from collections.abc import Callable
from datetime import datetime

from croniter import croniter

from .config import MaintenanceConfig
from .db_opt.connection import Database
from .db_opt.indexes import ensure_indexes
from .errors import MaintenanceError
from .maintenance import MaintenanceCoordinator, TickReport
from .observability.logging import configure_logging
from .observability.monitor import install_monitoring

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    return datetime.now().astimezone()


class MaintenanceDaemon:
    """
    Long-running scheduler for maintenance ticks.

    Usage:
        daemon = boot(load_config())
        daemon.run()  # returns after SIGTERM/SIGINT
    """

    def __init__(
        self,
        config: MaintenanceConfig,
        db: Database | None = None,
        coordinator: MaintenanceCoordinator | None = None,
        clock: Callable[[], datetime] = local_now,
    ):
        self.config = config
        self.db = db or Database.from_config(config)
        self.coordinator = coordinator or MaintenanceCoordinator(
            self.db, config, should_stop=self.stop_requested
        )
        self.clock = clock
        self.running = False
        self.ticks_run = 0
        self.fires_skipped = 0
        self.last_report: TickReport | None = None
        self._shutdown_event = threading.Event()
        self._tick_lock = threading.Lock()

    def next_fire(self, after: datetime) -> datetime:
        return croniter(self.config.cron, after).get_next(datetime)

    def stop_requested(self) -> bool:
        return self._shutdown_event.is_set()

    def request_stop(self) -> None:
        self.running = False
        self._shutdown_event.set()

    def run_tick_now(self) -> TickReport | None:
        """
        Run one tick immediately.

        Returns None without running anything if a tick is already in progress.
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.warning(
                "Maintenance tick already running; request skipped",
                extra={"event": "tick_skipped"},
            )
            return None
        try:
            report = self.coordinator.run_tick()
            self.ticks_run += 1
            self.last_report = report
            return report
        finally:
            self._tick_lock.release()

    def _skip_missed(self, fired: datetime, completed: datetime) -> datetime:
        upcoming = self.next_fire(fired)
        skipped = 0
        while upcoming <= completed:
            skipped += 1
            upcoming = self.next_fire(upcoming)
        if skipped:
            self.fires_skipped += skipped
            logger.warning(
                f"Tick overran {skipped} scheduled fire time(s); skipping them",
                extra={"event": "fires_skipped", "skipped": skipped},
            )
        return upcoming

    def run(self, install_signals: bool = True) -> None:
        """Main daemon loop."""
        self.running = True
        logger.info("=" * 50)
        logger.info(f"Maintenance daemon starting (cron: {self.config.cron})")
        logger.info("=" * 50)

        if install_signals:
            signal.signal(signal.SIGTERM, self._handle_signal)
            signal.signal(signal.SIGINT, self._handle_signal)

        try:
            fire_at = self.next_fire(self.clock())
            logger.info(f"Next maintenance tick at {fire_at.isoformat()}")
            while self.running and not self._shutdown_event.is_set():
                delay = (fire_at - self.clock()).total_seconds()
                if delay > 0:
                    self._shutdown_event.wait(timeout=delay)
                    continue

                self.run_tick_now()
                fire_at = self._skip_missed(fire_at, self.clock())
                if not self._shutdown_event.is_set():
                    logger.info(f"Next maintenance tick at {fire_at.isoformat()}")
        finally:
            self._cleanup()

    def _handle_signal(self, signum, frame):
        """Handle shutdown signals."""
        sig_name = signal.Signals(signum).name
        logger.info(f"Received {sig_name}, shutting down...")
        self.request_stop()

    def _cleanup(self):
        """Cleanup on shutdown."""
        self.running = False
        self.db.close()
        logger.info(
            "Maintenance daemon stopped",
            extra={
                "event": "daemon_stopped",
                "ticks_run": self.ticks_run,
                "fires_skipped": self.fires_skipped,
            },
        )


def boot(config: MaintenanceConfig, json_logs: bool | None = None) -> MaintenanceDaemon:
    """
    Prepare the service: logging, database handle, monitoring, indexes.

    Monitoring and index failures are logged and the service carries on;
    the next boot retries index provisioning.
    """
    configure_logging(config.log_level, json_format=json_logs)
    db = Database.from_config(config)

    try:
        install_monitoring(
            db,
            threshold_ms=config.slow_threshold_ms,
            environment=config.environment,
        )
    except MaintenanceError as e:
        logger.error(
            "Continuing without slow-query monitoring",
            extra={"event": "monitoring_unavailable", **e.to_log_record()},
        )

    try:
        ensure_indexes(db)
    except MaintenanceError as e:
        logger.error(
            "Continuing without the full index set",
            extra={"event": "indexes_incomplete", **e.to_log_record()},
        )
    finally:
        db.close()

    logger.info(
        "Maintenance service configured",
        extra={"event": "config_loaded", "config": config.summary()},
    )
    return MaintenanceDaemon(config, db=db)
