"""
Tests for the maintenance daemon and service boot.

Covers:
- Cron fire times and skipped fires after an overrun
- Serial ticks (a second request while one runs is skipped)
- Main loop start/stop without signals
- boot(): indexes provisioned, failures logged and tolerated
- Entry point exit codes
"""

import logging
import signal
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from footy_maint import __main__ as entry
from footy_maint.daemon import MaintenanceDaemon, boot
from footy_maint.db_opt.indexes import DECLARED_INDEXES
from footy_maint.errors import IndexProvisioningError, MonitorSetupError
from tests.fixtures import index_names

AEST = timezone(timedelta(hours=10))


def _daemon(config, clock=None, coordinator=None):
    return MaintenanceDaemon(
        config,
        db=MagicMock(),
        coordinator=coordinator or MagicMock(),
        clock=clock or (lambda: datetime(2025, 6, 15, 1, 0, tzinfo=AEST)),
    )


def _sequence_clock(*values):
    """Return each value in turn, then keep returning the last one."""
    remaining = list(values)

    def clock():
        if len(remaining) > 1:
            return remaining.pop(0)
        return remaining[0]

    return clock


# =============================================================================
# SCHEDULING
# =============================================================================


class TestSchedule:
    def test_next_fire_is_nightly_two_am(self, config):
        daemon = _daemon(config)
        after = datetime(2025, 6, 15, 1, 0, tzinfo=AEST)
        assert daemon.next_fire(after) == datetime(2025, 6, 15, 2, 0, tzinfo=AEST)

    def test_next_fire_rolls_to_next_day(self, config):
        daemon = _daemon(config)
        after = datetime(2025, 6, 15, 2, 0, tzinfo=AEST)
        assert daemon.next_fire(after) == datetime(2025, 6, 16, 2, 0, tzinfo=AEST)

    def test_overrun_skips_missed_fires(self, config, caplog):
        daemon = _daemon(config)
        fired = datetime(2025, 6, 15, 2, 0, tzinfo=AEST)
        completed = datetime(2025, 6, 17, 3, 0, tzinfo=AEST)

        with caplog.at_level(logging.WARNING):
            upcoming = daemon._skip_missed(fired, completed)

        assert upcoming == datetime(2025, 6, 18, 2, 0, tzinfo=AEST)
        assert daemon.fires_skipped == 2
        assert any(getattr(r, "event", None) == "fires_skipped" for r in caplog.records)

    def test_no_skip_when_tick_is_short(self, config):
        daemon = _daemon(config)
        fired = datetime(2025, 6, 15, 2, 0, tzinfo=AEST)
        upcoming = daemon._skip_missed(fired, fired + timedelta(minutes=3))
        assert upcoming == datetime(2025, 6, 16, 2, 0, tzinfo=AEST)
        assert daemon.fires_skipped == 0


# =============================================================================
# TICKS
# =============================================================================


class TestRunTickNow:
    def test_runs_coordinator(self, config):
        coordinator = MagicMock()
        daemon = _daemon(config, coordinator=coordinator)
        report = daemon.run_tick_now()
        assert report is coordinator.run_tick.return_value
        assert daemon.ticks_run == 1
        assert daemon.last_report is report

    def test_skipped_while_tick_in_progress(self, config):
        coordinator = MagicMock()
        daemon = _daemon(config, coordinator=coordinator)
        daemon._tick_lock.acquire()
        try:
            assert daemon.run_tick_now() is None
        finally:
            daemon._tick_lock.release()
        coordinator.run_tick.assert_not_called()

    def test_lock_released_after_error(self, config):
        coordinator = MagicMock()
        coordinator.run_tick.side_effect = RuntimeError("boom")
        daemon = _daemon(config, coordinator=coordinator)
        with pytest.raises(RuntimeError):
            daemon.run_tick_now()
        assert daemon._tick_lock.acquire(blocking=False)
        daemon._tick_lock.release()


# =============================================================================
# MAIN LOOP
# =============================================================================


class TestRunLoop:
    def test_stop_while_waiting(self, config):
        daemon = _daemon(config)
        worker = threading.Thread(target=daemon.run, kwargs={"install_signals": False})
        worker.start()
        daemon.request_stop()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert daemon.running is False
        daemon.db.close.assert_called()
        daemon.coordinator.run_tick.assert_not_called()

    def test_due_fire_runs_one_tick(self, config):
        clock = _sequence_clock(
            datetime(2025, 6, 15, 1, 59, 59, tzinfo=AEST),
            datetime(2025, 6, 15, 2, 0, 0, tzinfo=AEST),
            datetime(2025, 6, 15, 2, 0, 5, tzinfo=AEST),
        )
        coordinator = MagicMock()
        daemon = _daemon(config, clock=clock, coordinator=coordinator)
        coordinator.run_tick.side_effect = lambda: daemon.request_stop()

        daemon.run(install_signals=False)

        assert coordinator.run_tick.call_count == 1
        assert daemon.ticks_run == 1
        daemon.db.close.assert_called()

    def test_signal_requests_stop(self, config):
        daemon = _daemon(config)
        daemon.running = True
        daemon._handle_signal(signal.SIGTERM, None)
        assert daemon.stop_requested()
        assert daemon.running is False

    def test_coordinator_checks_daemon_stop(self, config):
        daemon = MaintenanceDaemon(config, db=MagicMock())
        assert daemon.coordinator.should_stop() is False
        daemon.request_stop()
        assert daemon.coordinator.should_stop() is True


# =============================================================================
# BOOT
# =============================================================================


class TestBoot:
    @pytest.fixture(autouse=True)
    def quiet_logging(self, monkeypatch):
        monkeypatch.setattr("footy_maint.daemon.configure_logging", lambda *a, **k: None)

    def test_provisions_indexes_and_releases_handle(self, config, portal_db):
        daemon = boot(config)
        assert {spec.name for spec in DECLARED_INDEXES} <= set(index_names(portal_db))
        assert not daemon.db.connected
        assert daemon.config is config

    def test_index_failure_is_logged_and_tolerated(self, config, portal_db, monkeypatch, caplog):
        def fail(db):
            raise IndexProvisioningError("idx_clubs_state_active", RuntimeError("no such table"))

        monkeypatch.setattr("footy_maint.daemon.ensure_indexes", fail)
        with caplog.at_level(logging.ERROR):
            daemon = boot(config)

        assert isinstance(daemon, MaintenanceDaemon)
        records = [r for r in caplog.records if getattr(r, "event", None) == "indexes_incomplete"]
        assert len(records) == 1
        assert records[0].index_name == "idx_clubs_state_active"

    def test_monitor_failure_is_tolerated(self, config, portal_db, monkeypatch, caplog):
        def fail(db, **kwargs):
            raise MonitorSetupError("registry full")

        monkeypatch.setattr("footy_maint.daemon.install_monitoring", fail)
        with caplog.at_level(logging.ERROR):
            boot(config)

        assert any(
            getattr(r, "event", None) == "monitoring_unavailable" for r in caplog.records
        )

    def test_config_logged(self, config, portal_db, caplog):
        with caplog.at_level(logging.INFO):
            boot(config)
        records = [r for r in caplog.records if getattr(r, "event", None) == "config_loaded"]
        assert records[0].config["environment"] == "test"


# =============================================================================
# ENTRY POINT
# =============================================================================


class TestMain:
    def test_clean_shutdown_exits_zero(self, portal_env, monkeypatch):
        daemon = MagicMock()
        monkeypatch.setattr(entry, "boot", lambda config: daemon)
        assert entry.main(portal_env) == 0
        daemon.run.assert_called_once()

    def test_invalid_config_exits_one(self, portal_env, monkeypatch):
        boot_mock = MagicMock()
        monkeypatch.setattr(entry, "boot", boot_mock)
        env = dict(portal_env, SQLITE_MAX_POOL_SIZE="1", SQLITE_MIN_POOL_SIZE="4")
        assert entry.main(env) == 1
        boot_mock.assert_not_called()

    def test_unhandled_error_exits_one(self, portal_env, monkeypatch, caplog):
        def explode(config):
            raise RuntimeError("disk full")

        monkeypatch.setattr(entry, "boot", explode)
        with caplog.at_level(logging.ERROR):
            assert entry.main(portal_env) == 1
        assert "terminated unexpectedly" in caplog.text
