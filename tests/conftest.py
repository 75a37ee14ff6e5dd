"""
Test configuration — ensures repo root is in sys.path + isolation guards.

This allows tests to import footy_maint and tests.fixtures from a checkout.
Every test runs with FOOTY_HOME pointed at its own tmp_path so no portal
database or uploads directory inside the repo is ever touched.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import footy_maint.*, tests.fixtures.*
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from footy_maint.config import load_config  # noqa: E402
from footy_maint.db_opt.connection import Database  # noqa: E402
from tests.fixtures import create_fixture_db  # noqa: E402

_ISOLATED_ENV_KEYS = (
    "NODE_ENV",
    "FOOTY_HOME",
    "FOOTY_DB",
    "UPLOADS_ROOT",
    "LOG_LEVEL",
    "MAINTENANCE_CRON",
    "BACKUP_ENABLED",
    "BACKUP_RETENTION_DAYS",
    "ARCHIVE_AGE_YEARS",
    "SQLITE_MAX_POOL_SIZE",
    "SQLITE_MIN_POOL_SIZE",
    "SQLITE_ACQUIRE_TIMEOUT",
    "SQLITE_IDLE_TIMEOUT",
    "SQLITE_QUERY_TIMEOUT",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Clear portal env vars and point FOOTY_HOME at tmp_path."""
    for key in _ISOLATED_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("FOOTY_HOME", str(tmp_path))
    yield tmp_path


@pytest.fixture(autouse=True)
def keep_root_handlers():
    """Restore root logging handlers after tests that reconfigure logging."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def portal_env(tmp_path) -> dict[str, str]:
    """Environment mapping for a test portal under tmp_path."""
    return {
        "NODE_ENV": "test",
        "FOOTY_HOME": str(tmp_path),
    }


@pytest.fixture
def config(portal_env):
    """MaintenanceConfig for the test portal (backups off)."""
    return load_config(portal_env)


@pytest.fixture
def portal_db(config) -> Path:
    """Create the portal schema at config.db_path."""
    return create_fixture_db(config.db_path)


@pytest.fixture
def db(portal_db):
    """Database handle over the fixture portal DB."""
    handle = Database(portal_db, query_timeout_ms=0)
    yield handle
    handle.close()
