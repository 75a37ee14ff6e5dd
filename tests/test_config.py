"""
Tests for environment-driven configuration.

Covers:
- Defaults when the environment is empty
- Strict integer parsing and fallback
- BACKUP_ENABLED literal handling
- Environment-specific database file names and path overrides
- Cron validation fallback
- ConfigError wrapping of validation failures
"""

import logging

import pytest

from footy_maint import paths
from footy_maint.config import (
    BACKUP_PREFIX,
    DEFAULT_CRON,
    MaintenanceConfig,
    PoolConfig,
    load_config,
    parse_strict_int,
)
from footy_maint.errors import ConfigError, ErrorKind

# =============================================================================
# DEFAULTS
# =============================================================================


class TestDefaults:
    """load_config with an empty environment."""

    def test_numeric_defaults(self, tmp_path):
        config = load_config({"FOOTY_HOME": str(tmp_path)})
        assert config.pool == PoolConfig(max=5, min=1, acquire_ms=30000, idle_ms=10000)
        assert config.query_timeout_ms == 30000
        assert config.retention_days == 30
        assert config.archive_age_years == 2
        assert config.slow_threshold_ms == 100

    def test_flag_defaults(self, tmp_path):
        config = load_config({"FOOTY_HOME": str(tmp_path)})
        assert config.backups_enabled is False
        assert config.cron == DEFAULT_CRON
        assert config.backup_prefix == BACKUP_PREFIX
        assert config.environment == "development"
        assert config.sql_logging is True

    def test_backup_dir_under_uploads_root(self, tmp_path):
        config = load_config({"FOOTY_HOME": str(tmp_path)})
        assert config.uploads_root == (tmp_path / "public" / "uploads").resolve()
        assert config.backup_dir == config.uploads_root / "backups"
        assert config.backup_dir.is_absolute()

    def test_config_is_frozen(self, tmp_path):
        config = load_config({"FOOTY_HOME": str(tmp_path)})
        with pytest.raises(Exception):
            config.retention_days = 5


# =============================================================================
# STRICT INTEGER PARSING
# =============================================================================


class TestStrictInt:
    """parse_strict_int and its use for the numeric settings."""

    @pytest.mark.parametrize("raw", ["abc", "12abc", "1.5", "", "-3", "0x10"])
    def test_malformed_values_fall_back(self, raw):
        assert parse_strict_int(raw, 42, "X") == 42

    def test_absent_value_uses_default(self):
        assert parse_strict_int(None, 7) == 7

    def test_whitespace_is_stripped(self):
        assert parse_strict_int(" 15 ", 1) == 15

    def test_malformed_value_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="footy_maint.config"):
            parse_strict_int("soon", 30, "BACKUP_RETENTION_DAYS")
        assert "BACKUP_RETENTION_DAYS" in caplog.text

    def test_env_values_are_parsed(self, tmp_path):
        config = load_config(
            {
                "FOOTY_HOME": str(tmp_path),
                "SQLITE_MAX_POOL_SIZE": "10",
                "SQLITE_MIN_POOL_SIZE": "2",
                "SQLITE_ACQUIRE_TIMEOUT": "5000",
                "SQLITE_IDLE_TIMEOUT": "2000",
                "SQLITE_QUERY_TIMEOUT": "1500",
                "BACKUP_RETENTION_DAYS": "7",
                "ARCHIVE_AGE_YEARS": "3",
            }
        )
        assert config.pool == PoolConfig(max=10, min=2, acquire_ms=5000, idle_ms=2000)
        assert config.query_timeout_ms == 1500
        assert config.retention_days == 7
        assert config.archive_age_years == 3

    def test_garbage_env_values_use_defaults(self, tmp_path):
        config = load_config(
            {
                "FOOTY_HOME": str(tmp_path),
                "SQLITE_MAX_POOL_SIZE": "lots",
                "BACKUP_RETENTION_DAYS": "thirty",
            }
        )
        assert config.pool.max == 5
        assert config.retention_days == 30


# =============================================================================
# FLAGS AND ENVIRONMENT
# =============================================================================


class TestEnvironment:
    """NODE_ENV, BACKUP_ENABLED and path resolution."""

    @pytest.mark.parametrize("raw", ["false", "TRUE", "1", "yes", ""])
    def test_only_literal_true_enables_backups(self, tmp_path, raw):
        config = load_config({"FOOTY_HOME": str(tmp_path), "BACKUP_ENABLED": raw})
        assert config.backups_enabled is False

    def test_literal_true_enables_backups(self, tmp_path):
        config = load_config({"FOOTY_HOME": str(tmp_path), "BACKUP_ENABLED": "true"})
        assert config.backups_enabled is True

    def test_production_disables_sql_logging(self, tmp_path):
        config = load_config({"FOOTY_HOME": str(tmp_path), "NODE_ENV": "production"})
        assert config.is_production
        assert config.sql_logging is False
        assert config.log_level == "INFO"
        assert config.db_path == tmp_path.resolve() / "data" / "old-man-footy.db"

    @pytest.mark.parametrize(
        "node_env,filename",
        [
            ("test", "test-old-man-footy.db"),
            ("development", "dev-old-man-footy.db"),
            ("staging", "dev-old-man-footy.db"),
        ],
    )
    def test_db_filename_by_environment(self, node_env, filename):
        assert paths.db_filename(node_env) == filename

    def test_footy_db_override(self, tmp_path):
        target = tmp_path / "elsewhere" / "portal.db"
        config = load_config({"FOOTY_HOME": str(tmp_path), "FOOTY_DB": str(target)})
        assert config.db_path == target.resolve()

    def test_relative_uploads_root_is_anchored_at_home(self, tmp_path):
        config = load_config({"FOOTY_HOME": str(tmp_path), "UPLOADS_ROOT": "files"})
        assert config.backup_dir == (tmp_path / "files" / "backups").resolve()

    def test_invalid_cron_falls_back(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="footy_maint.config"):
            config = load_config({"FOOTY_HOME": str(tmp_path), "MAINTENANCE_CRON": "every day"})
        assert config.cron == DEFAULT_CRON
        assert "MAINTENANCE_CRON" in caplog.text

    def test_custom_cron(self, tmp_path):
        config = load_config({"FOOTY_HOME": str(tmp_path), "MAINTENANCE_CRON": "*/15 * * * *"})
        assert config.cron == "*/15 * * * *"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class TestConfigErrors:
    """Validation failures surface as ConfigError."""

    def test_pool_min_above_max(self, tmp_path):
        with pytest.raises(ConfigError) as exc_info:
            load_config(
                {
                    "FOOTY_HOME": str(tmp_path),
                    "SQLITE_MAX_POOL_SIZE": "1",
                    "SQLITE_MIN_POOL_SIZE": "4",
                }
            )
        err = exc_info.value
        assert err.kind is ErrorKind.CONFIG
        assert err.field == "pool"
        assert err.to_log_record()["error_kind"] == "config"

    def test_relative_paths_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            MaintenanceConfig(
                db_path="relative.db",
                uploads_root=tmp_path,
                backup_dir=tmp_path / "backups",
            )

    def test_summary_is_json_friendly(self, tmp_path):
        summary = load_config({"FOOTY_HOME": str(tmp_path)}).summary()
        assert summary["pool"]["max"] == 5
        assert isinstance(summary["db_path"], str)
