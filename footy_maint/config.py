"""
Centralized configuration for the maintenance service.

All tuning knobs are read from the environment once, at boot, and frozen into
a MaintenanceConfig that is passed explicitly to every component.
Override via the environment variables listed next to each field.
"""

import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path

from croniter import croniter
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from . import paths
from .errors import ConfigError

logger = logging.getLogger(__name__)

_STRICT_INT_RE = re.compile(r"^\d+$")

DEFAULT_CRON = "0 2 * * *"
"""Nightly at 02:00 local time."""

BACKUP_PREFIX = "rugby-masters-backup"
"""Fixed file name prefix for database snapshots."""

SLOW_QUERY_THRESHOLD_MS = 100
"""Queries slower than this produce a SlowQueryEvent."""


class PoolConfig(BaseModel):
    """Connection tuning knobs."""

    model_config = ConfigDict(frozen=True)

    max: int = Field(default=5, ge=0, description="SQLITE_MAX_POOL_SIZE")
    min: int = Field(default=1, ge=0, description="SQLITE_MIN_POOL_SIZE")
    acquire_ms: int = Field(default=30000, ge=0, description="SQLITE_ACQUIRE_TIMEOUT")
    idle_ms: int = Field(default=10000, ge=0, description="SQLITE_IDLE_TIMEOUT")

    @model_validator(mode="after")
    def _check_bounds(self) -> "PoolConfig":
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) exceeds max ({self.max})")
        return self


class MaintenanceConfig(BaseModel):
    """Immutable, typed configuration built once by load_config()."""

    model_config = ConfigDict(frozen=True)

    environment: str = Field(default="development", description="NODE_ENV")
    sql_logging: bool = Field(default=True, description="Verbose SQL logging (off in production)")
    log_level: str = Field(default="INFO", description="LOG_LEVEL")

    cron: str = Field(default=DEFAULT_CRON, description="MAINTENANCE_CRON")
    pool: PoolConfig = Field(default_factory=PoolConfig)
    query_timeout_ms: int = Field(default=30000, ge=0, description="SQLITE_QUERY_TIMEOUT")
    slow_threshold_ms: int = Field(default=SLOW_QUERY_THRESHOLD_MS, ge=0)

    db_path: Path = Field(description="Embedded database file")
    uploads_root: Path = Field(description="UPLOADS_ROOT")
    backups_enabled: bool = Field(default=False, description="BACKUP_ENABLED")
    backup_dir: Path = Field(description="<uploads_root>/backups")
    backup_prefix: str = Field(default=BACKUP_PREFIX)
    retention_days: int = Field(default=30, ge=0, description="BACKUP_RETENTION_DAYS")
    archive_age_years: int = Field(default=2, ge=0, description="ARCHIVE_AGE_YEARS")

    @field_validator("cron")
    @classmethod
    def _check_cron(cls, value: str) -> str:
        if not croniter.is_valid(value):
            raise ValueError(f"not a valid cron expression: {value!r}")
        return value

    @field_validator("db_path", "uploads_root", "backup_dir")
    @classmethod
    def _check_absolute(cls, value: Path) -> Path:
        if not value.is_absolute():
            raise ValueError(f"path must be absolute: {value}")
        return value

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def summary(self) -> dict:
        """Loggable view of the effective configuration."""
        return self.model_dump(mode="json")


def parse_strict_int(raw: str | None, default: int, name: str = "") -> int:
    """Parse a non-negative integer; absent or malformed values yield *default*."""
    if raw is None:
        return default
    text = raw.strip()
    if not _STRICT_INT_RE.match(text):
        logger.warning(
            f"Ignoring invalid integer for {name or 'setting'}: {raw!r}; using {default}"
        )
        return default
    return int(text)


def load_config(environ: Mapping[str, str] | None = None) -> MaintenanceConfig:
    """
    Build the MaintenanceConfig from an environment mapping.

    Args:
        environ: String-keyed source; defaults to os.environ

    Raises:
        ConfigError: If the assembled configuration fails validation
    """
    env = dict(os.environ if environ is None else environ)

    node_env = env.get("NODE_ENV") or "development"
    sql_logging = node_env != "production"

    cron = (env.get("MAINTENANCE_CRON") or DEFAULT_CRON).strip()
    if not croniter.is_valid(cron):
        logger.warning(f"Ignoring invalid MAINTENANCE_CRON {cron!r}; using {DEFAULT_CRON!r}")
        cron = DEFAULT_CRON

    uploads_root = paths.uploads_root(env)

    try:
        pool = PoolConfig(
            max=parse_strict_int(env.get("SQLITE_MAX_POOL_SIZE"), 5, "SQLITE_MAX_POOL_SIZE"),
            min=parse_strict_int(env.get("SQLITE_MIN_POOL_SIZE"), 1, "SQLITE_MIN_POOL_SIZE"),
            acquire_ms=parse_strict_int(
                env.get("SQLITE_ACQUIRE_TIMEOUT"), 30000, "SQLITE_ACQUIRE_TIMEOUT"
            ),
            idle_ms=parse_strict_int(env.get("SQLITE_IDLE_TIMEOUT"), 10000, "SQLITE_IDLE_TIMEOUT"),
        )
        return MaintenanceConfig(
            environment=node_env,
            sql_logging=sql_logging,
            log_level=(env.get("LOG_LEVEL") or ("DEBUG" if sql_logging else "INFO")).upper(),
            cron=cron,
            pool=pool,
            query_timeout_ms=parse_strict_int(
                env.get("SQLITE_QUERY_TIMEOUT"), 30000, "SQLITE_QUERY_TIMEOUT"
            ),
            db_path=paths.db_path(node_env, env),
            uploads_root=uploads_root,
            backups_enabled=env.get("BACKUP_ENABLED") == "true",
            backup_dir=(uploads_root / "backups").resolve(),
            retention_days=parse_strict_int(
                env.get("BACKUP_RETENTION_DAYS"), 30, "BACKUP_RETENTION_DAYS"
            ),
            archive_age_years=parse_strict_int(
                env.get("ARCHIVE_AGE_YEARS"), 2, "ARCHIVE_AGE_YEARS"
            ),
        )
    except ValidationError as e:
        first = e.errors()[0]
        default_field = "pool" if e.title == "PoolConfig" else "config"
        field = ".".join(str(part) for part in first.get("loc", ())) or default_field
        raise ConfigError(field, first.get("msg", str(e)), cause=e) from e
