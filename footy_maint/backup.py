"""Database snapshots and retention for the carnival portal."""

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .config import BACKUP_PREFIX, MaintenanceConfig
from .db_opt.connection import Database
from .errors import BackupError, BackupRetentionWarning
from .observability import metrics

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupArtifact:
    path: Path
    filename: str
    bytes: int
    mtime: datetime

    @classmethod
    def from_path(cls, path: Path) -> "BackupArtifact":
        stat = path.stat()
        return cls(
            path=path,
            filename=path.name,
            bytes=stat.st_size,
            mtime=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )


@dataclass
class BackupResult:
    enabled: bool
    artifact: BackupArtifact | None = None
    removed: list[str] = field(default_factory=list)
    warnings: list[BackupRetentionWarning] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "filename": self.artifact.filename if self.artifact else None,
            "bytes": self.artifact.bytes if self.artifact else 0,
            "removed": list(self.removed),
            "warnings": len(self.warnings),
        }


def backup_name(prefix: str, now: datetime) -> str:
    """
    <prefix>-YYYY-MM-DDTHH-MM-SS-sssZ.db

    The UTC ISO timestamp with millisecond precision, ':' and '.' replaced by '-'.
    """
    now = now.astimezone(timezone.utc)
    iso = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    return f"{prefix}-{iso.replace(':', '-').replace('.', '-')}.db"


def _unique_target(backup_dir: Path, name: str) -> Path:
    target = backup_dir / name
    stem = target.stem
    n = 1
    while target.exists():
        target = backup_dir / f"{stem}-{n}.db"
        n += 1
    return target


class BackupRotator:
    """
    Copies the live database file into backup_dir and applies retention.

    Usage:
        rotator = BackupRotator.from_config(config)
        result = rotator.run(db)
    """

    def __init__(
        self,
        backup_dir: Path,
        enabled: bool = False,
        retention_days: int = 30,
        prefix: str = BACKUP_PREFIX,
    ):
        self.backup_dir = Path(backup_dir)
        self.enabled = enabled
        self.retention_days = retention_days
        self.prefix = prefix

    @classmethod
    def from_config(cls, config: MaintenanceConfig) -> "BackupRotator":
        return cls(
            backup_dir=config.backup_dir,
            enabled=config.backups_enabled,
            retention_days=config.retention_days,
            prefix=config.backup_prefix,
        )

    def run(self, db: Database, now: datetime | None = None) -> BackupResult:
        """
        Snapshot the database, then delete snapshots older than the retention horizon.

        Args:
            db: Handle whose storage_path() is copied
            now: Reference instant for the file name and the retention horizon

        Raises:
            BackupError: If the copy fails or produces an empty file. Retention
                is skipped in that case.
        """
        if not self.enabled:
            log.info("Database backup is disabled")
            return BackupResult(enabled=False)

        now = now or datetime.now(timezone.utc)
        artifact = self.create_snapshot(db, now)
        result = BackupResult(enabled=True, artifact=artifact)
        self.apply_retention(now, keep=artifact.path, result=result)
        return result

    def create_snapshot(self, db: Database, now: datetime) -> BackupArtifact:
        source = db.storage_path()
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            target = _unique_target(self.backup_dir, backup_name(self.prefix, now))
            shutil.copy2(source, target)
            artifact = BackupArtifact.from_path(target)
        except OSError as e:
            log.error(f"Backup failed - filesystem error: {e}", exc_info=True)
            raise BackupError(f"Database backup failed: {e}", e) from e

        if artifact.bytes == 0:
            target.unlink(missing_ok=True)
            raise BackupError(f"Database backup failed: {source} copied as an empty file")

        metrics.backups_created.inc()
        log.info(
            f"Database backed up to: {artifact.path}",
            extra={"event": "backup_created", "bytes": artifact.bytes},
        )
        return artifact

    def apply_retention(self, now: datetime, keep: Path, result: BackupResult) -> None:
        """Delete *.db files with mtime before now - retention_days, except *keep*."""
        horizon = (now - timedelta(days=self.retention_days)).timestamp()
        for path in sorted(self.backup_dir.glob("*.db")):
            if path == keep:
                continue
            try:
                if path.stat().st_mtime < horizon:
                    path.unlink()
                    result.removed.append(path.name)
                    log.info(f"Deleted old backup: {path.name}")
            except OSError as e:
                warning = BackupRetentionWarning(str(path), e)
                log.warning(warning.message, extra=warning.to_log_record())
                result.warnings.append(warning)


def list_backups(backup_dir: Path) -> list[BackupArtifact]:
    """Snapshots in backup_dir, newest first."""
    backup_dir = Path(backup_dir)
    if not backup_dir.exists():
        return []

    backups = []
    for f in backup_dir.glob("*.db"):
        try:
            backups.append(BackupArtifact.from_path(f))
        except OSError as e:
            # File may have been deleted/moved - skip it
            log.warning(f"Could not stat backup {f}: {e}")

    backups.sort(key=lambda b: b.mtime, reverse=True)
    return backups


def backup_status(backup_dir: Path, now: datetime | None = None) -> str:
    """Get a formatted backup status string."""
    backups = list_backups(backup_dir)

    if not backups:
        return "No backups available"

    now = now or datetime.now(timezone.utc)
    lines = [f"Backups: {len(backups)} available"]

    for backup in backups[:5]:
        size_kb = backup.bytes / 1024
        age = now - backup.mtime
        if age.days > 0:
            age_str = f"{age.days}d ago"
        elif age.seconds > 3600:
            age_str = f"{age.seconds // 3600}h ago"
        else:
            age_str = f"{age.seconds // 60}m ago"

        lines.append(f"- {backup.filename} ({size_kb:.0f}KB, {age_str})")

    if len(backups) > 5:
        lines.append(f"- ... and {len(backups) - 5} more")

    return "\n".join(lines)
