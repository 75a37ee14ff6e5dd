"""
Error taxonomy for the maintenance engine.

Every phase wraps its root cause in one of these, tagged with an ErrorKind.
The coordinator catches MaintenanceError once per tick and turns it into a
structured log record via to_log_record().
"""

import enum
from typing import Any


class ErrorKind(str, enum.Enum):
    """Taxonomy tag carried by every maintenance error."""

    CONFIG = "config"
    CONNECTION = "connection"
    INDEX_PROVISIONING = "index_provisioning"
    OPTIMIZE = "optimize"
    MONITOR_SETUP = "monitor_setup"
    JANITOR = "janitor"
    BACKUP = "backup"
    BACKUP_RETENTION = "backup_retention"


class MaintenanceError(Exception):
    """Base class for all tagged maintenance errors."""

    kind: ErrorKind = ErrorKind.CONFIG

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def details(self) -> dict[str, Any]:
        """Kind-specific fields merged into the log record."""
        return {}

    def to_log_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "error_kind": self.kind.value,
            "error_message": self.message,
        }
        if self.cause is not None:
            record["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        record.update(self.details())
        return record


class ConfigError(MaintenanceError):
    kind = ErrorKind.CONFIG

    def __init__(self, field: str, reason: str, cause: BaseException | None = None):
        super().__init__(f"Invalid configuration for {field}: {reason}", cause)
        self.field = field
        self.reason = reason

    def details(self) -> dict[str, Any]:
        return {"field": self.field, "reason": self.reason}


class DatabaseConnectionError(MaintenanceError):
    kind = ErrorKind.CONNECTION


class IndexProvisioningError(MaintenanceError):
    kind = ErrorKind.INDEX_PROVISIONING

    def __init__(self, index_name: str, cause: BaseException | None = None):
        super().__init__(f"Database index creation failed at {index_name}: {cause}", cause)
        self.index_name = index_name

    def details(self) -> dict[str, Any]:
        return {"index_name": self.index_name}


class OptimizeError(MaintenanceError):
    kind = ErrorKind.OPTIMIZE

    def __init__(self, phase: str, cause: BaseException | None = None):
        super().__init__(f"Database optimization failed during {phase}: {cause}", cause)
        self.phase = phase

    def details(self) -> dict[str, Any]:
        return {"phase": self.phase}


class MonitorSetupError(MaintenanceError):
    kind = ErrorKind.MONITOR_SETUP


class JanitorError(MaintenanceError):
    kind = ErrorKind.JANITOR

    def __init__(self, op: str, cause: BaseException | None = None):
        super().__init__(f"Database maintenance failed in {op}: {cause}", cause)
        self.op = op

    def details(self) -> dict[str, Any]:
        return {"op": self.op}


class BackupError(MaintenanceError):
    kind = ErrorKind.BACKUP


class BackupRetentionWarning(MaintenanceError):
    """Retention cleanup problem. Logged and collected, never raised."""

    kind = ErrorKind.BACKUP_RETENTION

    def __init__(self, path: str, cause: BaseException | None = None):
        super().__init__(f"Error cleaning up old backup {path}: {cause}", cause)
        self.path = path

    def details(self) -> dict[str, Any]:
        return {"path": self.path}
