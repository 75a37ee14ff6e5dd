# Old Man Footy - Scheduled Database Maintenance
"""
Exports for the maintenance service and other consumers.
"""

from .backup import BackupRotator, backup_status, list_backups
from .config import MaintenanceConfig, load_config
from .maintenance import MaintenanceCoordinator, TickOutcome, TickReport

__version__ = "1.4.0"

__all__ = [
    "load_config",
    "MaintenanceConfig",
    "MaintenanceCoordinator",
    "TickOutcome",
    "TickReport",
    "BackupRotator",
    "backup_status",
    "list_backups",
]
