"""データベースバックアップ・リストア機能"""

from .core import BackupEngine, ImportEngine
from .models import (
    BackupResult,
    ImportResult,
    RevertResult,
    RevertStatus,
    Substitution,
    Table,
    TrackingConfig,
    TrackingMode,
    UndoReference,
)
from .operations import OperationKind, TableOperation, create_operation
from .revert import RevertOrchestrator
from .store import SnapshotStore
from .tracker import TableTracker, load_tracking_config, save_tracking_config

__all__ = [
    "BackupEngine",
    "BackupResult",
    "ImportEngine",
    "ImportResult",
    "OperationKind",
    "RevertOrchestrator",
    "RevertResult",
    "RevertStatus",
    "SnapshotStore",
    "Substitution",
    "Table",
    "TableOperation",
    "TableTracker",
    "TrackingConfig",
    "TrackingMode",
    "UndoReference",
    "create_operation",
    "load_tracking_config",
    "save_tracking_config",
]
