"""Utility modules for the Harvest to Asana synchronizer."""

from harvest_asana_sync.utils.logging import UpdateLog, get_logger, setup_logging
from harvest_asana_sync.utils.storage import (
    PendingDiff,
    RunLock,
    Snapshot,
    SnapshotStore,
    SyncPhase,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "UpdateLog",
    "PendingDiff",
    "RunLock",
    "Snapshot",
    "SnapshotStore",
    "SyncPhase",
]
