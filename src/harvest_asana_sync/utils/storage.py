"""Durable ledger holding the hours snapshot and the staged diff."""

import fcntl
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from harvest_asana_sync.exceptions import LockError, SnapshotError

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".harvest-asana-sync" / "data"
LEDGER_VERSION = 1


class SyncPhase(str, Enum):
    """Work performed by a single invocation."""

    FETCH = "fetch"
    DISPATCH = "dispatch"


class PendingDiff(BaseModel):
    """Totals staged for the next dispatch."""

    dirty: bool = False
    hours: dict[str, Decimal] = Field(default_factory=dict)


class Snapshot(BaseModel):
    """Everything that survives between invocations."""

    version: int = LEDGER_VERSION
    updated_at: datetime | None = None
    all_hours: dict[str, Decimal] = Field(default_factory=dict)
    pending_diff: PendingDiff = Field(default_factory=PendingDiff)

    @model_validator(mode="after")
    def _check_pending_subset(self) -> "Snapshot":
        unknown = set(self.pending_diff.hours) - set(self.all_hours)
        if unknown:
            raise ValueError(
                f"Pending diff references untracked keys: {', '.join(sorted(unknown))}"
            )
        return self

    @property
    def next_phase(self) -> SyncPhase:
        """Phase the next invocation should run."""
        if self.pending_diff.dirty:
            return SyncPhase.DISPATCH
        return SyncPhase.FETCH


class SnapshotStore:
    """Reads and atomically rewrites the JSON ledger.

    The ledger is a single document, so the snapshot and the pending diff
    always change together. Hours are written as decimal strings.
    """

    def __init__(self, data_dir: Path | None = None) -> None:
        """Initialize snapshot store.

        Args:
            data_dir: Directory holding the ledger. Defaults to ~/.harvest-asana-sync/data/
        """
        self.data_dir = data_dir or DEFAULT_DATA_DIR

        self.ledger_file = self.data_dir / "ledger.json"
        self.lock_file = self.data_dir / "sync.lock"
        self.legacy_all_hours_file = self.data_dir / "all_hours.json"
        self.legacy_updated_hours_file = self.data_dir / "updated_hours.json"

    def exists(self) -> bool:
        """Check whether any ledger, current or legacy, is on disk."""
        return self.ledger_file.exists() or self.legacy_all_hours_file.exists()

    def load(self) -> Snapshot:
        """Load the current snapshot.

        Returns:
            Stored snapshot, an imported legacy snapshot, or an empty one.

        Raises:
            SnapshotError: If the ledger is unreadable or of an unknown version.
        """
        if self.ledger_file.exists():
            data = self._read_json(self.ledger_file)
            if not isinstance(data, dict):
                raise SnapshotError(f"Ledger {self.ledger_file} is not a JSON object")
            version = data.get("version")
            if version != LEDGER_VERSION:
                raise SnapshotError(
                    f"Unsupported ledger version {version!r} in {self.ledger_file}"
                )
            return self._validate(data)

        if self.legacy_all_hours_file.exists():
            return self._load_legacy()

        return Snapshot()

    def save(self, snapshot: Snapshot) -> None:
        """Overwrite the whole ledger with the given snapshot.

        Args:
            snapshot: Snapshot to persist.
        """
        snapshot.updated_at = datetime.now(timezone.utc)
        self._write_atomic(snapshot.model_dump(mode="json"))
        logger.debug(
            f"Saved ledger: {len(snapshot.all_hours)} tracked, "
            f"{len(snapshot.pending_diff.hours)} pending, dirty={snapshot.pending_diff.dirty}"
        )

    def load_all_hours(self) -> dict[str, Decimal]:
        """Get the merged hours of every tracked reference."""
        return dict(self.load().all_hours)

    def save_all_hours(self, all_hours: dict[str, Decimal]) -> None:
        """Replace the merged hours, keeping the pending diff."""
        snapshot = self.load()
        self.save(self._validate({"all_hours": all_hours, "pending_diff": snapshot.pending_diff}))

    def load_pending_diff(self) -> PendingDiff:
        """Get the staged diff."""
        return self.load().pending_diff

    def save_pending_diff(self, dirty: bool, hours: dict[str, Decimal]) -> None:
        """Replace the staged diff, keeping the merged hours."""
        snapshot = self.load()
        self.save(
            self._validate(
                {
                    "all_hours": snapshot.all_hours,
                    "pending_diff": {"dirty": dirty, "hours": hours},
                }
            )
        )

    def commit_reconciliation(
        self, all_hours: dict[str, Decimal], diff_hours: dict[str, Decimal]
    ) -> Snapshot:
        """Store a fetch result in one write.

        Args:
            all_hours: Merged hours after reconciliation.
            diff_hours: Totals that changed; marks the ledger dirty when non-empty.

        Returns:
            The persisted snapshot.

        Raises:
            SnapshotError: If a staged reference is missing from the merged hours.
        """
        snapshot = self._validate(
            {
                "all_hours": all_hours,
                "pending_diff": {"dirty": bool(diff_hours), "hours": diff_hours},
            }
        )
        self.save(snapshot)
        return snapshot

    def mark_dispatched(self) -> Snapshot:
        """Clear the dirty flag, keeping the staged hours as the last attempt."""
        snapshot = self.load()
        snapshot.pending_diff.dirty = False
        self.save(snapshot)
        return snapshot

    def lock(self) -> "RunLock":
        """Get the run lock guarding this ledger."""
        return RunLock(self.lock_file)

    def _validate(self, data: dict[str, Any]) -> Snapshot:
        try:
            return Snapshot.model_validate(data)
        except ValidationError as e:
            raise SnapshotError(f"Invalid ledger content: {e}") from e

    def _load_legacy(self) -> Snapshot:
        """Import the all_hours.json / updated_hours.json pair."""
        logger.info(f"Importing legacy hours files from {self.data_dir}")
        all_hours = self._read_json(self.legacy_all_hours_file) or {}

        pending: dict[str, Any] = {}
        if self.legacy_updated_hours_file.exists():
            updated = self._read_json(self.legacy_updated_hours_file)
            if isinstance(updated, dict):
                pending = updated

        return self._validate(
            {
                "all_hours": all_hours,
                "pending_diff": {
                    "dirty": bool(pending.get("updateData", False)),
                    "hours": pending.get("hours") or {},
                },
            }
        )

    def _read_json(self, path: Path) -> Any:
        try:
            with open(path) as f:
                return json.load(f, parse_float=Decimal)
        except json.JSONDecodeError as e:
            raise SnapshotError(f"Ledger {path} is not valid JSON: {e}") from e

    def _write_atomic(self, payload: dict[str, Any]) -> None:
        """Write to a temp file and swap it in, so readers never see a torn file."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=".ledger-", suffix=".tmp")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(payload, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.ledger_file)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise


class RunLock:
    """Exclusive, non-blocking lock held for one invocation.

    Uses flock, so the kernel drops it when the process dies.
    """

    def __init__(self, lock_file: Path) -> None:
        self.lock_file = lock_file
        self._handle: Any = None

    def acquire(self) -> None:
        """Take the lock.

        Raises:
            LockError: If another run holds it.
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.lock_file, "a")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            handle.close()
            raise LockError(f"Another run holds {self.lock_file}") from e
        self._handle = handle

    def release(self) -> None:
        """Drop the lock if held."""
        if self._handle is None:
            return
        fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        self._handle.close()
        self._handle = None

    @property
    def locked(self) -> bool:
        return self._handle is not None

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, *args: Any) -> None:
        self.release()
