"""Error types raised by the synchronizer."""


class SyncError(Exception):
    """Base class for synchronizer errors."""


class ConfigError(SyncError):
    """Configuration is missing or invalid."""


class RetrievalError(SyncError):
    """Harvest returned a malformed page or could not be reached.

    Fatal for the fetch phase. Nothing is persisted when it is raised.
    """


class EmptyInputError(SyncError, ValueError):
    """No attributable time entries were fetched.

    Persisting an empty aggregate would look like every total dropped to
    zero, so the fetch phase stops instead.
    """


class FieldLookupError(SyncError, LookupError):
    """The custom field of a single task could not be looked up."""

    def __init__(self, task_id: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.status_code = status_code


class DispatchError(SyncError):
    """Writing the hours value of a single task failed."""

    def __init__(
        self,
        task_id: str,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.status_code = status_code
        self.response_body = response_body


class SnapshotError(SyncError):
    """The ledger on disk cannot be read."""


class LockError(SyncError):
    """Another run currently holds the run lock."""
