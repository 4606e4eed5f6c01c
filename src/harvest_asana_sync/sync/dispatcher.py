"""Writes hour totals into Asana custom fields, one task at a time."""

import logging
from dataclasses import dataclass
from decimal import Decimal

import httpx

from harvest_asana_sync.asana import AsanaClient
from harvest_asana_sync.exceptions import DispatchError
from harvest_asana_sync.utils.logging import UpdateLog

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Outcome of writing one task's hours."""

    task_id: str
    hours: Decimal
    field_id: str | None = None
    error: DispatchError | None = None
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> int | None:
        return self.error.status_code if self.error else None


class TaskUpdateDispatcher:
    """Applies hour values to tasks without letting one failure stop the batch."""

    def __init__(
        self,
        asana_client: AsanaClient,
        update_log: UpdateLog,
        dry_run: bool = False,
    ) -> None:
        """Initialize task update dispatcher.

        Args:
            asana_client: Configured Asana API client.
            update_log: Destination of success and error records.
            dry_run: If True, only log what would be written.
        """
        self.asana = asana_client
        self.update_log = update_log
        self.dry_run = dry_run

    def apply_hours(self, task_id: str, field_id: str, hours: Decimal) -> DispatchResult:
        """Set the hours custom field of a task.

        Writing the same value twice leaves the task unchanged, so a batch
        can safely be replayed.

        Args:
            task_id: Asana task GID.
            field_id: GID of the hours custom field.
            hours: Total hours to store.

        Returns:
            Result of the write. Never raises for API failures.
        """
        if self.dry_run:
            logger.info(f"[DRY RUN] Would set task {task_id} field {field_id} to {hours}h")
            return DispatchResult(task_id=task_id, hours=hours, field_id=field_id, dry_run=True)

        try:
            self.asana.update_custom_fields(task_id, {field_id: hours})
        except httpx.HTTPStatusError as e:
            error = DispatchError(
                task_id,
                str(e),
                status_code=e.response.status_code,
                response_body=e.response.text,
            )
        except httpx.HTTPError as e:
            error = DispatchError(task_id, str(e) or e.__class__.__name__)
        except Exception as e:
            logger.exception(f"Unexpected error updating task {task_id}")
            error = DispatchError(task_id, f"An unexpected error occurred: {e}")
        else:
            self.update_log.record_success(task_id)
            logger.info(f"Updated task {task_id}: {hours}h")
            return DispatchResult(task_id=task_id, hours=hours, field_id=field_id)

        self.update_log.record_failure(
            task_id,
            str(error),
            status_code=error.status_code,
            response_body=error.response_body,
        )
        logger.error(f"Failed to update task {task_id}: {error}")
        return DispatchResult(task_id=task_id, hours=hours, field_id=field_id, error=error)
