"""Lookup of the custom field that receives the hours of a task."""

import logging

import httpx
from pydantic import ValidationError

from harvest_asana_sync.asana import AsanaClient
from harvest_asana_sync.exceptions import FieldLookupError

logger = logging.getLogger(__name__)

DEFAULT_FIELD_NAME = "Harvest Hours"


class TaskFieldResolver:
    """Finds a task's custom field by display name.

    Nothing is cached: the field setup of a project can change between runs.
    """

    def __init__(self, asana_client: AsanaClient) -> None:
        self.asana = asana_client

    def resolve_field_id(self, task_id: str, field_name: str = DEFAULT_FIELD_NAME) -> str | None:
        """Get the GID of the named custom field on a task.

        Args:
            task_id: Asana task GID.
            field_name: Exact display name of the field.

        Returns:
            The field GID, or None if the task has no such field.

        Raises:
            FieldLookupError: If the task cannot be fetched or parsed.
        """
        try:
            task = self.asana.get_task(task_id, opt_fields="custom_fields")
        except httpx.HTTPStatusError as e:
            raise FieldLookupError(
                task_id,
                f"Asana returned {e.response.status_code} for task {task_id}: {e.response.text}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise FieldLookupError(task_id, f"Failed to fetch task {task_id}: {e}") from e
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise FieldLookupError(task_id, f"Malformed task payload for {task_id}: {e}") from e

        field = task.find_custom_field(field_name)
        if field is None:
            logger.warning(f"Task {task_id} has no '{field_name}' custom field")
            return None
        return field.gid
