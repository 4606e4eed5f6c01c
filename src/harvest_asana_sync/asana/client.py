"""Asana API client."""

import logging
from decimal import Decimal
from typing import Any

import httpx

from harvest_asana_sync.asana.models import AsanaTask
from harvest_asana_sync.utils.http import (
    DEFAULT_TIMEOUT_SECONDS,
    RETRY_DELAY_SECONDS,
    request_with_retry,
)

logger = logging.getLogger(__name__)


class AsanaClient:
    """Client for Asana API."""

    BASE_URL = "https://app.asana.com/api/1.0/"

    def __init__(
        self,
        access_token: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ) -> None:
        """Initialize Asana client.

        Args:
            access_token: Asana personal access token.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (used by tests).
            retry_delay: Seconds to wait before retrying a failed request.
        """
        if not access_token:
            raise ValueError("Asana access token is required")

        self.retry_delay = retry_delay
        self.client = httpx.Client(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def get_task(self, task_id: str, opt_fields: str = "custom_fields") -> AsanaTask:
        """Get task details.

        Args:
            task_id: Asana task GID.
            opt_fields: Comma-separated fields to include.

        Returns:
            Task information.

        Raises:
            httpx.HTTPError: If API request fails.
            KeyError: If the response has no data object.
            pydantic.ValidationError: If the task payload is malformed.
        """
        response = request_with_retry(
            self.client,
            "GET",
            f"tasks/{task_id}",
            retry_delay=self.retry_delay,
            params={"opt_fields": opt_fields},
        )
        return AsanaTask(**response.json()["data"])

    def update_custom_fields(
        self, task_id: str, values: dict[str, Decimal | float | str | None]
    ) -> dict[str, Any]:
        """Set custom field values on a task.

        Args:
            task_id: Asana task GID.
            values: Map of custom field GID to new value.

        Returns:
            Decoded response body.

        Raises:
            httpx.HTTPError: If API request fails.
        """
        payload = {
            "data": {
                "custom_fields": {
                    field_id: float(value) if isinstance(value, Decimal) else value
                    for field_id, value in values.items()
                }
            }
        }
        response = request_with_retry(
            self.client,
            "PUT",
            f"tasks/{task_id}",
            retry_delay=self.retry_delay,
            json=payload,
        )
        return response.json()

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> "AsanaClient":
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()
