"""Harvest API client."""

import json
import logging
from datetime import date
from decimal import Decimal
from typing import Any

import httpx

from harvest_asana_sync.utils.http import (
    DEFAULT_TIMEOUT_SECONDS,
    RETRY_DELAY_SECONDS,
    request_with_retry,
)

logger = logging.getLogger(__name__)


class HarvestClient:
    """Client for Harvest API v2."""

    BASE_URL = "https://api.harvestapp.com/v2/"
    USER_AGENT = "Harvest-Asana"

    def __init__(
        self,
        api_token: str,
        account_id: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ) -> None:
        """Initialize Harvest client.

        Args:
            api_token: Harvest personal access token.
            account_id: Harvest account ID.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (used by tests).
            retry_delay: Seconds to wait before retrying a failed request.
        """
        if not api_token or not account_id:
            raise ValueError("Harvest API token and account ID are required")

        self.account_id = account_id
        self.retry_delay = retry_delay
        self.client = httpx.Client(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Bearer {api_token}",
                "Harvest-Account-ID": account_id,
                "User-Agent": self.USER_AGENT,
            },
            timeout=timeout,
            transport=transport,
        )

    def get_time_entries_page(
        self,
        from_date: date,
        to_date: date,
        page: int = 1,
    ) -> Any:
        """Get one page of time entries.

        Args:
            from_date: First spent date to include.
            to_date: Last spent date to include.
            page: Page number, starting at 1.

        Returns:
            Decoded JSON body. Numbers with a fraction are Decimals.

        Raises:
            httpx.HTTPError: If API request fails.
        """
        response = request_with_retry(
            self.client,
            "GET",
            "time_entries",
            retry_delay=self.retry_delay,
            params={
                "from": from_date.isoformat(),
                "to": to_date.isoformat(),
                "page": page,
            },
        )
        return json.loads(response.text, parse_float=Decimal)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> "HarvestClient":
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()
