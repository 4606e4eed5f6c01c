"""Paginated retrieval of Harvest time entries."""

import logging
from datetime import date, timedelta
from typing import Any

import httpx
from pydantic import ValidationError

from harvest_asana_sync.exceptions import RetrievalError
from harvest_asana_sync.harvest import HarvestClient, HarvestTimeEntry, TimeEntriesPage

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 90


class TimeEntryFetcher:
    """Collects every attributable time entry in a date window."""

    def __init__(
        self,
        harvest_client: HarvestClient,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    ) -> None:
        """Initialize time entry fetcher.

        Args:
            harvest_client: Configured Harvest API client.
            lookback_days: Window length used when no start date is given.
        """
        self.harvest = harvest_client
        self.lookback_days = lookback_days

    def default_window(self, today: date | None = None) -> tuple[date, date]:
        """Get the default (from, to) window ending today."""
        today = today or date.today()
        return today - timedelta(days=self.lookback_days), today

    def fetch(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[HarvestTimeEntry]:
        """Fetch all time entries carrying an external reference.

        Follows next_page until Harvest returns none.

        Args:
            from_date: Start of the window. Defaults to lookback_days ago.
            to_date: End of the window. Defaults to today.

        Returns:
            Entries with an external reference ID, in API order.

        Raises:
            RetrievalError: If a page is malformed or cannot be fetched.
        """
        default_from, default_to = self.default_window()
        from_date = from_date or default_from
        to_date = to_date or default_to

        logger.info(f"Fetching Harvest time entries from {from_date} to {to_date}")

        entries: list[HarvestTimeEntry] = []
        page: int | None = 1
        pages_fetched = 0
        discarded = 0

        while page is not None:
            data = self._get_page(from_date, to_date, page)
            parsed = self._parse_page(data, page)
            pages_fetched += 1

            for entry in parsed.time_entries:
                if entry.external_reference_id is None:
                    discarded += 1
                    continue
                entries.append(entry)

            next_page = parsed.next_page
            if next_page is not None and next_page <= page:
                raise RetrievalError(
                    f"Harvest pagination did not advance (page {page} -> {next_page})"
                )
            page = next_page

        logger.info(
            f"Fetched {len(entries)} referenced time entries from {pages_fetched} page(s), "
            f"discarded {discarded} without a reference"
        )
        return entries

    def _get_page(self, from_date: date, to_date: date, page: int) -> Any:
        try:
            return self.harvest.get_time_entries_page(from_date, to_date, page)
        except httpx.HTTPError as e:
            raise RetrievalError(f"Failed to fetch Harvest time entries page {page}: {e}") from e
        except ValueError as e:
            raise RetrievalError(f"Harvest returned non-JSON for page {page}: {e}") from e

    def _parse_page(self, data: Any, page: int) -> TimeEntriesPage:
        if not isinstance(data, dict) or not isinstance(data.get("time_entries"), list):
            raise RetrievalError(f"Invalid response from Harvest API (page {page})")
        try:
            return TimeEntriesPage(**data)
        except ValidationError as e:
            raise RetrievalError(f"Invalid time entry on Harvest page {page}: {e}") from e
