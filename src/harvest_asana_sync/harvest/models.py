"""Pydantic models for Harvest API responses."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExternalReference(BaseModel):
    """Link from a Harvest time entry to an item in another tool."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    group_id: str | None = None
    account_id: str | None = None
    permalink: str | None = None
    service: str | None = None
    service_icon_url: str | None = None

    @field_validator("id", "group_id", "account_id", mode="before")
    @classmethod
    def _ids_as_strings(cls, value: Any) -> Any:
        if isinstance(value, (int, Decimal)):
            return str(value)
        return value


class HarvestTimeEntry(BaseModel):
    """Harvest time entry model.

    Only the fields the sync needs are declared; the rest of the payload
    is ignored.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int | None = None
    spent_date: str | None = None
    hours: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None
    external_reference: ExternalReference | None = None

    @property
    def external_reference_id(self) -> str | None:
        """Get the ID of the linked task, if any."""
        if self.external_reference is None:
            return None
        return self.external_reference.id or None

    @property
    def hours_or_zero(self) -> Decimal:
        """Get tracked hours, treating a missing value as zero."""
        return self.hours if self.hours is not None else Decimal(0)


class TimeEntriesPage(BaseModel):
    """One page of the time entries listing."""

    time_entries: list[HarvestTimeEntry]
    page: int | None = None
    next_page: int | None = None
    total_pages: int | None = None
    total_entries: int | None = None
