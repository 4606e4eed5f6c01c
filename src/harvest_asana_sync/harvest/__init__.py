"""Harvest API integration."""

from harvest_asana_sync.harvest.client import HarvestClient
from harvest_asana_sync.harvest.models import (
    ExternalReference,
    HarvestTimeEntry,
    TimeEntriesPage,
)

__all__ = [
    "HarvestClient",
    "ExternalReference",
    "HarvestTimeEntry",
    "TimeEntriesPage",
]
