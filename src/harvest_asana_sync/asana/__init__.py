"""Asana API integration."""

from harvest_asana_sync.asana.client import AsanaClient
from harvest_asana_sync.asana.models import AsanaCustomField, AsanaTask

__all__ = [
    "AsanaClient",
    "AsanaCustomField",
    "AsanaTask",
]
