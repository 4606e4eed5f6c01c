"""Sync Harvest tracked hours into Asana task custom fields."""

__version__ = "0.1.0"
