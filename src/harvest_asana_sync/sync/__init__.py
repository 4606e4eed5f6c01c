"""Synchronization pipeline from Harvest hours to Asana custom fields."""

from harvest_asana_sync.sync.aggregator import aggregate, reconcile
from harvest_asana_sync.sync.dispatcher import DispatchResult, TaskUpdateDispatcher
from harvest_asana_sync.sync.fetcher import TimeEntryFetcher
from harvest_asana_sync.sync.orchestrator import RunReport, SyncOrchestrator
from harvest_asana_sync.sync.resolver import TaskFieldResolver

__all__ = [
    "aggregate",
    "reconcile",
    "DispatchResult",
    "TaskUpdateDispatcher",
    "TimeEntryFetcher",
    "RunReport",
    "SyncOrchestrator",
    "TaskFieldResolver",
]
