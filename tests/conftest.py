"""Pytest configuration and fixtures."""

import tempfile
from collections.abc import Callable
from decimal import Decimal
from pathlib import Path
from typing import Any

import httpx
import pytest

from harvest_asana_sync.asana import AsanaClient
from harvest_asana_sync.harvest import HarvestClient, HarvestTimeEntry
from harvest_asana_sync.utils import SnapshotStore, UpdateLog

Handler = Callable[[httpx.Request], httpx.Response]


def make_entry(reference_id: str | None, hours: str | None, entry_id: int = 1) -> HarvestTimeEntry:
    """Build a Harvest time entry with an optional task reference."""
    data: dict[str, Any] = {"id": entry_id}
    if hours is not None:
        data["hours"] = Decimal(hours)
    if reference_id is not None:
        data["external_reference"] = {"id": reference_id, "service": "app.asana.com"}
    return HarvestTimeEntry(**data)


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary working directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def snapshot_store(temp_dir: Path) -> SnapshotStore:
    """Create a snapshot store in a temporary directory."""
    data_dir = temp_dir / "data"
    data_dir.mkdir()
    return SnapshotStore(data_dir)


@pytest.fixture
def update_log(temp_dir: Path) -> UpdateLog:
    """Create an update log in a temporary directory."""
    return UpdateLog(temp_dir / "logs")


@pytest.fixture
def harvest_client_for() -> Callable[[Handler], HarvestClient]:
    """Build Harvest clients backed by a mock transport."""
    clients: list[HarvestClient] = []

    def factory(handler: Handler) -> HarvestClient:
        client = HarvestClient(
            "test_harvest_token",
            "123456",
            transport=httpx.MockTransport(handler),
            retry_delay=0,
        )
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture
def asana_client_for() -> Callable[[Handler], AsanaClient]:
    """Build Asana clients backed by a mock transport."""
    clients: list[AsanaClient] = []

    def factory(handler: Handler) -> AsanaClient:
        client = AsanaClient(
            "test_asana_token",
            transport=httpx.MockTransport(handler),
            retry_delay=0,
        )
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()
