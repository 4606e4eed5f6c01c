"""Tests for the two-phase sync orchestrator."""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pytest

from conftest import make_entry
from harvest_asana_sync.exceptions import EmptyInputError, FieldLookupError, LockError
from harvest_asana_sync.sync import (
    SyncOrchestrator,
    TaskFieldResolver,
    TaskUpdateDispatcher,
    TimeEntryFetcher,
)
from harvest_asana_sync.utils import SnapshotStore, SyncPhase, UpdateLog


def _build(
    store: SnapshotStore,
    update_log: UpdateLog,
    entries: list | None = None,
    dry_run: bool = False,
) -> tuple[SyncOrchestrator, MagicMock, MagicMock, MagicMock]:
    fetcher = MagicMock(spec=TimeEntryFetcher)
    fetcher.fetch.return_value = entries if entries is not None else []

    resolver = MagicMock(spec=TaskFieldResolver)
    resolver.resolve_field_id.side_effect = lambda task_id, field_name: f"field-{task_id}"

    asana = MagicMock()
    asana.update_custom_fields.return_value = {"data": {}}
    dispatcher = TaskUpdateDispatcher(asana, update_log, dry_run=dry_run)

    orchestrator = SyncOrchestrator(
        store=store,
        fetcher=fetcher,
        resolver=resolver,
        dispatcher=dispatcher,
        update_log=update_log,
        dry_run=dry_run,
    )
    return orchestrator, fetcher, resolver, asana


EXAMPLE_ENTRIES = [
    make_entry("T1", "2.5", 1),
    make_entry("T1", "1.0", 2),
    make_entry("T2", "3.0", 3),
]


class TestPhaseSelection:
    """Test which phase a run executes."""

    def test_no_ledger_fetches(self, snapshot_store: SnapshotStore, update_log: UpdateLog) -> None:
        """Test the first run fetches and does not dispatch."""
        orchestrator, fetcher, resolver, asana = _build(snapshot_store, update_log, EXAMPLE_ENTRIES)

        assert orchestrator.determine_phase() is SyncPhase.FETCH
        report = orchestrator.run()

        assert report.phase is SyncPhase.FETCH
        fetcher.fetch.assert_called_once_with(None, None)
        resolver.resolve_field_id.assert_not_called()
        asana.update_custom_fields.assert_not_called()

    def test_dirty_ledger_dispatches(self, snapshot_store: SnapshotStore, update_log: UpdateLog) -> None:
        """Test a staged diff is dispatched and nothing is fetched."""
        snapshot_store.commit_reconciliation({"T1": Decimal("3.5")}, {"T1": Decimal("3.5")})
        orchestrator, fetcher, resolver, asana = _build(snapshot_store, update_log)

        assert orchestrator.determine_phase() is SyncPhase.DISPATCH
        report = orchestrator.run()

        assert report.phase is SyncPhase.DISPATCH
        fetcher.fetch.assert_not_called()
        asana.update_custom_fields.assert_called_once_with("T1", {"field-T1": Decimal("3.5")})

    def test_clean_ledger_fetches(self, snapshot_store: SnapshotStore, update_log: UpdateLog) -> None:
        """Test a dispatched diff leads back to fetching."""
        snapshot_store.commit_reconciliation({"T1": Decimal("3.5")}, {"T1": Decimal("3.5")})
        snapshot_store.mark_dispatched()
        orchestrator, fetcher, _, asana = _build(snapshot_store, update_log, EXAMPLE_ENTRIES)

        report = orchestrator.run()

        assert report.phase is SyncPhase.FETCH
        fetcher.fetch.assert_called_once()
        asana.update_custom_fields.assert_not_called()


class TestFetchPhase:
    """Test the fetch phase."""

    def test_stages_documented_example(
        self, snapshot_store: SnapshotStore, update_log: UpdateLog
    ) -> None:
        """Test only changed totals are staged and history is kept."""
        snapshot_store.save_all_hours({"T1": Decimal("3.5"), "T3": Decimal("1.0")})
        orchestrator, _, _, _ = _build(snapshot_store, update_log, EXAMPLE_ENTRIES)

        report = orchestrator.run(date(2024, 1, 1), date(2024, 3, 31))

        snapshot = snapshot_store.load()
        assert snapshot.all_hours == {
            "T1": Decimal("3.5"),
            "T2": Decimal("3.0"),
            "T3": Decimal("1.0"),
        }
        assert snapshot.pending_diff.dirty is True
        assert snapshot.pending_diff.hours == {"T2": Decimal("3.0")}
        assert report.entries_fetched == 3
        assert report.references_aggregated == 2
        assert report.changes_staged == 1

    def test_passes_window_to_fetcher(
        self, snapshot_store: SnapshotStore, update_log: UpdateLog
    ) -> None:
        """Test explicit dates reach the fetcher."""
        orchestrator, fetcher, _, _ = _build(snapshot_store, update_log, EXAMPLE_ENTRIES)

        orchestrator.run(date(2024, 1, 1), date(2024, 3, 31))

        fetcher.fetch.assert_called_once_with(date(2024, 1, 1), date(2024, 3, 31))

    def test_no_changes_leaves_ledger_clean(
        self, snapshot_store: SnapshotStore, update_log: UpdateLog
    ) -> None:
        """Test identical totals stage nothing."""
        snapshot_store.save_all_hours({"T1": Decimal("3.5"), "T2": Decimal("3")})
        orchestrator, _, _, _ = _build(snapshot_store, update_log, EXAMPLE_ENTRIES)

        report = orchestrator.run()

        assert report.changes_staged == 0
        assert snapshot_store.load().next_phase is SyncPhase.FETCH

    def test_empty_fetch_leaves_ledger_untouched(
        self, snapshot_store: SnapshotStore, update_log: UpdateLog
    ) -> None:
        """Test an empty fetch fails without writing."""
        snapshot_store.commit_reconciliation({"T1": Decimal("3.5")}, {"T1": Decimal("3.5")})
        snapshot_store.mark_dispatched()
        before = snapshot_store.ledger_file.read_text()
        orchestrator, _, _, _ = _build(snapshot_store, update_log, [])

        with pytest.raises(EmptyInputError):
            orchestrator.run()

        assert snapshot_store.ledger_file.read_text() == before

    def test_empty_first_fetch_creates_no_ledger(
        self, snapshot_store: SnapshotStore, update_log: UpdateLog
    ) -> None:
        """Test nothing is written when the very first fetch is empty."""
        orchestrator, _, _, _ = _build(snapshot_store, update_log, [])

        with pytest.raises(EmptyInputError):
            orchestrator.run()

        assert not snapshot_store.ledger_file.exists()

    def test_dry_run_writes_nothing(self, snapshot_store: SnapshotStore, update_log: UpdateLog) -> None:
        """Test a dry-run fetch reports but does not persist."""
        orchestrator, _, _, _ = _build(snapshot_store, update_log, EXAMPLE_ENTRIES, dry_run=True)

        report = orchestrator.run()

        assert report.changes_staged == 2
        assert not snapshot_store.ledger_file.exists()


class TestDispatchPhase:
    """Test the dispatch phase."""

    def test_clears_flag_and_keeps_hours(
        self, snapshot_store: SnapshotStore, update_log: UpdateLog
    ) -> None:
        """Test the flag flips and the attempted hours remain."""
        diff = {"T1": Decimal("3.5"), "T2": Decimal("3.0")}
        snapshot_store.commit_reconciliation(diff, diff)
        orchestrator, _, _, _ = _build(snapshot_store, update_log)

        report = orchestrator.run()

        assert report.tasks_updated == 2
        pending = snapshot_store.load_pending_diff()
        assert pending.dirty is False
        assert pending.hours == diff

    def test_lookup_failure_skips_only_that_task(
        self, snapshot_store: SnapshotStore, update_log: UpdateLog
    ) -> None:
        """Test an unresolvable task is skipped and logged."""
        diff = {"T1": Decimal("1"), "T2": Decimal("2")}
        snapshot_store.commit_reconciliation(diff, diff)
        orchestrator, _, resolver, asana = _build(snapshot_store, update_log)

        def resolve(task_id: str, field_name: str) -> str:
            if task_id == "T1":
                raise FieldLookupError(task_id, "Asana returned 404 for task T1", status_code=404)
            return f"field-{task_id}"

        resolver.resolve_field_id.side_effect = resolve

        report = orchestrator.run()

        assert report.tasks_skipped == 1
        assert report.tasks_updated == 1
        asana.update_custom_fields.assert_called_once_with("T2", {"field-T2": Decimal("2")})
        assert "look up custom field for task with ID T1" in update_log.error_file_for().read_text()
        assert snapshot_store.load_pending_diff().dirty is False

    def test_lookup_failure_uses_own_update_log(self, snapshot_store: SnapshotStore) -> None:
        """Test lookup failures go to the log the orchestrator was given."""
        snapshot_store.commit_reconciliation({"T1": Decimal("1")}, {"T1": Decimal("1")})
        resolver = MagicMock(spec=TaskFieldResolver)
        resolver.resolve_field_id.side_effect = FieldLookupError(
            "T1", "Asana returned 403 for task T1", status_code=403
        )
        dispatcher = MagicMock(spec=TaskUpdateDispatcher)
        update_log = MagicMock(spec=UpdateLog)

        orchestrator = SyncOrchestrator(
            store=snapshot_store,
            fetcher=MagicMock(spec=TimeEntryFetcher),
            resolver=resolver,
            dispatcher=dispatcher,
            update_log=update_log,
        )
        report = orchestrator.run()

        assert report.tasks_skipped == 1
        update_log.record_failure.assert_called_once_with(
            "T1",
            "Asana returned 403 for task T1",
            status_code=403,
            action="look up custom field",
        )
        dispatcher.apply_hours.assert_not_called()

    def test_missing_field_skips_task(
        self, snapshot_store: SnapshotStore, update_log: UpdateLog
    ) -> None:
        """Test tasks without the hours field are skipped quietly."""
        snapshot_store.commit_reconciliation({"T1": Decimal("1")}, {"T1": Decimal("1")})
        orchestrator, _, resolver, asana = _build(snapshot_store, update_log)
        resolver.resolve_field_id.side_effect = None
        resolver.resolve_field_id.return_value = None

        report = orchestrator.run()

        assert report.tasks_skipped == 1
        assert report.errors == []
        asana.update_custom_fields.assert_not_called()

    def test_write_failure_still_clears_flag(
        self, snapshot_store: SnapshotStore, update_log: UpdateLog
    ) -> None:
        """Test a failed write is reported and the batch is still closed."""
        diff = {"T1": Decimal("1"), "T2": Decimal("2")}
        snapshot_store.commit_reconciliation(diff, diff)
        orchestrator, _, _, asana = _build(snapshot_store, update_log)
        request = httpx.Request("PUT", "https://app.asana.com/api/1.0/tasks/T1")
        asana.update_custom_fields.side_effect = [
            httpx.HTTPStatusError(
                "Client error", request=request, response=httpx.Response(400, request=request)
            ),
            {"data": {}},
        ]

        report = orchestrator.run()

        assert report.tasks_failed == 1
        assert report.tasks_updated == 1
        assert asana.update_custom_fields.call_count == 2
        assert snapshot_store.load_pending_diff().dirty is False

    def test_dry_run_keeps_flag(self, snapshot_store: SnapshotStore, update_log: UpdateLog) -> None:
        """Test a dry-run dispatch leaves the diff staged."""
        snapshot_store.commit_reconciliation({"T1": Decimal("1")}, {"T1": Decimal("1")})
        orchestrator, _, _, asana = _build(snapshot_store, update_log, dry_run=True)

        orchestrator.run()

        asana.update_custom_fields.assert_not_called()
        assert snapshot_store.load_pending_diff().dirty is True


class TestRunCycle:
    """Test consecutive invocations."""

    def test_phases_alternate(self, snapshot_store: SnapshotStore, update_log: UpdateLog) -> None:
        """Test fetch, dispatch, then fetch with nothing new."""
        orchestrator, fetcher, _, asana = _build(snapshot_store, update_log, EXAMPLE_ENTRIES)

        first = orchestrator.run()
        second = orchestrator.run()
        third = orchestrator.run()

        assert [first.phase, second.phase, third.phase] == [
            SyncPhase.FETCH,
            SyncPhase.DISPATCH,
            SyncPhase.FETCH,
        ]
        assert fetcher.fetch.call_count == 2
        assert asana.update_custom_fields.call_count == 2
        assert third.changes_staged == 0
        assert snapshot_store.load().next_phase is SyncPhase.FETCH

    def test_concurrent_run_rejected(
        self, snapshot_store: SnapshotStore, update_log: UpdateLog
    ) -> None:
        """Test a run cannot start while another holds the lock."""
        orchestrator, fetcher, _, _ = _build(snapshot_store, update_log, EXAMPLE_ENTRIES)

        with snapshot_store.lock():
            with pytest.raises(LockError):
                orchestrator.run()

        fetcher.fetch.assert_not_called()
