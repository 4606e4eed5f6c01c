"""Two-phase run loop: stage changed totals, then apply them on the next run."""

import logging
from datetime import date

from harvest_asana_sync.exceptions import FieldLookupError
from harvest_asana_sync.sync.aggregator import aggregate, reconcile
from harvest_asana_sync.sync.dispatcher import DispatchResult, TaskUpdateDispatcher
from harvest_asana_sync.sync.fetcher import TimeEntryFetcher
from harvest_asana_sync.sync.resolver import DEFAULT_FIELD_NAME, TaskFieldResolver
from harvest_asana_sync.utils.logging import UpdateLog
from harvest_asana_sync.utils.storage import Snapshot, SnapshotStore, SyncPhase

logger = logging.getLogger(__name__)


class RunReport:
    """Results from a single invocation."""

    def __init__(self, phase: SyncPhase, dry_run: bool = False) -> None:
        """Initialize run report."""
        self.phase = phase
        self.dry_run = dry_run
        self.entries_fetched = 0
        self.references_aggregated = 0
        self.changes_staged = 0
        self.tasks_updated = 0
        self.tasks_skipped = 0
        self.tasks_failed = 0
        self.results: list[DispatchResult] = []
        self.errors: list[str] = []

    def add_result(self, result: DispatchResult) -> None:
        """Record the outcome of one task write."""
        self.results.append(result)
        if result.ok:
            self.tasks_updated += 1
        else:
            self.tasks_failed += 1
            self.errors.append(f"{result.task_id}: {result.error}")

    def add_skip(self, task_id: str, reason: str | None = None) -> None:
        """Record a task that was not written."""
        self.tasks_skipped += 1
        if reason:
            self.errors.append(f"{task_id}: {reason}")

    def __str__(self) -> str:
        """String representation of results."""
        if self.phase is SyncPhase.FETCH:
            return (
                f"Fetched: {self.entries_fetched}, "
                f"References: {self.references_aggregated}, "
                f"Staged: {self.changes_staged}"
            )
        return (
            f"Updated: {self.tasks_updated}, "
            f"Skipped: {self.tasks_skipped}, "
            f"Failed: {self.tasks_failed}"
        )


class SyncOrchestrator:
    """Runs exactly one phase per invocation, chosen from the ledger.

    A dirty pending diff means the previous run staged changes, so this run
    dispatches them. Otherwise this run fetches and stages a new diff.
    """

    def __init__(
        self,
        store: SnapshotStore,
        fetcher: TimeEntryFetcher,
        resolver: TaskFieldResolver,
        dispatcher: TaskUpdateDispatcher,
        update_log: UpdateLog,
        field_name: str = DEFAULT_FIELD_NAME,
        dry_run: bool = False,
    ) -> None:
        """Initialize sync orchestrator.

        Args:
            store: Ledger shared between invocations.
            fetcher: Harvest time entry fetcher.
            resolver: Asana custom field resolver.
            dispatcher: Asana custom field writer.
            update_log: Success and error log for Asana writes and lookups.
            field_name: Display name of the hours custom field.
            dry_run: If True, compute everything but leave the ledger untouched.
        """
        self.store = store
        self.fetcher = fetcher
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.update_log = update_log
        self.field_name = field_name
        self.dry_run = dry_run

    def determine_phase(self) -> SyncPhase:
        """Get the phase the next run will execute."""
        return self.store.load().next_phase

    def run(self, from_date: date | None = None, to_date: date | None = None) -> RunReport:
        """Execute one invocation.

        Args:
            from_date: Start of the fetch window (fetch phase only).
            to_date: End of the fetch window (fetch phase only).

        Returns:
            Report of the executed phase.

        Raises:
            LockError: If another run is in progress.
            RetrievalError: If Harvest data could not be retrieved.
            EmptyInputError: If Harvest returned no attributable entries.
            SnapshotError: If the ledger cannot be read.
        """
        with self.store.lock():
            snapshot = self.store.load()
            phase = snapshot.next_phase
            report = RunReport(phase, dry_run=self.dry_run)
            logger.info(f"Running {phase.value} phase{' (dry run)' if self.dry_run else ''}")

            if phase is SyncPhase.DISPATCH:
                self._dispatch(snapshot, report)
            else:
                self._fetch(snapshot, report, from_date, to_date)

        logger.info(f"Run complete: {report}")
        return report

    def _fetch(
        self,
        snapshot: Snapshot,
        report: RunReport,
        from_date: date | None,
        to_date: date | None,
    ) -> None:
        entries = self.fetcher.fetch(from_date, to_date)
        report.entries_fetched = len(entries)

        totals = aggregate(entries)
        report.references_aggregated = len(totals)

        merged, diff = reconcile(totals, snapshot.all_hours)
        report.changes_staged = len(diff)

        if self.dry_run:
            for reference_id, hours in diff.items():
                logger.info(f"[DRY RUN] Would stage {reference_id}: {hours}h")
            return

        self.store.commit_reconciliation(merged, diff)
        if diff:
            logger.info(f"Staged {len(diff)} changed total(s) for the next run")
        else:
            logger.info("No totals changed")

    def _dispatch(self, snapshot: Snapshot, report: RunReport) -> None:
        pending = snapshot.pending_diff.hours
        logger.info(f"Dispatching {len(pending)} staged total(s)")

        for task_id, hours in pending.items():
            try:
                field_id = self.resolver.resolve_field_id(task_id, self.field_name)
            except FieldLookupError as e:
                logger.warning(f"Skipping task {task_id}: {e}")
                self.update_log.record_failure(
                    task_id,
                    str(e),
                    status_code=e.status_code,
                    action="look up custom field",
                )
                report.add_skip(task_id, str(e))
                continue

            if field_id is None:
                report.add_skip(task_id)
                continue

            report.add_result(self.dispatcher.apply_hours(task_id, field_id, hours))

        if self.dry_run:
            return

        # Failed tasks are not retried until their total changes again.
        self.store.mark_dispatched()
