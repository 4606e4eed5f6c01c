"""Command-line interface for the Harvest to Asana synchronizer."""

import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from harvest_asana_sync import __version__
from harvest_asana_sync.asana import AsanaClient
from harvest_asana_sync.config import PathSettings, Settings
from harvest_asana_sync.exceptions import ConfigError, LockError, SyncError
from harvest_asana_sync.harvest import HarvestClient
from harvest_asana_sync.sync import (
    RunReport,
    SyncOrchestrator,
    TaskFieldResolver,
    TaskUpdateDispatcher,
    TimeEntryFetcher,
)
from harvest_asana_sync.utils import SnapshotStore, SyncPhase, UpdateLog, get_logger, setup_logging

app = typer.Typer(help="Sync Harvest hours into Asana task custom fields")
console = Console()
logger = get_logger(__name__)


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        console.print(f"[red]Invalid date '{value}'. Use YYYY-MM-DD[/red]")
        raise typer.Exit(code=1)


def _print_report(report: RunReport) -> None:
    title = f"{report.phase.value.capitalize()} Phase Results"
    if report.dry_run:
        title += " (dry run)"

    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="magenta")

    if report.phase is SyncPhase.FETCH:
        table.add_row("Entries fetched", str(report.entries_fetched))
        table.add_row("References", str(report.references_aggregated))
        table.add_row("Changed totals staged", str(report.changes_staged))
    else:
        table.add_row("Updated", str(report.tasks_updated))
        table.add_row("Skipped", str(report.tasks_skipped))
        table.add_row("Failed", str(report.tasks_failed))

    console.print(table)

    if report.errors:
        console.print("\n[red]Errors:[/red]")
        for error in report.errors:
            console.print(f"  - {error}")


@app.command()
def run(
    from_date: Optional[str] = typer.Option(
        None,
        "--from-date",
        help="Start of the Harvest window (YYYY-MM-DD). Defaults to the lookback period.",
    ),
    to_date: Optional[str] = typer.Option(
        None,
        "--to-date",
        help="End of the Harvest window (YYYY-MM-DD). Defaults to today.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Compute the phase without writing to Asana or the ledger.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging.",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        help="YAML settings file. Defaults to ~/.harvest-asana-sync/config.yaml",
    ),
    env_file: Optional[Path] = typer.Option(
        None,
        "--env-file",
        help=".env file with credentials. Defaults to ./.env",
    ),
) -> None:
    """Run one phase: stage changed Harvest totals, or apply staged totals to Asana."""
    from_dt = _parse_date(from_date)
    to_dt = _parse_date(to_date)

    try:
        settings = Settings.load(config_file=config_file, env_file=env_file)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(code=1)

    setup_logging(
        log_level=logging.DEBUG if verbose else logging.INFO,
        log_dir=settings.log_dir,
    )
    logger.info(f"Harvest to Asana Sync v{__version__}")

    store = SnapshotStore(settings.data_dir)
    update_log = UpdateLog(settings.log_dir)

    try:
        with HarvestClient(
            settings.harvest_api_token,
            settings.harvest_account_id,
            timeout=settings.http_timeout,
        ) as harvest_client, AsanaClient(
            settings.asana_api_token,
            timeout=settings.http_timeout,
        ) as asana_client:
            orchestrator = SyncOrchestrator(
                store=store,
                fetcher=TimeEntryFetcher(harvest_client, lookback_days=settings.lookback_days),
                resolver=TaskFieldResolver(asana_client),
                dispatcher=TaskUpdateDispatcher(asana_client, update_log, dry_run=dry_run),
                update_log=update_log,
                field_name=settings.custom_field_name,
                dry_run=dry_run,
            )
            report = orchestrator.run(from_date=from_dt, to_date=to_dt)
    except LockError as e:
        logger.warning(f"Skipping run: {e}")
        console.print("[yellow]Another run is in progress, nothing to do[/yellow]")
        return
    except SyncError as e:
        logger.error(f"Run failed: {e}", exc_info=True)
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    _print_report(report)
    console.print("[green]Success![/green]")


@app.command()
def status(
    data_dir: Optional[Path] = typer.Option(
        None,
        "--data-dir",
        help="Ledger directory. Overrides the configured data directory.",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        help="YAML settings file. Defaults to ~/.harvest-asana-sync/config.yaml",
    ),
    env_file: Optional[Path] = typer.Option(
        None,
        "--env-file",
        help=".env file. Defaults to ./.env",
    ),
) -> None:
    """Show the ledger: next phase, tracked totals and staged changes."""
    if data_dir is None:
        try:
            data_dir = PathSettings.load(config_file=config_file, env_file=env_file).data_dir
        except ConfigError as e:
            console.print(f"[red]Configuration error: {e}[/red]")
            raise typer.Exit(code=1)

    store = SnapshotStore(data_dir.expanduser())

    try:
        snapshot = store.load()
    except SyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    if not store.exists():
        console.print("[yellow]No ledger yet. The next run will fetch.[/yellow]")
        return

    pending = snapshot.pending_diff
    console.print(f"[bold cyan]Next phase:[/bold cyan] {snapshot.next_phase.value}")
    console.print(f"[bold cyan]Tracked tasks:[/bold cyan] {len(snapshot.all_hours)}")
    if snapshot.updated_at:
        console.print(f"[bold cyan]Last written:[/bold cyan] {snapshot.updated_at.isoformat()}")

    if not pending.hours:
        console.print("[yellow]No staged changes.[/yellow]")
        return

    title = "Staged Changes" if pending.dirty else "Last Dispatched Changes"
    table = Table(title=title)
    table.add_column("Asana Task", style="cyan")
    table.add_column("Hours", style="magenta")
    for task_id, hours in pending.hours.items():
        table.add_row(task_id, str(hours))
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"Harvest to Asana Sync v{__version__}")


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        console.print(f"[red]Unexpected error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
