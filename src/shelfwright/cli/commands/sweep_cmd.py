# ABOUTME: Consistency commands: `cleanup`, `sync-repair`, and `sync-diagnose`.
# ABOUTME: Run the orphan and repair passes and report device-sync setup per collection.

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shelfwright.cli.options import companion_option, library_option
from shelfwright.cli.stores import open_stores
from shelfwright.core.diagnostics import SyncStatus, diagnose_sync
from shelfwright.core.sweep import SweepReport, full_cleanup, repair_pass

console = Console()

_STATUS_STYLES = {
    SyncStatus.FULL: "green",
    SyncStatus.MISSING_READING_STATE: "yellow",
    SyncStatus.MISSING_SYNC_ENTRY: "yellow",
    SyncStatus.NONE: "red",
}


def _print_report(report: SweepReport) -> None:
    fixed = {name: count for name, count in report.fixes.items() if count}
    if fixed:
        table = Table()
        table.add_column("Category")
        table.add_column("Fixed", justify="right")
        for name, count in fixed.items():
            table.add_row(name, str(count))
        console.print(table)
    console.print(f"[bold]{report.total}[/bold] fix(es) applied.")

    if report.failures:
        for name, message in report.failures.items():
            console.print(f"[red]{escape(name)} failed: {escape(message)}[/red]")
        raise SystemExit(1)


@click.command("cleanup")
@library_option
@companion_option
def cleanup(library_path: Path | None, companion_path: Path | None) -> None:
    """Remove orphaned rows from both stores, then repair what remains."""
    with open_stores(console, library_path, companion_path) as stores:
        report = full_cleanup(stores.catalog, stores.library_root, companion=stores.companion)
    _print_report(report)


@click.command("sync-repair")
@library_option
@companion_option
def sync_repair(library_path: Path | None, companion_path: Path | None) -> None:
    """Repair NULL timestamps and device-sync bookkeeping."""
    with open_stores(console, library_path, companion_path, require_companion=True) as stores:
        report = repair_pass(stores.catalog, companion=stores.companion)
    _print_report(report)


@click.command("sync-diagnose")
@library_option
@companion_option
def sync_diagnose(library_path: Path | None, companion_path: Path | None) -> None:
    """Show sync-enabled collections and each member's sync status."""
    with open_stores(console, library_path, companion_path, require_companion=True) as stores:
        assert stores.companion is not None
        diagnosis = diagnose_sync(stores.catalog, stores.companion)
        default_owner = stores.settings.default_owner_name

    console.print("[bold]Users with sync collections[/bold]")
    if not diagnosis.users:
        console.print("  [dim]none[/dim]")
    for user in diagnosis.users:
        console.print(
            f"  {escape(user.name or '')} (ID {user.id}) - only sync collections: "
            f"{'yes' if user.only_shelves_sync else 'no'}"
        )

    console.print("\n[bold]Sync collections[/bold]")
    if not diagnosis.collections:
        console.print("  [dim]none[/dim]")
    for view in diagnosis.collections:
        collection = view.collection
        console.print(
            f"  [cyan]{escape(collection.name)}[/cyan] (ID {collection.id}) - "
            f"owner {escape(collection.owner_name or default_owner)} - books {len(view.members)}"
        )
        console.print(f"    Created: {collection.created} | Modified: {collection.last_modified}")
        for member in view.members:
            status = member.status or SyncStatus.NONE
            style = _STATUS_STYLES[status]
            console.print(
                f"    [{member.position}] {escape(member.display_title)} - "
                f"[{style}]{status.value}[/{style}] (added {member.date_added})"
            )
