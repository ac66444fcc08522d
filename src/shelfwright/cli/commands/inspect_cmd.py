# ABOUTME: The `shelfwright inspect` command: a diagnostic dump of both stores.
# ABOUTME: Shows collections with members, catalog statistics, recent books, and dangling links.

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shelfwright.cli.options import companion_option, library_option
from shelfwright.cli.stores import open_stores
from shelfwright.core.diagnostics import inspect_library

console = Console()


@click.command("inspect")
@library_option
@companion_option
def inspect(library_path: Path | None, companion_path: Path | None) -> None:
    """Print collections, catalog statistics, and consistency problems."""
    with open_stores(console, library_path, companion_path) as stores:
        report = inspect_library(stores.catalog, stores.companion)
        default_owner = stores.settings.default_owner_name

    if stores.companion is not None:
        console.print("[bold]Collections[/bold]")
        if not report.collections:
            console.print("  [dim]none[/dim]")
        for view in report.collections:
            collection = view.collection
            visibility = "public" if collection.is_public else "private"
            console.print(
                f"  [cyan]{escape(collection.name)}[/cyan] (ID {collection.id}) - "
                f"owner {escape(collection.owner_name or default_owner)}, {visibility}"
            )
            for member in view.members:
                console.print(f"    [{member.position}] {escape(member.display_title)}")
        console.print()

    stats = Table(title="Catalog", show_header=False, box=None, pad_edge=False)
    stats.add_column("Field", style="bold", width=14)
    stats.add_column("Value")
    stats.add_row("Books", str(report.stats.books))
    stats.add_row("Authors", str(report.stats.authors))
    stats.add_row("Series", str(report.stats.series))
    console.print(stats)

    if report.recent:
        console.print("\n[bold]Recently added[/bold]")
        for book in report.recent:
            console.print(f"  {book.id}: {escape(book.title)} ({book.timestamp})")

    if report.dangling_links:
        console.print("\n[yellow]Collection links to missing books:[/yellow]")
        for link in report.dangling_links:
            console.print(f"  book {link.book_id} in [cyan]{escape(link.collection_name)}[/cyan]")
