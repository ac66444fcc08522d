# ABOUTME: Collection commands: `collections`, `collect`, and `clean-collections`.
# ABOUTME: List collections, add an existing book to one, and drop empty ones.

import sqlite3
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shelfwright.cli.options import companion_option, library_option, owner_option
from shelfwright.cli.stores import open_stores
from shelfwright.errors import ShelfwrightError

console = Console()


@click.command("collections")
@library_option
@companion_option
def collections(library_path: Path | None, companion_path: Path | None) -> None:
    """List collections in the companion store."""
    with open_stores(console, library_path, companion_path, require_companion=True) as stores:
        assert stores.companion is not None
        rows = stores.companion.list_collections()

        if not rows:
            console.print("[yellow]No collections found.[/yellow]")
            return

        table = Table()
        table.add_column("ID", style="dim", width=4)
        table.add_column("Name", style="bold")
        table.add_column("Owner")
        table.add_column("Books", justify="right")
        table.add_column("Sync")
        for collection in rows:
            table.add_row(
                str(collection.id),
                escape(collection.name),
                escape(collection.owner_name or stores.settings.default_owner_name),
                str(collection.member_count),
                "yes" if collection.sync_enabled else "",
            )
        console.print(table)


@click.command("collect")
@click.argument("book_id", type=int)
@click.argument("collection_name")
@library_option
@companion_option
@owner_option
def collect(
    book_id: int,
    collection_name: str,
    library_path: Path | None,
    companion_path: Path | None,
    owner: str | None,
) -> None:
    """Add an existing book to a collection, creating the collection if needed."""
    with open_stores(console, library_path, companion_path, require_companion=True) as stores:
        assert stores.companion is not None
        book = stores.catalog.get_by_id(book_id)
        if book is None:
            console.print(f"[red]Book {book_id} not found.[/red]")
            raise SystemExit(1)

        try:
            added = stores.companion.add_book_to_collection(book_id, collection_name, owner)
        except (ShelfwrightError, sqlite3.Error) as exc:
            console.print(f"[red]Error: {escape(str(exc))}[/red]")
            raise SystemExit(1) from exc

    if added:
        console.print(
            f"Added [bold]{escape(book.title)}[/bold] to [cyan]{escape(collection_name)}[/cyan]."
        )
    else:
        console.print(
            f"[bold]{escape(book.title)}[/bold] is already in [cyan]{escape(collection_name)}[/cyan]."
        )


@click.command("clean-collections")
@library_option
@companion_option
def clean_collections(library_path: Path | None, companion_path: Path | None) -> None:
    """Drop links to missing books, then remove collections with no books."""
    with open_stores(console, library_path, companion_path, require_companion=True) as stores:
        assert stores.companion is not None
        cleanups = stores.companion.remove_empty_collections(stores.catalog.book_ids())

    if not cleanups:
        console.print("No empty collections found.")
        return

    for cleanup in cleanups:
        if cleanup.orphan_links_removed:
            console.print(
                f"Removed {cleanup.orphan_links_removed} link(s) to missing books "
                f"from [cyan]{escape(cleanup.name)}[/cyan]."
            )
        if cleanup.removed:
            console.print(f"Removed empty collection [cyan]{escape(cleanup.name)}[/cyan].")
