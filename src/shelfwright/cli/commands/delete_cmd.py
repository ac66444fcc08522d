# ABOUTME: The `shelfwright delete` command.
# ABOUTME: Removes a book from the catalog, its collections and sync state, and the library tree.

import sqlite3
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from shelfwright.cli.options import companion_option, library_option
from shelfwright.cli.stores import open_stores
from shelfwright.core.deletion import delete_book

console = Console()


@click.command("delete")
@click.argument("book_id", type=int)
@library_option
@companion_option
@click.option("-y", "--yes", is_flag=True, default=False, help="Do not ask for confirmation.")
def delete(
    book_id: int, library_path: Path | None, companion_path: Path | None, yes: bool
) -> None:
    """Delete a book by ID, including its collection memberships and files."""
    with open_stores(console, library_path, companion_path) as stores:
        book = stores.catalog.get_by_id(book_id)
        if book is not None:
            console.print("You are about to delete:")
            console.print(f"  ID:    {book.id}")
            console.print(f"  Title: {escape(book.title)}")
            if not yes and not click.confirm("Continue?", default=False):
                console.print("[yellow]Aborted.[/yellow]")
                return
        else:
            console.print(
                f"[yellow]Book {book_id} not found in the catalog; "
                "cleaning up collections and files anyway.[/yellow]"
            )

        try:
            report = delete_book(
                book_id,
                stores.catalog,
                stores.library_root,
                companion=stores.companion,
                settings=stores.settings,
            )
        except sqlite3.Error as exc:
            console.print(f"[red]Error: {escape(str(exc))}[/red]")
            raise SystemExit(1) from exc

    if report.catalog_deleted:
        console.print(f"Deleted catalog entry for book {book_id}.")
    if report.links_removed:
        console.print(f"Removed book from {report.links_removed} collection(s).")
    for name in report.removed_collections:
        console.print(f"Removed empty collection [cyan]{escape(name)}[/cyan].")
    if report.cover_deleted:
        console.print("Deleted cover image.")
    if report.directory_deleted:
        console.print(f"Deleted book directory {escape(report.path or '')}.")
    if report.author_directory_deleted:
        console.print("Deleted empty author directory.")

    if report.errors:
        for message in report.errors:
            console.print(f"[red]{escape(message)}[/red]")
        raise SystemExit(1)

    console.print(f"[green]Book {book_id} has been deleted.[/green]")
