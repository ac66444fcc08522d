# ABOUTME: The `shelfwright add` and `shelfwright import` commands.
# ABOUTME: Import one book file, or every EPUB/KEPUB under a directory, into the library.

import sqlite3
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from shelfwright.cli.options import companion_option, library_option, owner_option
from shelfwright.cli.stores import open_stores
from shelfwright.core.importer import BookImport, find_book_files, import_book, import_directory
from shelfwright.core.upsert import UpsertAction
from shelfwright.errors import ShelfwrightError

console = Console()

_ACTION_LABELS = {
    UpsertAction.CREATED: "[green]added[/green]",
    UpsertAction.UPDATED: "[cyan]updated[/cyan]",
    UpsertAction.UNCHANGED: "[dim]unchanged[/dim]",
}

collection_option = click.option(
    "-c", "--collection",
    default=None,
    help="Add the book(s) to this collection (needs --companion-db).",
)


def _print_outcome(outcome: BookImport, collection: str | None) -> None:
    meta = outcome.metadata
    console.print(f"[bold]{escape(meta.title)}[/bold] by {escape(meta.author)}")
    console.print(f"  Book {outcome.book_id} {_ACTION_LABELS[outcome.action]}")
    if outcome.upsert.changes is not None and outcome.upsert.changes.has_any_changes:
        console.print(f"  Changed: {', '.join(outcome.upsert.changes.changed_fields)}")
    if collection is not None:
        if outcome.newly_shelved:
            console.print(f"  Added to collection [cyan]{escape(collection)}[/cyan]")
        else:
            console.print(f"  Already in collection [cyan]{escape(collection)}[/cyan]")
    if outcome.placement is not None:
        console.print(f"  File: {escape(str(outcome.placement.book_file))}")
        if outcome.placement.cover_saved:
            console.print("  Cover saved")


@click.command("add")
@click.argument("book_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@library_option
@companion_option
@collection_option
@owner_option
def add(
    book_file: Path,
    library_path: Path | None,
    companion_path: Path | None,
    collection: str | None,
    owner: str | None,
) -> None:
    """Add or update a single EPUB/KEPUB file in the library."""
    with open_stores(
        console, library_path, companion_path, require_companion=collection is not None
    ) as stores:
        try:
            outcome = import_book(
                book_file,
                stores.catalog,
                stores.library_root,
                companion=stores.companion,
                collection=collection,
                owner=owner,
                settings=stores.settings,
            )
        except (ShelfwrightError, sqlite3.Error, OSError) as exc:
            console.print(f"[red]Error: {escape(str(exc))}[/red]")
            raise SystemExit(1) from exc

        _print_outcome(outcome, collection)


@click.command("import")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@library_option
@companion_option
@collection_option
@owner_option
def import_command(
    directory: Path,
    library_path: Path | None,
    companion_path: Path | None,
    collection: str | None,
    owner: str | None,
) -> None:
    """Add or update every EPUB/KEPUB file found under a directory."""
    book_files = find_book_files(directory)
    if not book_files:
        console.print(f"[yellow]No EPUB or KEPUB files found in {escape(str(directory))}[/yellow]")
        return

    console.print(f"Found [bold]{len(book_files)}[/bold] book file(s)\n")

    def on_progress(path: Path, outcome: BookImport | None, error: str | None) -> None:
        if outcome is not None:
            console.print(
                f"  {_ACTION_LABELS[outcome.action]} [bold]{escape(outcome.metadata.title)}[/bold] "
                f"(ID {outcome.book_id})"
            )
        else:
            console.print(f"  [red]error[/red] {escape(path.name)}: {escape(error or '')}")

    with open_stores(
        console, library_path, companion_path, require_companion=collection is not None
    ) as stores:
        result = import_directory(
            directory,
            stores.catalog,
            stores.library_root,
            companion=stores.companion,
            collection=collection,
            owner=owner,
            settings=stores.settings,
            on_progress=on_progress,
        )

    parts = [
        f"[green]{result.added} added[/green]",
        f"[cyan]{result.updated} updated[/cyan]",
        f"[dim]{result.unchanged} unchanged[/dim]",
    ]
    if result.errors:
        parts.append(f"[red]{result.errors} error(s)[/red]")
    console.print("\n" + ", ".join(parts))

    if result.error_details:
        console.print(f"\n[yellow]{result.errors} file(s) could not be imported:[/yellow]")
        for path, msg in result.error_details:
            console.print(f"  [dim]{escape(path.name)}:[/dim] {escape(msg)}")
        raise SystemExit(1)
