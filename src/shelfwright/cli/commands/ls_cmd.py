# ABOUTME: The `shelfwright ls` command for listing cataloged books.
# ABOUTME: Filters by collection or by "on no collection" when a companion store is given.

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shelfwright.cli.options import companion_option, library_option
from shelfwright.cli.stores import Stores, open_stores
from shelfwright.core.clock import parse_catalog_timestamp
from shelfwright.db.catalog import CatalogBook
from shelfwright.db.registry import Entity
from shelfwright.errors import CollectionNotFoundError

console = Console()


def _series_display(stores: Stores, book: CatalogBook) -> str:
    series = stores.catalog.linked_names(book.id, Entity.SERIES)
    if not series:
        return ""
    return escape(f"{series[0]} (#{book.series_index:g})")


def _collections_display(stores: Stores, book: CatalogBook) -> str:
    if stores.companion is None:
        return ""
    default_owner = stores.settings.default_owner_name
    names = ", ".join(
        f"{collection.name} ({collection.owner_name or default_owner})"
        for collection in stores.companion.collections_for_book(book.id)
    )
    return escape(names)


def _print_details(stores: Stores, book: CatalogBook) -> None:
    catalog = stores.catalog
    table = Table(
        title=f"{book.id}: {escape(book.title)}", show_header=False, box=None, pad_edge=False
    )
    table.add_column("Field", style="bold", width=14)
    table.add_column("Value")

    table.add_row("Authors", escape(", ".join(catalog.linked_names(book.id, Entity.AUTHOR))))
    table.add_row("Author Sort", escape(book.author_sort or ""))
    table.add_row("Title Sort", escape(book.sort or ""))
    collections = _collections_display(stores, book)
    if collections:
        table.add_row("Collections", collections)
    series = _series_display(stores, book)
    if series:
        table.add_row("Series", series)
    tags = catalog.linked_names(book.id, Entity.TAG)
    if tags:
        table.add_row("Tags", escape(", ".join(tags)))
    publishers = catalog.linked_names(book.id, Entity.PUBLISHER)
    if publishers:
        table.add_row("Publisher", escape(publishers[0]))
    pubdate = parse_catalog_timestamp(book.pubdate)
    if pubdate is not None:
        table.add_row("Published", pubdate.date().isoformat())
    languages = catalog.linked_names(book.id, Entity.LANGUAGE)
    if languages:
        table.add_row("Language", ", ".join(languages))
    for id_type, value in catalog.identifiers(book.id):
        table.add_row(escape(id_type.upper()), escape(value))
    table.add_row("Added", book.timestamp or "")
    table.add_row("Modified", book.last_modified or "")
    table.add_row("UUID", book.uuid or "")
    table.add_row("Has Cover", "yes" if book.has_cover else "no")
    table.add_row("Path", escape(book.path))

    console.print(table)
    console.print()


@click.command("ls")
@library_option
@companion_option
@click.option("-c", "--collection", default=None, help="Only books on this collection.")
@click.option(
    "--unshelved",
    is_flag=True,
    default=False,
    help="Only books that are on no collection.",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show every field per book.")
def ls(
    library_path: Path | None,
    companion_path: Path | None,
    collection: str | None,
    unshelved: bool,
    verbose: bool,
) -> None:
    """List books in the library, ordered by title."""
    if collection is not None and unshelved:
        console.print("[red]--collection and --unshelved cannot be combined.[/red]")
        raise SystemExit(1)

    needs_companion = collection is not None or unshelved
    with open_stores(
        console, library_path, companion_path, require_companion=needs_companion
    ) as stores:
        catalog = stores.catalog
        if collection is not None and stores.companion is not None:
            try:
                books = catalog.list_books(stores.companion.book_ids_in_collection(collection))
            except CollectionNotFoundError as exc:
                console.print(f"[red]{escape(str(exc))}[/red]")
                raise SystemExit(1) from exc
        elif unshelved and stores.companion is not None:
            shelved = stores.companion.shelved_book_ids()
            books = [book for book in catalog.list_books() if book.id not in shelved]
        else:
            books = catalog.list_books()

        if not books:
            console.print("[yellow]No books found.[/yellow]")
            return

        if verbose:
            for book in books:
                _print_details(stores, book)
        else:
            table = Table()
            table.add_column("ID", style="dim", width=4)
            table.add_column("Title", style="bold")
            table.add_column("Author")
            table.add_column("Series")
            if stores.companion is not None:
                table.add_column("Collections")

            for book in books:
                authors = ", ".join(catalog.linked_names(book.id, Entity.AUTHOR))
                row = [
                    str(book.id),
                    escape(book.title),
                    escape(authors) if authors else "[dim]unknown[/dim]",
                    _series_display(stores, book),
                ]
                if stores.companion is not None:
                    row.append(_collections_display(stores, book))
                table.add_row(*row)
            console.print(table)

        console.print(f"\n[dim]{len(books)} book(s)[/dim]")
