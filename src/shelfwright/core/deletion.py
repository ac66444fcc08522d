# ABOUTME: Cascade deletion: removes a book from the catalog, the companion store, and the library tree.
# ABOUTME: Each store commits on its own; filesystem steps are best-effort and reported individually.

import logging
import shutil
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path

from shelfwright.config import Settings
from shelfwright.db.catalog import LibraryCatalog
from shelfwright.db.companion import CompanionStore
from shelfwright.db.connection import transaction
from shelfwright.db.registry import COMPANION_BOOK_TABLES, READING_STATE_CHILD_TABLES

logger = logging.getLogger(__name__)


@dataclass
class DeletionReport:
    """What a deletion removed, and which filesystem steps failed."""

    book_id: int
    title: str | None = None
    path: str | None = None
    catalog_deleted: bool = False
    links_removed: int = 0
    removed_collections: list[str] = field(default_factory=list)
    sync_rows_removed: int = 0
    cover_deleted: bool = False
    directory_deleted: bool = False
    author_directory_deleted: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        """Whether the book was present in the catalog."""
        return self.title is not None


def purge_companion_rows(conn: sqlite3.Connection, book_id: int) -> tuple[int, list[str], int]:
    """Remove a book's membership and sync bookkeeping from the companion store.

    Leaf rows go first: bookmarks and statistics, then reading states, then
    per-book tables and acknowledgments, then membership links. Collections
    that held the book and are now empty are deleted last. Runs inside the
    caller's transaction.

    Returns:
        (links removed, names of collections removed, sync rows removed)
    """
    sync_rows = 0
    state_ids = [
        row[0]
        for row in conn.execute("SELECT id FROM kobo_reading_state WHERE book_id = ?", (book_id,))
    ]
    for state_id in state_ids:
        for table in READING_STATE_CHILD_TABLES:
            sync_rows += conn.execute(
                f"DELETE FROM {table} WHERE kobo_reading_state_id = ?", (state_id,)
            ).rowcount
    sync_rows += conn.execute(
        "DELETE FROM kobo_reading_state WHERE book_id = ?", (book_id,)
    ).rowcount
    for table in COMPANION_BOOK_TABLES:
        sync_rows += conn.execute(f"DELETE FROM {table} WHERE book_id = ?", (book_id,)).rowcount
    sync_rows += conn.execute(
        "DELETE FROM kobo_synced_books WHERE book_id = ?", (book_id,)
    ).rowcount

    collection_ids = [
        row[0]
        for row in conn.execute(
            "SELECT DISTINCT shelf FROM book_shelf_link WHERE book_id = ?", (book_id,)
        )
    ]
    links = conn.execute("DELETE FROM book_shelf_link WHERE book_id = ?", (book_id,)).rowcount

    removed: list[str] = []
    for collection_id in collection_ids:
        remaining = conn.execute(
            "SELECT COUNT(*) FROM book_shelf_link WHERE shelf = ?", (collection_id,)
        ).fetchone()[0]
        if remaining:
            continue
        row = conn.execute("SELECT name FROM shelf WHERE id = ?", (collection_id,)).fetchone()
        conn.execute("DELETE FROM shelf WHERE id = ?", (collection_id,))
        if row is not None:
            removed.append(row[0])
    return links, removed, sync_rows


def _remove_book_tree(book_dir: Path, cover_filename: str, report: DeletionReport) -> None:
    """Delete the cover, the book directory, and an author directory left empty."""
    cover = book_dir / cover_filename
    if cover.is_file():
        try:
            cover.unlink()
            report.cover_deleted = True
            logger.info("Deleted cover %s", cover)
        except OSError as exc:
            report.errors.append(f"Failed to remove cover image {cover}: {exc}")

    if not book_dir.exists():
        logger.info("Book directory not found, skipping filesystem delete: %s", book_dir)
        return

    try:
        shutil.rmtree(book_dir)
    except OSError as exc:
        report.errors.append(f"Failed to delete book directory {book_dir}: {exc}")
        return
    report.directory_deleted = True
    logger.info("Deleted book directory %s", book_dir)

    author_dir = book_dir.parent
    if author_dir.is_dir() and not any(author_dir.iterdir()):
        try:
            author_dir.rmdir()
            report.author_directory_deleted = True
            logger.info("Deleted empty author directory %s", author_dir)
        except OSError as exc:
            report.errors.append(f"Failed to delete author directory {author_dir}: {exc}")


def delete_book(
    book_id: int,
    catalog: LibraryCatalog,
    library_root: Path,
    *,
    companion: CompanionStore | None = None,
    settings: Settings | None = None,
) -> DeletionReport:
    """Delete a book everywhere it is referenced.

    A book missing from the catalog is not an error: the companion store
    may still hold links to it. The catalog transaction commits before the
    companion transaction starts; files are removed after both.

    Raises:
        sqlite3.Error: If either store's transaction fails (that store is rolled back).
    """
    settings = settings or Settings()
    report = DeletionReport(book_id=book_id)

    book = catalog.get_by_id(book_id)
    if book is None:
        logger.warning(
            "Book %d not found in catalog; cleaning up collections and files anyway", book_id
        )
    else:
        report.title = book.title
        report.path = book.path

    with transaction(catalog.conn):
        report.catalog_deleted = catalog.delete_book_rows(book_id)
    if report.catalog_deleted:
        logger.info("Deleted catalog entry for book %d", book_id)

    if companion is not None:
        with transaction(companion.conn):
            links, removed, sync_rows = purge_companion_rows(companion.conn, book_id)
        report.links_removed = links
        report.removed_collections = removed
        report.sync_rows_removed = sync_rows
        logger.info(
            "Removed %d collection link(s) and %d sync row(s) for book %d",
            links, sync_rows, book_id,
        )
        for name in removed:
            logger.info("Removed empty collection '%s'", name)

    if report.path:
        _remove_book_tree(library_root / report.path, settings.cover_filename, report)

    return report
