# ABOUTME: Import pipeline: extract metadata, upsert the catalog, shelve, then place files.
# ABOUTME: Single-file imports propagate errors; directory imports isolate them per file.

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from shelfwright.config import Settings
from shelfwright.core.clock import Clock, SystemClock
from shelfwright.core.placement import PlacementResult, place_book_files
from shelfwright.core.upsert import UpsertAction, UpsertResult, upsert_book
from shelfwright.db.catalog import LibraryCatalog
from shelfwright.db.companion import CompanionStore
from shelfwright.db.connection import transaction
from shelfwright.db.hashing import Hasher, compute_file_hash
from shelfwright.errors import ShelfwrightError, StoreNotFoundError
from shelfwright.formats.epub import read_epub_metadata
from shelfwright.metadata.types import BookMetadata

logger = logging.getLogger(__name__)

BOOK_PATTERNS = ("*.epub", "*.kepub")


@dataclass
class BookImport:
    """Outcome of importing one file."""

    metadata: BookMetadata
    upsert: UpsertResult
    newly_shelved: bool = False
    placement: PlacementResult | None = None

    @property
    def book_id(self) -> int:
        return self.upsert.book_id

    @property
    def action(self) -> UpsertAction:
        return self.upsert.action


@dataclass
class ImportResult:
    """Tally of a directory import."""

    added: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: int = 0
    error_details: list[tuple[Path, str]] = field(default_factory=list)

    def record(self, outcome: BookImport) -> None:
        if outcome.action is UpsertAction.CREATED:
            self.added += 1
        elif outcome.action is UpsertAction.UPDATED:
            self.updated += 1
        else:
            self.unchanged += 1


# Called after each file with the outcome, or with the error message on failure.
ProgressFn = Callable[[Path, BookImport | None, str | None], None]


def find_book_files(directory: Path) -> list[Path]:
    """Recursively find EPUB and KEPUB files in a directory, sorted."""
    found: set[Path] = set()
    for pattern in BOOK_PATTERNS:
        found.update(path for path in directory.rglob(pattern) if path.is_file())
    return sorted(found)


def import_book(
    path: Path,
    catalog: LibraryCatalog,
    library_root: Path,
    *,
    companion: CompanionStore | None = None,
    collection: str | None = None,
    owner: str | None = None,
    settings: Settings | None = None,
    clock: Clock | None = None,
    hasher: Hasher = compute_file_hash,
) -> BookImport:
    """Import one book file into the library.

    A collection owner is checked before any write. The catalog transaction
    commits first, then the companion store is
    updated, then files are placed. A crash between steps leaves the later
    stores behind; the consistency sweep repairs that on its next run.

    Args:
        path: The .epub/.kepub file to import.
        catalog: Catalog store wrapper.
        library_root: Directory holding metadata.db and the book tree.
        companion: Companion store, required when `collection` is given.
        collection: Name of a collection to add the book to.
        owner: Username owning the collection; None means the default owner.

    Raises:
        MetadataError: If the file cannot be read or lacks title or author.
        UnsupportedFormatError: If the file is not EPUB or KEPUB.
        UserNotFoundError: If `owner` is not a known user.
        StoreNotFoundError: If a collection is requested without a companion store.
        sqlite3.Error: On any storage failure (that store's transaction rolls back).
        LibraryFileError: If file placement fails.
    """
    settings = settings or Settings()
    clock = clock or SystemClock()
    if collection is not None:
        if companion is None:
            raise StoreNotFoundError(
                "A companion database is required to add books to a collection"
            )
        # Unknown owners fail before anything is written.
        companion.resolve_owner(owner)

    metadata = read_epub_metadata(path)
    logger.info("Read metadata: '%s' by %s", metadata.title, metadata.author)

    upsert = upsert_book(catalog, metadata, library_root, clock=clock, hasher=hasher)
    outcome = BookImport(metadata=metadata, upsert=upsert)

    if collection is not None and companion is not None:
        outcome.newly_shelved = companion.add_book_to_collection(
            upsert.book_id,
            collection,
            owner,
            allow_readd=upsert.action is UpsertAction.UPDATED,
        )

    if not upsert.needs_file_placement:
        logger.info("Content unchanged for book %d; leaving files in place", upsert.book_id)
        return outcome

    outcome.placement = place_book_files(
        library_root,
        metadata,
        upsert.book_path,
        is_update=upsert.is_update,
        settings=settings,
    )

    book = catalog.get_by_id(upsert.book_id)
    if book is not None and book.has_cover != outcome.placement.cover_saved:
        with transaction(catalog.conn):
            catalog.set_has_cover(upsert.book_id, outcome.placement.cover_saved)
        logger.info(
            "Marked book %d as %s a cover",
            upsert.book_id, "having" if outcome.placement.cover_saved else "not having",
        )

    return outcome


def import_directory(
    directory: Path,
    catalog: LibraryCatalog,
    library_root: Path,
    *,
    companion: CompanionStore | None = None,
    collection: str | None = None,
    owner: str | None = None,
    settings: Settings | None = None,
    clock: Clock | None = None,
    hasher: Hasher = compute_file_hash,
    on_progress: ProgressFn | None = None,
) -> ImportResult:
    """Import every book file under a directory.

    A failure on one file is recorded in the result and the batch moves on
    to the next file.
    """
    result = ImportResult()
    for book_path in find_book_files(directory):
        try:
            outcome = import_book(
                book_path,
                catalog,
                library_root,
                companion=companion,
                collection=collection,
                owner=owner,
                settings=settings,
                clock=clock,
                hasher=hasher,
            )
        except (ShelfwrightError, sqlite3.Error, OSError) as exc:
            logger.warning("Failed to import %s: %s", book_path, exc)
            result.errors += 1
            result.error_details.append((book_path, str(exc)))
            if on_progress is not None:
                on_progress(book_path, None, str(exc))
            continue

        result.record(outcome)
        if on_progress is not None:
            on_progress(book_path, outcome, None)
    return result
