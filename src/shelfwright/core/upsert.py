# ABOUTME: Catalog upsert engine: decides create, update, or no-op for an incoming book.
# ABOUTME: Applies the minimal write sequence across the book row and its dependent tables.

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from shelfwright.core.clock import UNDEFINED_DATE, Clock, SystemClock, catalog_timestamp
from shelfwright.core.comparator import DEFAULT_SERIES_INDEX, ChangeSet, compare_metadata
from shelfwright.db.catalog import CatalogBook, LibraryCatalog
from shelfwright.db.connection import transaction
from shelfwright.db.hashing import Hasher, compute_file_hash
from shelfwright.db.registry import Entity
from shelfwright.db.resolver import link_entity, resolve_entity, unlink_entity
from shelfwright.formats.epub import book_format
from shelfwright.metadata.sorting import author_sort_key, title_sort_key
from shelfwright.metadata.types import BookMetadata

logger = logging.getLogger(__name__)

_BOOK_SUFFIXES = (".epub", ".kepub")


class UpsertAction(Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of one upsert.

    `content_verified` is True only when the incoming file was hashed and
    found identical to the copy already in the library tree; file placement
    is skipped exactly in that case.
    """

    action: UpsertAction
    book_id: int
    book_path: str
    content_verified: bool = False
    changes: ChangeSet | None = None

    @property
    def is_update(self) -> bool:
        return self.action is not UpsertAction.CREATED

    @property
    def needs_file_placement(self) -> bool:
        return not self.content_verified


def book_directory_name(author: str, title: str, book_id: int) -> str:
    """Relative storage path for a book: '{author}/{title} ({id})'."""
    return f"{author}/{title} ({book_id})"


def find_existing_book_file(library_root: Path, book_path: str) -> Path | None:
    """Locate the placed EPUB/KEPUB file for a book, if its directory holds one."""
    book_dir = library_root / book_path
    if not book_dir.is_dir():
        return None
    for entry in sorted(book_dir.iterdir()):
        if entry.is_file() and entry.name.lower().endswith(_BOOK_SUFFIXES):
            return entry
    return None


def build_comment(metadata: BookMetadata) -> str | None:
    """Assemble the comments blob from subtitle, description, and rights."""
    parts: list[str] = []
    if metadata.subtitle:
        parts.append(f"<h3>{metadata.subtitle}</h3>")
    if metadata.description:
        parts.append(metadata.description)
    if metadata.rights:
        parts.append(f"<p>Rights: {metadata.rights}</p>")
    return "\n".join(parts) if parts else None


def _files_identical(
    library_root: Path, existing: CatalogBook, source: Path, hasher: Hasher
) -> bool:
    """Hash the incoming and placed files; False when they differ or can't be compared."""
    existing_file = find_existing_book_file(library_root, existing.path)
    if existing_file is None:
        logger.info("Existing file for book %d not found; proceeding with update", existing.id)
        return False

    try:
        existing_hash = hasher(existing_file)
    except OSError as exc:
        logger.warning("Could not hash existing file %s: %s", existing_file, exc)
        return False

    new_hash = hasher(source)
    if new_hash == existing_hash:
        return True
    logger.info("Files differ for book %d; checking metadata changes", existing.id)
    return False


def _apply_update(
    catalog: LibraryCatalog,
    book_id: int,
    metadata: BookMetadata,
    changes: ChangeSet,
    clock: Clock,
) -> None:
    """Write only what changed: timestamps, then publisher and series links."""
    columns: dict[str, object] = {"last_modified": catalog_timestamp(clock.now())}
    if changes.pubdate_changed:
        columns["pubdate"] = catalog_timestamp(metadata.pubdate or UNDEFINED_DATE)
    if changes.series_index_changed:
        columns["series_index"] = (
            metadata.series_index if metadata.series_index is not None else DEFAULT_SERIES_INDEX
        )
    catalog.update_columns(book_id, **columns)

    conn = catalog.conn
    if changes.publisher_changed:
        unlink_entity(conn, Entity.PUBLISHER, book_id)
        if metadata.publisher:
            publisher_id = resolve_entity(conn, Entity.PUBLISHER, metadata.publisher)
            link_entity(conn, Entity.PUBLISHER, book_id, publisher_id)

    if changes.series_changed:
        unlink_entity(conn, Entity.SERIES, book_id)
        if metadata.series:
            series_id = resolve_entity(conn, Entity.SERIES, metadata.series, metadata.series)
            link_entity(conn, Entity.SERIES, book_id, series_id)


def _create(
    catalog: LibraryCatalog,
    metadata: BookMetadata,
    author_sort: str,
    clock: Clock,
) -> tuple[int, str]:
    """Insert a new book with its author, format, comment, and optional links."""
    # Fail before any write on an unsupported file type.
    fmt, _ext = book_format(metadata.source_path)

    conn = catalog.conn
    author_id = resolve_entity(conn, Entity.AUTHOR, metadata.author, author_sort)

    now = clock.now()
    book_id = catalog.insert_book(
        title=metadata.title,
        sort=title_sort_key(metadata.title),
        author_sort=author_sort,
        book_uuid=str(uuid.uuid4()),
        timestamp=now,
        pubdate=metadata.pubdate or UNDEFINED_DATE,
        series_index=(
            metadata.series_index if metadata.series_index is not None else DEFAULT_SERIES_INDEX
        ),
    )

    book_path = book_directory_name(metadata.author, metadata.title, book_id)
    catalog.update_columns(book_id, path=book_path)

    link_entity(conn, Entity.AUTHOR, book_id, author_id)
    catalog.insert_format(book_id, fmt, metadata.file_size, metadata.display_name)

    comment = build_comment(metadata)
    if comment is not None:
        catalog.insert_comment(book_id, comment)

    if metadata.language:
        language_id = resolve_entity(conn, Entity.LANGUAGE, metadata.language)
        link_entity(conn, Entity.LANGUAGE, book_id, language_id)

    if metadata.isbn:
        catalog.insert_identifier(book_id, "isbn", metadata.isbn)

    if metadata.publisher:
        publisher_id = resolve_entity(conn, Entity.PUBLISHER, metadata.publisher)
        link_entity(conn, Entity.PUBLISHER, book_id, publisher_id)

    if metadata.series:
        series_id = resolve_entity(conn, Entity.SERIES, metadata.series, metadata.series)
        link_entity(conn, Entity.SERIES, book_id, series_id)

    return book_id, book_path


def upsert_book(
    catalog: LibraryCatalog,
    metadata: BookMetadata,
    library_root: Path,
    *,
    clock: Clock | None = None,
    hasher: Hasher = compute_file_hash,
) -> UpsertResult:
    """Create, update, or leave alone the catalog entry for an incoming book.

    The book is identified by (title, author sort key). For a known book the
    incoming file is first hashed against the placed copy; identical content
    is a no-op. Otherwise metadata is compared field by field and only the
    changed columns and links are rewritten. Everything happens in one
    catalog transaction; no files are written.

    Raises:
        UnsupportedFormatError: If a new book's file is not EPUB or KEPUB.
        sqlite3.Error: On any constraint violation (the transaction is rolled back).
    """
    clock = clock or SystemClock()
    author_sort = author_sort_key(metadata.author)

    with transaction(catalog.conn):
        existing = catalog.find_by_natural_key(metadata.title, author_sort)

        if existing is None:
            book_id, book_path = _create(catalog, metadata, author_sort, clock)
            logger.info("Created book %d at %s", book_id, book_path)
            return UpsertResult(UpsertAction.CREATED, book_id, book_path)

        logger.info("Found existing book with id %d; checking file hash", existing.id)
        if _files_identical(library_root, existing, metadata.source_path, hasher):
            logger.info("Files are identical; no changes needed for book %d", existing.id)
            return UpsertResult(
                UpsertAction.UNCHANGED, existing.id, existing.path, content_verified=True
            )

        changes = compare_metadata(catalog.snapshot(existing.id), metadata)
        if not changes.has_any_changes:
            logger.info("No metadata changes for book %d; skipping database update", existing.id)
            return UpsertResult(UpsertAction.UNCHANGED, existing.id, existing.path, changes=changes)

        logger.info(
            "Updating book %d: %s changed", existing.id, ", ".join(changes.changed_fields)
        )
        _apply_update(catalog, existing.id, metadata, changes, clock)
        return UpsertResult(UpsertAction.UPDATED, existing.id, existing.path, changes=changes)
