# ABOUTME: File placement driver: copies a book file and its cover into the library tree.
# ABOUTME: Runs after the catalog transaction commits, only when content may have changed.

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from shelfwright.config import Settings
from shelfwright.errors import LibraryFileError
from shelfwright.formats.cover import fit_cover_to_budget
from shelfwright.formats.epub import book_format
from shelfwright.metadata.types import BookMetadata

logger = logging.getLogger(__name__)


@dataclass
class PlacementResult:
    """Where the book landed and whether a cover was written."""

    book_file: Path
    cover_saved: bool
    removed_files: int = 0


def _clear_directory_files(directory: Path) -> int:
    """Delete the regular files directly inside a directory."""
    removed = 0
    for entry in directory.iterdir():
        if entry.is_file():
            entry.unlink()
            removed += 1
    return removed


def _cover_source(metadata: BookMetadata, cover_filename: str) -> tuple[bytes | None, str]:
    """Pick the cover bytes: embedded image first, then a sibling cover file."""
    if metadata.has_cover:
        return metadata.cover_image, "EPUB"
    sibling = metadata.source_path.parent / cover_filename
    if sibling.is_file():
        return sibling.read_bytes(), str(sibling)
    return None, ""


def _write_cover(data: bytes, dest: Path, budget: int, origin: str) -> None:
    try:
        final = fit_cover_to_budget(data, budget)
    except OSError as exc:
        logger.warning("Failed to resize cover image from %s: %s, using original", origin, exc)
        final = data
    dest.write_bytes(final)
    logger.info("Saved cover from %s to %s", origin, dest)


def place_book_files(
    library_root: Path,
    metadata: BookMetadata,
    book_path: str,
    *,
    is_update: bool,
    settings: Settings | None = None,
) -> PlacementResult:
    """Copy a book file and its cover into `{library_root}/{book_path}/`.

    On update, regular files already in the book directory are removed first.
    The book is written as '{title} - {author}{ext}'. The cover comes from the
    EPUB or, failing that, a cover file next to the source; it is fitted to the
    configured byte budget, and a failed resize keeps the original bytes.

    Raises:
        UnsupportedFormatError: If the source file is not EPUB or KEPUB.
        LibraryFileError: If a directory or file cannot be written.
    """
    settings = settings or Settings()
    _fmt, ext = book_format(metadata.source_path)
    dest_dir = library_root / book_path

    removed = 0
    dest_file = dest_dir / f"{metadata.display_name}{ext}"
    cover_saved = False
    try:
        if is_update and dest_dir.is_dir():
            removed = _clear_directory_files(dest_dir)
            logger.info("Removed %d old file(s) from %s", removed, dest_dir)

        dest_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(metadata.source_path, dest_file)
        logger.info("Copied %s to %s", metadata.source_path, dest_file)

        cover_data, origin = _cover_source(metadata, settings.cover_filename)
        if cover_data:
            _write_cover(
                cover_data, dest_dir / settings.cover_filename, settings.cover_budget_bytes, origin
            )
            cover_saved = True
    except OSError as exc:
        raise LibraryFileError(f"Failed to place {metadata.source_path} in {dest_dir}: {exc}") from exc

    return PlacementResult(book_file=dest_file, cover_saved=cover_saved, removed_files=removed)
