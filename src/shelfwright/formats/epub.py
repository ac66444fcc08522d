# ABOUTME: EPUB metadata extraction using ebooklib, plus book-format detection.
# ABOUTME: Turns a .epub/.kepub file into a BookMetadata record or raises EpubReadError.

import logging
import re
from datetime import UTC, datetime
from pathlib import Path

import ebooklib
from ebooklib import epub

from shelfwright.errors import MetadataError, UnsupportedFormatError
from shelfwright.metadata.sorting import normalize_language
from shelfwright.metadata.types import BookMetadata

logger = logging.getLogger(__name__)

# Matches "Series Name #3 - Book Title" style titles.
_SERIES_IN_TITLE_RE = re.compile(r"^(?P<series>[^#]+?)\s*#(?P<index>\d+(?:\.\d+)?)\s*-")

_DATE_FORMATS = ("%Y-%m-%d", "%d %B %Y", "%d %b %Y", "%Y-%m", "%Y")


class EpubReadError(MetadataError):
    """Raised when an EPUB file cannot be read or parsed."""


def book_format(path: Path) -> tuple[str, str]:
    """Return the catalog format name and library file extension for a path.

    '.kepub' and '.kepub.epub' are KEPUB, '.epub' is EPUB.

    Raises:
        UnsupportedFormatError: For any other extension.
    """
    name = path.name.lower()
    if name.endswith(".kepub.epub") or name.endswith(".kepub"):
        return "KEPUB", ".kepub"
    if name.endswith(".epub"):
        return "EPUB", ".epub"
    raise UnsupportedFormatError(
        f"Unsupported file extension: {path.name}. "
        "File must end in .epub, .kepub, or .kepub.epub"
    )


def _get_metadata_value(book: epub.EpubBook, namespace: str, name: str) -> str | None:
    """Extract a single metadata value from an EpubBook, or None if missing."""
    values = book.get_metadata(namespace, name)
    if not values:
        return None
    # Metadata entries are tuples of (value, attributes)
    value = values[0][0]
    return str(value).strip() if value else None


def _get_named_meta(book: epub.EpubBook, *names: str) -> str | None:
    """Find an OPF <meta name=... content=...> value under any namespace.

    ebooklib files prefixed names (calibre:series) under the prefix, and
    unprefixed ones elsewhere, so every namespace is scanned.
    """
    for entries_by_name in book.metadata.values():
        for entries in entries_by_name.values():
            for value, attrs in entries:
                if attrs and attrs.get("name") in names:
                    content = attrs.get("content") or value
                    if content and str(content).strip():
                        return str(content).strip()
    return None


def _detect_isbn(book: epub.EpubBook) -> str | None:
    """Find an ISBN among the DC identifiers.

    Prefers an explicit isbn scheme or urn:isbn: prefix, then any identifier
    whose digits form a 10- or 13-digit run. UUID identifiers are skipped.
    """
    entries = book.get_metadata("DC", "identifier")
    candidates: list[str] = []
    for value, attrs in entries:
        if not value:
            continue
        text = str(value).strip()
        # Read-back attributes use Clark notation: {http://www.idpf.org/2007/opf}scheme
        scheme = next(
            (str(v) for k, v in (attrs or {}).items() if k.endswith("scheme")), ""
        )
        if scheme.lower().startswith("isbn"):
            return text
        if text.lower().startswith("urn:isbn:"):
            return text[len("urn:isbn:"):]
        candidates.append(text)

    for text in candidates:
        if text.lower().startswith("urn:uuid:"):
            continue
        digits = "".join(ch for ch in text if ch.isdigit())
        if len(digits) in (10, 13):
            return digits
    return None


def parse_pubdate(value: str | None) -> datetime | None:
    """Parse an EPUB dc:date into an aware UTC datetime.

    Accepts RFC 3339 timestamps, YYYY-MM-DD, '12 March 1999', YYYY-MM and a
    bare year. Returns None when nothing matches.
    """
    if not value:
        return None
    text = value.strip()

    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        dt = None
    if dt is not None:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC)

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=UTC)
        except ValueError:
            continue
    return None


def _series_from_title(title: str) -> tuple[str | None, float | None]:
    """Derive series and index from a 'Series #N - Title' style title."""
    match = _SERIES_IN_TITLE_RE.match(title)
    if not match:
        return None, None
    return match.group("series").strip(), float(match.group("index"))


def _extract_cover_image(book: epub.EpubBook) -> bytes | None:
    """Extract cover image data from an EPUB, if present."""
    for item in book.get_items_of_type(ebooklib.ITEM_COVER):
        content = item.get_content()
        if content:
            return content

    cover_id = _get_named_meta(book, "cover")
    if cover_id:
        cover_item = book.get_item_with_id(cover_id)
        if cover_item:
            return cover_item.get_content()

    # Fallback: look for images with "cover" in the id or filename
    for item in book.get_items_of_type(ebooklib.ITEM_IMAGE):
        item_id = item.get_id() or ""
        item_name = item.get_name() or ""
        if "cover" in item_id.lower() or "cover" in item_name.lower():
            return item.get_content()

    return None


def read_epub_metadata(path: Path) -> BookMetadata:
    """Extract metadata from an EPUB or KEPUB file.

    Args:
        path: Path to the book file.

    Returns:
        BookMetadata populated with extracted fields.

    Raises:
        EpubReadError: If the file cannot be read or lacks a title or author.
    """
    if not path.exists():
        raise EpubReadError(f"File not found: {path}")

    try:
        book = epub.read_epub(str(path), options={"ignore_ncx": True})
    except Exception as exc:
        raise EpubReadError(f"Failed to read EPUB: {path}: {exc}") from exc

    title = _get_metadata_value(book, "DC", "title")
    if not title:
        raise EpubReadError(f"EPUB has no title metadata: {path}")

    author = _get_metadata_value(book, "DC", "creator")
    if not author:
        raise EpubReadError(f"EPUB has no author (creator) metadata: {path}")

    raw_language = _get_metadata_value(book, "DC", "language")
    language = normalize_language(raw_language) if raw_language else None

    series = _get_named_meta(book, "calibre:series")
    series_index: float | None = None
    raw_index = _get_named_meta(book, "calibre:series_index")
    if raw_index:
        try:
            series_index = float(raw_index)
        except ValueError:
            logger.debug("Ignoring non-numeric series index %r in %s", raw_index, path)
    if series is None:
        series, title_index = _series_from_title(title)
        if series_index is None:
            series_index = title_index

    return BookMetadata(
        title=title,
        author=author,
        source_path=path,
        file_size=path.stat().st_size,
        description=_get_metadata_value(book, "DC", "description"),
        language=language,
        isbn=_detect_isbn(book),
        rights=_get_metadata_value(book, "DC", "rights"),
        subtitle=_get_named_meta(book, "calibre:subtitle", "subtitle"),
        series=series,
        series_index=series_index,
        publisher=_get_metadata_value(book, "DC", "publisher"),
        pubdate=parse_pubdate(_get_metadata_value(book, "DC", "date")),
        cover_image=_extract_cover_image(book),
    )
