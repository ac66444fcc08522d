# ABOUTME: Unit tests for EPUB metadata extraction and format detection.
# ABOUTME: Builds real EPUB files with ebooklib and reads them back.

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

from shelfwright.errors import MetadataError, UnsupportedFormatError
from shelfwright.formats.epub import (
    EpubReadError,
    book_format,
    parse_pubdate,
    read_epub_metadata,
)


class TestReadEpubMetadata:
    """Tests for read_epub_metadata."""

    def test_extracts_core_fields(self, gatsby_epub: Path) -> None:
        """Title, author, publisher, and description come from Dublin Core."""
        meta = read_epub_metadata(gatsby_epub)
        assert meta.title == "The Great Gatsby"
        assert meta.author == "F. Scott Fitzgerald"
        assert meta.publisher == "Scribner"
        assert meta.description == "<p>A novel of the Jazz Age.</p>"

    def test_normalizes_language(self, gatsby_epub: Path) -> None:
        """'en' is stored as the three-letter code."""
        assert read_epub_metadata(gatsby_epub).language == "eng"

    def test_parses_pubdate(self, gatsby_epub: Path) -> None:
        assert read_epub_metadata(gatsby_epub).pubdate == datetime(1925, 4, 10, tzinfo=UTC)

    def test_detects_isbn_and_skips_uuid(self, gatsby_epub: Path) -> None:
        """The uuid identifier is ignored in favour of the ISBN."""
        assert read_epub_metadata(gatsby_epub).isbn == "9780743273565"

    def test_extracts_cover(self, gatsby_epub: Path) -> None:
        meta = read_epub_metadata(gatsby_epub)
        assert meta.has_cover
        assert meta.cover_image is not None
        assert meta.cover_image[:2] == b"\xff\xd8"

    def test_records_source_and_size(self, gatsby_epub: Path) -> None:
        meta = read_epub_metadata(gatsby_epub)
        assert meta.source_path == gatsby_epub
        assert meta.file_size == gatsby_epub.stat().st_size
        assert meta.display_name == "The Great Gatsby - F. Scott Fitzgerald"

    def test_minimal_epub(self, make_epub: Callable[..., Path], tmp_path: Path) -> None:
        """Optional fields are None when absent."""
        meta = read_epub_metadata(make_epub(tmp_path / "min.epub", "Dune", "Frank Herbert"))
        assert meta.publisher is None
        assert meta.description is None
        assert meta.isbn is None
        assert meta.series is None
        assert meta.series_index is None
        assert meta.pubdate is None
        assert not meta.has_cover

    def test_calibre_series_meta(self, make_epub: Callable[..., Path], tmp_path: Path) -> None:
        """calibre:series and calibre:series_index are read from OPF meta tags."""
        path = make_epub(
            tmp_path / "s.epub", "Mort", "Terry Pratchett",
            series="Discworld", series_index="4", subtitle="A Discworld Novel",
        )
        meta = read_epub_metadata(path)
        assert meta.series == "Discworld"
        assert meta.series_index == 4.0
        assert meta.subtitle == "A Discworld Novel"

    def test_series_from_title(self, make_epub: Callable[..., Path], tmp_path: Path) -> None:
        """A 'Series #N - Title' title yields series and index."""
        path = make_epub(tmp_path / "t.epub", "Discworld #3 - Equal Rites", "Terry Pratchett")
        meta = read_epub_metadata(path)
        assert meta.series == "Discworld"
        assert meta.series_index == 3.0

    def test_rights(self, make_epub: Callable[..., Path], tmp_path: Path) -> None:
        path = make_epub(tmp_path / "r.epub", "Dune", "Frank Herbert", rights="All rights reserved")
        assert read_epub_metadata(path).rights == "All rights reserved"

    def test_missing_author_raises(self, make_epub: Callable[..., Path], tmp_path: Path) -> None:
        path = make_epub(tmp_path / "anon.epub", "Beowulf", None)
        with pytest.raises(EpubReadError, match="author"):
            read_epub_metadata(path)

    def test_corrupt_file_raises(self, corrupt_epub: Path) -> None:
        """Unreadable files raise an error in the metadata family."""
        with pytest.raises(MetadataError):
            read_epub_metadata(corrupt_epub)

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(EpubReadError, match="not found"):
            read_epub_metadata(tmp_path / "missing.epub")


class TestBookFormat:
    """Tests for book_format."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("book.epub", ("EPUB", ".epub")),
            ("BOOK.EPUB", ("EPUB", ".epub")),
            ("book.kepub", ("KEPUB", ".kepub")),
            ("book.kepub.epub", ("KEPUB", ".kepub")),
        ],
    )
    def test_supported(self, name: str, expected: tuple[str, str]) -> None:
        assert book_format(Path(name)) == expected

    @pytest.mark.parametrize("name", ["book.pdf", "book.mobi", "book"])
    def test_unsupported(self, name: str) -> None:
        with pytest.raises(UnsupportedFormatError):
            book_format(Path(name))


class TestParsePubdate:
    """Tests for parse_pubdate."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("1925-04-10", datetime(1925, 4, 10, tzinfo=UTC)),
            ("2001-03-15T10:00:00Z", datetime(2001, 3, 15, 10, tzinfo=UTC)),
            ("2001-03-15T12:00:00+02:00", datetime(2001, 3, 15, 10, tzinfo=UTC)),
            ("12 March 1999", datetime(1999, 3, 12, tzinfo=UTC)),
            ("1999-03", datetime(1999, 3, 1, tzinfo=UTC)),
            ("1999", datetime(1999, 1, 1, tzinfo=UTC)),
        ],
    )
    def test_formats(self, raw: str, expected: datetime) -> None:
        assert parse_pubdate(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "someday"])
    def test_unparseable(self, raw: str | None) -> None:
        assert parse_pubdate(raw) is None
