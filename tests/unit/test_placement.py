# ABOUTME: Unit tests for copying book files and covers into the library tree.
# ABOUTME: Covers naming, update clearing, cover sources, and resize fallback.

from pathlib import Path

import pytest

from shelfwright.config import Settings
from shelfwright.core.placement import place_book_files
from shelfwright.errors import LibraryFileError, UnsupportedFormatError
from shelfwright.metadata.types import BookMetadata
from tests.helpers import make_jpeg

BOOK_PATH = "Frank Herbert/Dune (1)"


def _metadata(source: Path, cover: bytes | None = None) -> BookMetadata:
    return BookMetadata(
        title="Dune",
        author="Frank Herbert",
        source_path=source,
        file_size=source.stat().st_size,
        cover_image=cover,
    )


@pytest.fixture
def source(incoming_dir: Path) -> Path:
    path = incoming_dir / "dune.epub"
    path.write_bytes(b"dune epub")
    return path


class TestPlaceBookFiles:
    """Tests for place_book_files."""

    def test_copies_book_with_display_name(self, library_root: Path, source: Path) -> None:
        result = place_book_files(library_root, _metadata(source), BOOK_PATH, is_update=False)
        expected = library_root / BOOK_PATH / "Dune - Frank Herbert.epub"
        assert result.book_file == expected
        assert expected.read_bytes() == b"dune epub"
        assert result.cover_saved is False
        assert source.exists()

    def test_kepub_extension(self, library_root: Path, incoming_dir: Path) -> None:
        """'.kepub.epub' sources are stored with a '.kepub' extension."""
        kepub = incoming_dir / "dune.kepub.epub"
        kepub.write_bytes(b"kepub")
        result = place_book_files(library_root, _metadata(kepub), BOOK_PATH, is_update=False)
        assert result.book_file.name == "Dune - Frank Herbert.kepub"

    def test_writes_embedded_cover(self, library_root: Path, source: Path) -> None:
        cover = make_jpeg()
        result = place_book_files(
            library_root, _metadata(source, cover), BOOK_PATH, is_update=False
        )
        assert result.cover_saved is True
        assert (library_root / BOOK_PATH / "cover.jpg").read_bytes() == cover

    def test_sibling_cover_fallback(self, library_root: Path, source: Path) -> None:
        """Without an embedded cover, a cover file beside the source is used."""
        sibling = make_jpeg(color="red")
        (source.parent / "cover.jpg").write_bytes(sibling)
        result = place_book_files(library_root, _metadata(source), BOOK_PATH, is_update=False)
        assert result.cover_saved is True
        assert (library_root / BOOK_PATH / "cover.jpg").read_bytes() == sibling

    def test_oversized_cover_is_shrunk(self, library_root: Path, source: Path) -> None:
        cover = make_jpeg(2000, 3000)
        settings = Settings(cover_budget_bytes=len(cover) - 1)
        place_book_files(
            library_root, _metadata(source, cover), BOOK_PATH, is_update=False, settings=settings
        )
        written = (library_root / BOOK_PATH / "cover.jpg").read_bytes()
        assert len(written) <= settings.cover_budget_bytes

    def test_undecodable_cover_kept_as_is(self, library_root: Path, source: Path) -> None:
        """A cover that can't be resized is written unchanged."""
        junk = b"not really a jpeg" * 100
        settings = Settings(cover_budget_bytes=10)
        result = place_book_files(
            library_root, _metadata(source, junk), BOOK_PATH, is_update=False, settings=settings
        )
        assert result.cover_saved is True
        assert (library_root / BOOK_PATH / "cover.jpg").read_bytes() == junk

    def test_update_clears_old_files(self, library_root: Path, source: Path) -> None:
        """An update removes stale files from the book directory first."""
        book_dir = library_root / BOOK_PATH
        book_dir.mkdir(parents=True)
        (book_dir / "Dune - Old Name.epub").write_bytes(b"old")
        (book_dir / "metadata.opf").write_text("<opf/>")

        result = place_book_files(library_root, _metadata(source), BOOK_PATH, is_update=True)

        assert result.removed_files == 2
        assert sorted(p.name for p in book_dir.iterdir()) == ["Dune - Frank Herbert.epub"]

    def test_create_does_not_clear(self, library_root: Path, source: Path) -> None:
        book_dir = library_root / BOOK_PATH
        book_dir.mkdir(parents=True)
        (book_dir / "notes.txt").write_text("keep")
        place_book_files(library_root, _metadata(source), BOOK_PATH, is_update=False)
        assert (book_dir / "notes.txt").exists()

    def test_unsupported_source(self, library_root: Path, incoming_dir: Path) -> None:
        pdf = incoming_dir / "dune.pdf"
        pdf.write_bytes(b"%PDF")
        with pytest.raises(UnsupportedFormatError):
            place_book_files(library_root, _metadata(pdf), BOOK_PATH, is_update=False)
        assert not (library_root / BOOK_PATH).exists()

    def test_unwritable_destination(self, library_root: Path, source: Path) -> None:
        """A file standing where the author directory belongs fails placement cleanly."""
        (library_root / "Frank Herbert").write_text("in the way")
        with pytest.raises(LibraryFileError, match="Failed to place"):
            place_book_files(library_root, _metadata(source), BOOK_PATH, is_update=False)
