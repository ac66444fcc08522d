# ABOUTME: Integration tests for importing EPUB files into catalog, collections, and the library tree.
# ABOUTME: Uses real EPUBs and real SQLite stores; checks idempotence and per-file error isolation.

from collections.abc import Callable
from datetime import timedelta
from pathlib import Path

import pytest

from shelfwright.core.clock import FixedClock
from shelfwright.core.importer import (
    BookImport,
    find_book_files,
    import_book,
    import_directory,
)
from shelfwright.core.upsert import UpsertAction
from shelfwright.db.catalog import LibraryCatalog
from shelfwright.db.companion import CompanionStore
from shelfwright.errors import MetadataError, StoreNotFoundError, UserNotFoundError
from tests.helpers import FIXED_NOW, count_rows, enable_sync, make_jpeg


class TestImportBook:
    """Tests for import_book."""

    def test_new_book_is_placed(
        self, gatsby_epub: Path, catalog: LibraryCatalog, library_root: Path, clock: FixedClock
    ) -> None:
        """A new book is cataloged and copied with its cover."""
        outcome = import_book(gatsby_epub, catalog, library_root, clock=clock)

        assert outcome.action is UpsertAction.CREATED
        book_dir = library_root / outcome.upsert.book_path
        assert (book_dir / "The Great Gatsby - F. Scott Fitzgerald.epub").read_bytes() == (
            gatsby_epub.read_bytes()
        )
        assert (book_dir / "cover.jpg").is_file()
        assert catalog.get_by_id(outcome.book_id).has_cover is True  # type: ignore[union-attr]

    def test_reimport_is_verified_noop(
        self, gatsby_epub: Path, catalog: LibraryCatalog, library_root: Path, clock: FixedClock
    ) -> None:
        """Importing the same file again changes nothing and copies nothing."""
        first = import_book(gatsby_epub, catalog, library_root, clock=clock)
        placed = library_root / first.upsert.book_path / "The Great Gatsby - F. Scott Fitzgerald.epub"
        mtime = placed.stat().st_mtime_ns

        second = import_book(gatsby_epub, catalog, library_root, clock=clock)

        assert second.action is UpsertAction.UNCHANGED
        assert second.book_id == first.book_id
        assert second.upsert.content_verified is True
        assert second.placement is None
        assert placed.stat().st_mtime_ns == mtime
        assert count_rows(catalog.conn, "books") == 1

    def test_changed_content_same_identity(
        self,
        make_epub: Callable[..., Path],
        incoming_dir: Path,
        catalog: LibraryCatalog,
        library_root: Path,
        clock: FixedClock,
    ) -> None:
        """A revised file for the same title and author reuses the id and path."""
        path = make_epub(incoming_dir / "dune.epub", "Dune", "Frank Herbert", body="First.")
        first = import_book(path, catalog, library_root, clock=clock)
        make_epub(incoming_dir / "dune.epub", "Dune", "Frank Herbert", body="Revised text.")

        second = import_book(path, catalog, library_root, clock=clock)

        assert second.book_id == first.book_id
        assert second.upsert.book_path == first.upsert.book_path
        assert second.placement is not None
        assert second.placement.removed_files >= 1
        placed = library_root / first.upsert.book_path / "Dune - Frank Herbert.epub"
        assert placed.read_bytes() == path.read_bytes()

    def test_metadata_update(
        self,
        make_epub: Callable[..., Path],
        incoming_dir: Path,
        catalog: LibraryCatalog,
        library_root: Path,
        clock: FixedClock,
    ) -> None:
        path = make_epub(incoming_dir / "dune.epub", "Dune", "Frank Herbert", publisher="Chilton")
        import_book(path, catalog, library_root, clock=clock)
        make_epub(incoming_dir / "dune.epub", "Dune", "Frank Herbert", publisher="Ace")

        outcome = import_book(path, catalog, library_root, clock=clock)

        assert outcome.action is UpsertAction.UPDATED
        assert outcome.upsert.changes is not None
        assert outcome.upsert.changes.changed_fields == ["publisher"]

    def test_update_without_cover_clears_flag(
        self,
        make_epub: Callable[..., Path],
        incoming_dir: Path,
        catalog: LibraryCatalog,
        library_root: Path,
        clock: FixedClock,
    ) -> None:
        """Replacing a book with a coverless revision drops the old cover and its flag."""
        path = make_epub(incoming_dir / "dune.epub", "Dune", "Frank Herbert", cover=make_jpeg())
        first = import_book(path, catalog, library_root, clock=clock)
        assert catalog.get_by_id(first.book_id).has_cover is True  # type: ignore[union-attr]
        make_epub(incoming_dir / "dune.epub", "Dune", "Frank Herbert", body="Revised text.")

        second = import_book(path, catalog, library_root, clock=clock)

        assert second.placement is not None
        assert second.placement.cover_saved is False
        assert not (library_root / first.upsert.book_path / "cover.jpg").exists()
        assert catalog.get_by_id(first.book_id).has_cover is False  # type: ignore[union-attr]

    def test_adds_to_collection(
        self,
        gatsby_epub: Path,
        catalog: LibraryCatalog,
        companion: CompanionStore,
        library_root: Path,
        clock: FixedClock,
        alice: int,
    ) -> None:
        outcome = import_book(
            gatsby_epub, catalog, library_root,
            companion=companion, collection="Favorites", owner="alice", clock=clock,
        )
        assert outcome.newly_shelved is True
        collection = companion.find_collection("Favorites", alice)
        assert collection is not None
        assert [m.book_id for m in companion.members(collection.id)] == [outcome.book_id]

    def test_updated_book_is_readded(
        self,
        make_epub: Callable[..., Path],
        incoming_dir: Path,
        catalog: LibraryCatalog,
        companion: CompanionStore,
        library_root: Path,
        clock: FixedClock,
    ) -> None:
        """An updated book already on a sync collection invalidates acknowledgments again."""
        path = make_epub(incoming_dir / "dune.epub", "Dune", "Frank Herbert", publisher="Chilton")
        first = import_book(
            path, catalog, library_root, companion=companion, collection="Kobo", clock=clock
        )
        enable_sync(companion.conn, "Kobo")
        companion.conn.execute(
            "INSERT INTO kobo_synced_books (user_id, book_id) VALUES (1, ?)", (first.book_id,)
        )
        make_epub(incoming_dir / "dune.epub", "Dune", "Frank Herbert", publisher="Ace")

        second = import_book(
            path, catalog, library_root, companion=companion, collection="Kobo", clock=clock
        )

        assert second.action is UpsertAction.UPDATED
        assert second.newly_shelved is False
        assert count_rows(companion.conn, "book_shelf_link") == 1
        assert count_rows(companion.conn, "kobo_synced_books") == 0
        assert count_rows(companion.conn, "kobo_reading_state", "book_id = ?", (first.book_id,)) == 1

    def test_collection_requires_companion(
        self, gatsby_epub: Path, catalog: LibraryCatalog, library_root: Path
    ) -> None:
        with pytest.raises(StoreNotFoundError):
            import_book(gatsby_epub, catalog, library_root, collection="Favorites")
        assert count_rows(catalog.conn, "books") == 0

    def test_unknown_owner_writes_nothing(
        self,
        gatsby_epub: Path,
        catalog: LibraryCatalog,
        companion: CompanionStore,
        library_root: Path,
        clock: FixedClock,
    ) -> None:
        """An unknown collection owner aborts the import before the catalog is touched."""
        with pytest.raises(UserNotFoundError):
            import_book(
                gatsby_epub, catalog, library_root,
                companion=companion, collection="Favorites", owner="nobody", clock=clock,
            )
        assert count_rows(catalog.conn, "books") == 0
        assert count_rows(companion.conn, "shelf") == 0
        assert not any(p.is_dir() for p in library_root.iterdir())

    def test_corrupt_file_raises(
        self, corrupt_epub: Path, catalog: LibraryCatalog, library_root: Path
    ) -> None:
        with pytest.raises(MetadataError):
            import_book(corrupt_epub, catalog, library_root)

    def test_sibling_cover_sets_flag(
        self,
        make_epub: Callable[..., Path],
        incoming_dir: Path,
        catalog: LibraryCatalog,
        library_root: Path,
        clock: FixedClock,
    ) -> None:
        """A cover.jpg next to a coverless EPUB is used and recorded."""
        path = make_epub(incoming_dir / "dune.epub", "Dune", "Frank Herbert")
        (incoming_dir / "cover.jpg").write_bytes(make_jpeg())
        outcome = import_book(path, catalog, library_root, clock=clock)
        assert outcome.placement is not None and outcome.placement.cover_saved
        assert catalog.get_by_id(outcome.book_id).has_cover is True  # type: ignore[union-attr]


class TestImportDirectory:
    """Tests for import_directory and find_book_files."""

    def test_find_book_files(self, make_epub: Callable[..., Path], incoming_dir: Path) -> None:
        """Recursive, sorted, and limited to EPUB and KEPUB names."""
        make_epub(incoming_dir / "b.epub", "B", "Author One")
        make_epub(incoming_dir / "nested" / "a.kepub.epub", "A", "Author Two")
        (incoming_dir / "c.kepub").write_bytes(b"kepub")
        (incoming_dir / "notes.txt").write_text("skip")
        names = [p.name for p in find_book_files(incoming_dir)]
        assert names == ["b.epub", "c.kepub", "a.kepub.epub"]

    def test_errors_are_isolated(
        self,
        make_epub: Callable[..., Path],
        incoming_dir: Path,
        corrupt_epub: Path,
        catalog: LibraryCatalog,
        library_root: Path,
        clock: FixedClock,
    ) -> None:
        """A bad file is counted and the rest of the batch still imports."""
        make_epub(incoming_dir / "a.epub", "Alpha", "Jane Doe")
        make_epub(incoming_dir / "z.epub", "Zulu", "Jane Doe")
        seen: list[tuple[str, bool]] = []

        def on_progress(path: Path, outcome: BookImport | None, error: str | None) -> None:
            seen.append((path.name, error is None))

        result = import_directory(
            incoming_dir, catalog, library_root, clock=clock, on_progress=on_progress
        )

        assert (result.added, result.updated, result.unchanged, result.errors) == (2, 0, 0, 1)
        assert result.error_details[0][0] == corrupt_epub
        assert seen == [("a.epub", True), ("corrupt.epub", False), ("z.epub", True)]
        assert count_rows(catalog.conn, "books") == 2

    def test_second_run_is_unchanged(
        self,
        make_epub: Callable[..., Path],
        incoming_dir: Path,
        catalog: LibraryCatalog,
        library_root: Path,
        clock: FixedClock,
    ) -> None:
        make_epub(incoming_dir / "a.epub", "Alpha", "Jane Doe")
        make_epub(incoming_dir / "b.epub", "Beta", "Jane Doe")
        import_directory(incoming_dir, catalog, library_root, clock=clock)
        later = FixedClock(FIXED_NOW + timedelta(days=1))

        result = import_directory(incoming_dir, catalog, library_root, clock=later)

        assert (result.added, result.updated, result.unchanged, result.errors) == (0, 0, 2, 0)
