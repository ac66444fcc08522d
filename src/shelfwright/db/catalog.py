# ABOUTME: Typed reads and primitive writes against the catalog store (Calibre metadata.db).
# ABOUTME: The upsert, deletion, and sweep engines sequence these inside their own transactions.

import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from shelfwright.core.clock import catalog_timestamp, parse_catalog_timestamp
from shelfwright.core.comparator import BookSnapshot
from shelfwright.db.registry import CATALOG_DEPENDENT_TABLES, Entity

# Book columns the upsert engine may rewrite on the update path.
_UPDATABLE_COLUMNS = frozenset({"last_modified", "pubdate", "series_index", "has_cover", "path"})


@dataclass
class CatalogBook:
    """A row of the books table."""

    id: int
    title: str
    sort: str | None
    author_sort: str | None
    path: str
    uuid: str | None
    has_cover: bool
    series_index: float
    timestamp: str | None
    pubdate: str | None
    last_modified: str | None


@dataclass
class CatalogStats:
    """Row counts shown by the inspect report."""

    books: int
    authors: int
    series: int


def row_to_book(row: Any) -> CatalogBook:
    """Convert a books-table row to a CatalogBook."""
    return CatalogBook(
        id=row["id"],
        title=row["title"],
        sort=row["sort"],
        author_sort=row["author_sort"],
        path=row["path"],
        uuid=row["uuid"],
        has_cover=bool(row["has_cover"]),
        series_index=row["series_index"] if row["series_index"] is not None else 1.0,
        timestamp=row["timestamp"],
        pubdate=row["pubdate"],
        last_modified=row["last_modified"],
    )


class LibraryCatalog:
    """Wraps a catalog connection with typed queries and primitive writes.

    Write methods never commit; callers wrap them in db.connection.transaction().
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # --- Reads ---

    def get_by_id(self, book_id: int) -> CatalogBook | None:
        """Retrieve a book by its id."""
        row = self._conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
        return row_to_book(row) if row else None

    def find_by_natural_key(self, title: str, author_sort: str) -> CatalogBook | None:
        """Find the book identified by (title, author_sort), if cataloged."""
        row = self._conn.execute(
            "SELECT * FROM books WHERE title = ? AND author_sort = ? ORDER BY id LIMIT 1",
            (title, author_sort),
        ).fetchone()
        return row_to_book(row) if row else None

    def snapshot(self, book_id: int) -> BookSnapshot:
        """Read the fields the change comparator looks at."""
        row = self._conn.execute(
            "SELECT pubdate, series_index FROM books WHERE id = ?", (book_id,)
        ).fetchone()
        publishers = self.linked_names(book_id, Entity.PUBLISHER)
        series = self.linked_names(book_id, Entity.SERIES)
        return BookSnapshot(
            pubdate=parse_catalog_timestamp(row["pubdate"]),
            series_index=row["series_index"] if row["series_index"] is not None else 1.0,
            publisher=publishers[0] if publishers else None,
            series=series[0] if series else None,
        )

    def list_books(self, book_ids: Iterable[int] | None = None) -> list[CatalogBook]:
        """Return books ordered by title, optionally restricted to some ids."""
        if book_ids is None:
            rows = self._conn.execute("SELECT * FROM books ORDER BY title").fetchall()
        else:
            ids = sorted(set(book_ids))
            if not ids:
                return []
            placeholders = ", ".join("?" for _ in ids)
            rows = self._conn.execute(
                f"SELECT * FROM books WHERE id IN ({placeholders}) ORDER BY title", ids
            ).fetchall()
        return [row_to_book(row) for row in rows]

    def book_ids(self) -> set[int]:
        """All book ids currently in the catalog."""
        return {row[0] for row in self._conn.execute("SELECT id FROM books")}

    def book_paths(self) -> list[tuple[int, str]]:
        """(id, relative path) for every book."""
        return [(row[0], row[1]) for row in self._conn.execute("SELECT id, path FROM books")]

    def linked_names(self, book_id: int, entity: Entity) -> list[str]:
        """Natural keys of the entities of one kind linked to a book."""
        desc = entity.table
        rows = self._conn.execute(
            f"SELECT t.{desc.key_column} FROM {desc.table} t "
            f"JOIN {desc.link_table} lt ON t.id = lt.{desc.link_column} "
            f"WHERE lt.book = ? ORDER BY lt.id",
            (book_id,),
        ).fetchall()
        return [row[0] for row in rows]

    def identifiers(self, book_id: int) -> list[tuple[str, str]]:
        """(type, value) identifier pairs for a book."""
        rows = self._conn.execute(
            "SELECT type, val FROM identifiers WHERE book = ? ORDER BY type", (book_id,)
        ).fetchall()
        return [(row[0], row[1]) for row in rows]

    def formats(self, book_id: int) -> list[tuple[str, int, str]]:
        """(format, size, name) file-format records for a book."""
        rows = self._conn.execute(
            "SELECT format, uncompressed_size, name FROM data WHERE book = ? ORDER BY format",
            (book_id,),
        ).fetchall()
        return [(row[0], row[1], row[2]) for row in rows]

    def comment(self, book_id: int) -> str | None:
        """The comments blob for a book, if any."""
        row = self._conn.execute("SELECT text FROM comments WHERE book = ?", (book_id,)).fetchone()
        return row[0] if row else None

    def stats(self) -> CatalogStats:
        """Count books, authors, and series."""
        def count(table: str) -> int:
            return self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

        return CatalogStats(books=count("books"), authors=count("authors"), series=count("series"))

    def recent_books(self, limit: int = 5) -> list[CatalogBook]:
        """Most recently added books, newest first."""
        rows = self._conn.execute(
            "SELECT * FROM books ORDER BY timestamp DESC, id DESC LIMIT ?", (limit,)
        ).fetchall()
        return [row_to_book(row) for row in rows]

    # --- Primitive writes (no commit) ---

    def insert_book(
        self,
        *,
        title: str,
        sort: str,
        author_sort: str,
        book_uuid: str,
        timestamp: datetime,
        pubdate: datetime,
        series_index: float,
    ) -> int:
        """Insert a book row with an empty path and return its id."""
        now = catalog_timestamp(timestamp)
        cursor = self._conn.execute(
            "INSERT INTO books (title, sort, author_sort, timestamp, pubdate, last_modified, "
            "path, series_index, uuid) VALUES (?, ?, ?, ?, ?, ?, '', ?, ?)",
            (
                title,
                sort,
                author_sort,
                now,
                catalog_timestamp(pubdate),
                now,
                series_index,
                book_uuid,
            ),
        )
        return cursor.lastrowid  # type: ignore[return-value]

    def update_columns(self, book_id: int, **columns: Any) -> None:
        """Rewrite the given book columns. Only known columns are accepted.

        Raises:
            ValueError: On an unknown column name.
        """
        if not columns:
            return
        unknown = set(columns) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update book columns: {', '.join(sorted(unknown))}")
        set_clause = ", ".join(f"{name} = ?" for name in columns)
        self._conn.execute(
            f"UPDATE books SET {set_clause} WHERE id = ?", [*columns.values(), book_id]
        )

    def set_has_cover(self, book_id: int, has_cover: bool = True) -> None:
        """Record whether a cover image is present for a book."""
        self.update_columns(book_id, has_cover=int(has_cover))

    def insert_format(self, book_id: int, fmt: str, size: int, name: str) -> None:
        """Insert a file-format record into the data table."""
        self._conn.execute(
            "INSERT INTO data (book, format, uncompressed_size, name) VALUES (?, ?, ?, ?)",
            (book_id, fmt, size, name),
        )

    def insert_comment(self, book_id: int, text: str) -> None:
        """Insert the comments blob for a book."""
        self._conn.execute("INSERT INTO comments (book, text) VALUES (?, ?)", (book_id, text))

    def insert_identifier(self, book_id: int, id_type: str, value: str) -> None:
        """Insert a typed identifier (e.g. ISBN) for a book."""
        self._conn.execute(
            "INSERT INTO identifiers (book, type, val) VALUES (?, ?, ?)",
            (book_id, id_type, value),
        )

    def delete_book_rows(self, book_id: int) -> bool:
        """Delete a book's dependent rows, then the book row itself.

        Returns:
            True if a books row was deleted.
        """
        for table in CATALOG_DEPENDENT_TABLES:
            self._conn.execute(f"DELETE FROM {table} WHERE book = ?", (book_id,))
        cursor = self._conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        return cursor.rowcount > 0
