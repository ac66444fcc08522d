# ABOUTME: SQLite connection management for the catalog and companion stores.
# ABOUTME: Opens or bootstraps each store, registers Calibre SQL functions, and scopes transactions.

import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from shelfwright.db.schema import CATALOG_SCHEMA, COMPANION_SCHEMA
from shelfwright.errors import StoreNotFoundError
from shelfwright.metadata.sorting import CATALOG_ARTICLES, title_sort_key


def _table_exists(conn: sqlite3.Connection, name: str) -> bool:
    """Check whether a table is present in the database."""
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
    )
    return cursor.fetchone() is not None


def _connect(path: Path) -> sqlite3.Connection:
    """Open a connection in autocommit mode; writes go through transaction()."""
    conn = sqlite3.connect(str(path), isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


def _register_calibre_functions(conn: sqlite3.Connection) -> None:
    """Provide the title_sort() and uuid4() functions Calibre's triggers call."""
    conn.create_function(
        "title_sort", 1,
        lambda title: title_sort_key(title, CATALOG_ARTICLES) if title else title,
        deterministic=True,
    )
    conn.create_function("uuid4", 0, lambda: str(uuid.uuid4()))


def _open(path: Path, schema: str, marker_table: str, *, create: bool) -> sqlite3.Connection:
    if not path.exists() and not create:
        raise StoreNotFoundError(f"Database file does not exist: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(path)
    if not _table_exists(conn, marker_table):
        conn.executescript(schema)
    return conn


def open_catalog(path: Path, *, create: bool = False) -> sqlite3.Connection:
    """Open the catalog store (Calibre metadata.db).

    Args:
        path: Path to metadata.db. Its parent directory is the library root.
        create: Create and bootstrap the database if it does not exist.

    Returns:
        A sqlite3.Connection in autocommit mode with sqlite3.Row rows.

    Raises:
        StoreNotFoundError: If the file is missing and create is False.
    """
    conn = _open(path, CATALOG_SCHEMA, "books", create=create)
    _register_calibre_functions(conn)
    return conn


def open_companion(path: Path, *, create: bool = False) -> sqlite3.Connection:
    """Open the companion store (Calibre-Web app.db).

    Raises:
        StoreNotFoundError: If the file is missing and create is False.
    """
    return _open(path, COMPANION_SCHEMA, "shelf", create=create)


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block as one atomic unit: commit on success, roll back on any error."""
    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()
