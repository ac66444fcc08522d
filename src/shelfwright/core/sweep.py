# ABOUTME: Consistency sweep: the orphan pass and the repair pass over both stores.
# ABOUTME: Every fix category runs in its own transaction, is counted, and is safe to re-run.

import logging
import os
import sqlite3
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from shelfwright.core.clock import (
    UNDEFINED_DATE,
    Clock,
    SystemClock,
    catalog_timestamp,
    companion_timestamp,
)
from shelfwright.db.catalog import LibraryCatalog
from shelfwright.db.companion import CompanionStore, create_bookmark, create_reading_state
from shelfwright.db.connection import transaction
from shelfwright.db.registry import (
    CATALOG_DEPENDENT_TABLES,
    CATALOG_TIMESTAMP_COLUMNS,
    COMPANION_BOOK_TABLES,
    COMPANION_TIMESTAMP_COLUMNS,
    READING_STATE_CHILD_TABLES,
    SWEPT_ENTITIES,
    TimestampColumn,
)

logger = logging.getLogger(__name__)

# Files with these suffixes do not make a directory count as book content.
SIDECAR_SUFFIXES = frozenset({".jpg", ".opf"})

_INVALID_BOOK = "(book_id IS NULL OR book_id NOT IN (SELECT id FROM temp.valid_books))"


@dataclass
class SweepReport:
    """Per-category fix counts, plus the categories whose transaction failed."""

    fixes: dict[str, int] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.fixes.values())

    @property
    def ok(self) -> bool:
        return not self.failures

    def merge(self, other: "SweepReport") -> "SweepReport":
        self.fixes.update(other.fixes)
        self.failures.update(other.failures)
        return self


FixFn = Callable[[sqlite3.Connection], int]


def _run_category(conn: sqlite3.Connection, report: SweepReport, name: str, fix: FixFn) -> bool:
    """Run one fix category in its own transaction and record the outcome.

    A storage error rolls back this category only; the failure is recorded
    and the sweep moves on to the next category.
    """
    try:
        with transaction(conn):
            count = fix(conn)
    except sqlite3.Error as exc:
        logger.error("Sweep category '%s' failed and was rolled back: %s", name, exc)
        report.failures[name] = str(exc)
        return False
    report.fixes[name] = count
    if count:
        logger.info("%s: fixed %d", name, count)
    else:
        logger.debug("%s: nothing to fix", name)
    return True


def content_directories(library_root: Path) -> set[Path]:
    """Relative paths of directories holding at least one non-sidecar file."""
    found: set[Path] = set()
    for dirpath, _dirnames, filenames in os.walk(library_root, followlinks=True):
        for name in filenames:
            suffix = Path(name).suffix.lower()
            if suffix and suffix not in SIDECAR_SUFFIXES:
                found.add(Path(dirpath).relative_to(library_root))
                break
    return found


def _load_valid_books(conn: sqlite3.Connection, book_ids: Iterable[int]) -> None:
    """Fill the connection's temp.valid_books table with catalog book ids."""
    conn.execute("CREATE TEMP TABLE IF NOT EXISTS valid_books (id INTEGER PRIMARY KEY)")
    with transaction(conn):
        conn.execute("DELETE FROM temp.valid_books")
        conn.executemany(
            "INSERT INTO temp.valid_books (id) VALUES (?)", ((book_id,) for book_id in book_ids)
        )


def _drop_valid_books(conn: sqlite3.Connection) -> None:
    conn.execute("DROP TABLE IF EXISTS temp.valid_books")


def _fill_null_timestamps(
    conn: sqlite3.Connection, columns: Iterable[TimestampColumn], now: str
) -> int:
    """Fill NULL timestamps from a set sibling column, else with `now`."""
    fixed = 0
    for col in columns:
        if col.sibling is not None:
            fixed += conn.execute(
                f"UPDATE {col.table} SET {col.column} = {col.sibling} "
                f"WHERE {col.column} IS NULL AND {col.sibling} IS NOT NULL"
            ).rowcount
        fixed += conn.execute(
            f"UPDATE {col.table} SET {col.column} = ? WHERE {col.column} IS NULL", (now,)
        ).rowcount
    return fixed


# --- Orphan pass ---


def _sweep_catalog_orphans(
    catalog: LibraryCatalog, library_root: Path, report: SweepReport
) -> None:
    conn = catalog.conn
    present = content_directories(library_root)

    def orphaned_books(conn: sqlite3.Connection) -> int:
        removed = 0
        for book_id, path in catalog.book_paths():
            if path and Path(path) in present:
                continue
            catalog.delete_book_rows(book_id)
            logger.info("Removed orphaned book %d (%s)", book_id, path or "no path")
            removed += 1
        return removed

    def dangling_rows(conn: sqlite3.Connection) -> int:
        return sum(
            conn.execute(
                f"DELETE FROM {table} WHERE book NOT IN (SELECT id FROM books)"
            ).rowcount
            for table in CATALOG_DEPENDENT_TABLES
        )

    _run_category(conn, report, "orphaned books", orphaned_books)
    _run_category(conn, report, "dangling catalog rows", dangling_rows)

    for entity in SWEPT_ENTITIES:
        desc = entity.table
        sql = (
            f"DELETE FROM {desc.table} WHERE NOT EXISTS "
            f"(SELECT 1 FROM {desc.link_table} lt WHERE lt.{desc.link_column} = {desc.table}.id)"
        )
        _run_category(
            conn, report, f"orphaned {desc.table}",
            lambda conn, sql=sql: conn.execute(sql).rowcount,
        )


def _sweep_companion_orphans(
    conn: sqlite3.Connection, valid_book_ids: set[int], report: SweepReport
) -> None:
    def delete(sql: str) -> FixFn:
        return lambda conn: conn.execute(sql).rowcount

    _load_valid_books(conn, valid_book_ids)
    try:
        for table in COMPANION_BOOK_TABLES:
            _run_category(
                conn, report, f"orphaned {table}",
                delete(f"DELETE FROM {table} WHERE {_INVALID_BOOK}"),
            )
        for table in READING_STATE_CHILD_TABLES:
            _run_category(
                conn, report, f"orphaned {table}",
                delete(
                    f"DELETE FROM {table} WHERE kobo_reading_state_id IS NULL "
                    "OR kobo_reading_state_id NOT IN (SELECT id FROM kobo_reading_state "
                    f"WHERE NOT {_INVALID_BOOK})"
                ),
            )
        _run_category(
            conn, report, "orphaned kobo_reading_state",
            delete(f"DELETE FROM kobo_reading_state WHERE {_INVALID_BOOK}"),
        )
        _run_category(
            conn, report, "orphaned kobo_synced_books",
            delete(f"DELETE FROM kobo_synced_books WHERE {_INVALID_BOOK}"),
        )
        _run_category(
            conn, report, "orphaned collection links",
            delete(f"DELETE FROM book_shelf_link WHERE {_INVALID_BOOK}"),
        )
        _run_category(
            conn, report, "empty collections",
            delete(
                "DELETE FROM shelf WHERE NOT EXISTS "
                "(SELECT 1 FROM book_shelf_link WHERE book_shelf_link.shelf = shelf.id)"
            ),
        )
    finally:
        _drop_valid_books(conn)


def orphan_pass(
    catalog: LibraryCatalog,
    library_root: Path,
    *,
    companion: CompanionStore | None = None,
) -> SweepReport:
    """Remove catalog and companion rows whose backing content is gone.

    Catalog books whose directory holds no book content are deleted with
    their dependent rows, then unreferenced authors, publishers, series and
    tags. The companion store is then cleaned against the catalog's book
    ids, leaf bookkeeping first and empty collections last.
    """
    report = SweepReport()
    _sweep_catalog_orphans(catalog, library_root, report)
    if companion is not None:
        _sweep_companion_orphans(companion.conn, catalog.book_ids(), report)
    return report


# --- Repair pass ---


class _RepairRun:
    """State of one repair pass over the companion store.

    Tracks the (user, book) pairs whose sync state was repaired so the
    sync-enabled collections holding them can be touched at the end.
    """

    def __init__(self, conn: sqlite3.Connection, now: str, report: SweepReport) -> None:
        self.conn = conn
        self.now = now
        self.report = report
        self.repaired: set[tuple[int, int]] = set()
        self._pending: set[tuple[int, int]] = set()

    def run(self, name: str, fix: FixFn) -> None:
        self._pending = set()
        if _run_category(self.conn, self.report, name, fix):
            self.repaired |= self._pending

    def _touch(self, user_id: int | None, book_id: int | None) -> None:
        if user_id is not None and book_id is not None:
            self._pending.add((user_id, book_id))

    def timestamps(self, conn: sqlite3.Connection) -> int:
        return _fill_null_timestamps(conn, COMPANION_TIMESTAMP_COLUMNS, self.now)

    def duplicate_reading_states(self, conn: sqlite3.Connection) -> int:
        """Keep the newest reading state per (user, book), moving one bookmark and statistics row over."""
        groups = conn.execute(
            "SELECT user_id, book_id, MAX(id) AS keeper FROM kobo_reading_state "
            "GROUP BY user_id, book_id HAVING COUNT(*) > 1"
        ).fetchall()
        removed = 0
        for user_id, book_id, keeper in groups:
            losers = [
                row[0]
                for row in conn.execute(
                    "SELECT id FROM kobo_reading_state WHERE user_id IS ? AND book_id IS ? "
                    "AND id != ? ORDER BY id DESC",
                    (user_id, book_id, keeper),
                )
            ]
            for loser in losers:
                for table in READING_STATE_CHILD_TABLES:
                    self._relocate_or_drop(conn, table, loser, keeper)
                conn.execute("DELETE FROM kobo_reading_state WHERE id = ?", (loser,))
                removed += 1
            logger.info(
                "Merged %d duplicate reading state(s) for user %s, book %s into %d",
                len(losers), user_id, book_id, keeper,
            )
            self._touch(user_id, book_id)
        return removed

    @staticmethod
    def _relocate_or_drop(conn: sqlite3.Connection, table: str, loser: int, keeper: int) -> None:
        keeper_has = conn.execute(
            f"SELECT 1 FROM {table} WHERE kobo_reading_state_id = ?", (keeper,)
        ).fetchone()
        if keeper_has is None:
            newest = conn.execute(
                f"SELECT MAX(id) FROM {table} WHERE kobo_reading_state_id = ?", (loser,)
            ).fetchone()[0]
            if newest is not None:
                conn.execute(
                    f"UPDATE {table} SET kobo_reading_state_id = ? WHERE id = ?", (keeper, newest)
                )
        conn.execute(f"DELETE FROM {table} WHERE kobo_reading_state_id = ?", (loser,))

    def sync_reading_states(self, conn: sqlite3.Connection) -> int:
        """Create reading states for cataloged books on sync-enabled collections."""
        missing = conn.execute(
            "SELECT DISTINCT s.user_id, bsl.book_id FROM book_shelf_link bsl "
            "JOIN shelf s ON s.id = bsl.shelf "
            "WHERE s.kobo_sync = 1 AND s.user_id IS NOT NULL "
            "AND bsl.book_id IN (SELECT id FROM temp.valid_books) "
            "AND NOT EXISTS (SELECT 1 FROM kobo_reading_state rs "
            "WHERE rs.user_id = s.user_id AND rs.book_id = bsl.book_id)"
        ).fetchall()
        for user_id, book_id in missing:
            create_reading_state(conn, user_id, book_id, self.now)
            self._touch(user_id, book_id)
        return len(missing)

    def missing_statistics(self, conn: sqlite3.Connection) -> int:
        states = conn.execute(
            "SELECT id, user_id, book_id FROM kobo_reading_state rs WHERE NOT EXISTS "
            "(SELECT 1 FROM kobo_statistics st WHERE st.kobo_reading_state_id = rs.id)"
        ).fetchall()
        for state_id, user_id, book_id in states:
            conn.execute(
                "INSERT INTO kobo_statistics (kobo_reading_state_id, last_modified) VALUES (?, ?)",
                (state_id, self.now),
            )
            self._touch(user_id, book_id)
        return len(states)

    def missing_bookmarks(self, conn: sqlite3.Connection) -> int:
        states = conn.execute(
            "SELECT id, user_id, book_id FROM kobo_reading_state rs WHERE NOT EXISTS "
            "(SELECT 1 FROM kobo_bookmark b WHERE b.kobo_reading_state_id = rs.id)"
        ).fetchall()
        for state_id, user_id, book_id in states:
            create_bookmark(conn, state_id, self.now)
            self._touch(user_id, book_id)
        return len(states)

    def bookmark_pointers(self, conn: sqlite3.Connection) -> int:
        """Point each reading state at its newest own bookmark when the pointer is unset or wrong."""
        states = conn.execute(
            "SELECT rs.id, rs.user_id, rs.book_id, "
            "(SELECT MAX(b.id) FROM kobo_bookmark b WHERE b.kobo_reading_state_id = rs.id) "
            "FROM kobo_reading_state rs "
            "WHERE (rs.current_bookmark_id IS NULL AND EXISTS "
            "(SELECT 1 FROM kobo_bookmark b WHERE b.kobo_reading_state_id = rs.id)) "
            "OR (rs.current_bookmark_id IS NOT NULL AND NOT EXISTS "
            "(SELECT 1 FROM kobo_bookmark b WHERE b.id = rs.current_bookmark_id "
            "AND b.kobo_reading_state_id = rs.id))"
        ).fetchall()
        for state_id, user_id, book_id, newest in states:
            conn.execute(
                "UPDATE kobo_reading_state SET current_bookmark_id = ? WHERE id = ?",
                (newest, state_id),
            )
            self._touch(user_id, book_id)
        return len(states)

    def stale_acknowledgments(self, conn: sqlite3.Connection) -> int:
        """Delete acks for missing books, for books off a shelves-only user's sync collections, and duplicates."""
        stale = conn.execute(
            f"DELETE FROM kobo_synced_books WHERE {_INVALID_BOOK} "
            "OR (user_id IN (SELECT id FROM user WHERE kobo_only_shelves_sync = 1) "
            "AND NOT EXISTS (SELECT 1 FROM book_shelf_link bsl JOIN shelf s ON s.id = bsl.shelf "
            "WHERE s.kobo_sync = 1 AND s.user_id = kobo_synced_books.user_id "
            "AND bsl.book_id = kobo_synced_books.book_id))"
        ).rowcount
        duplicates = conn.execute(
            "DELETE FROM kobo_synced_books WHERE id NOT IN "
            "(SELECT MIN(id) FROM kobo_synced_books GROUP BY user_id, book_id)"
        ).rowcount
        return stale + duplicates

    def missing_acknowledgments(self, conn: sqlite3.Connection) -> int:
        """Recreate acks for cataloged books on an owner's sync-enabled collections."""
        missing = conn.execute(
            "SELECT DISTINCT s.user_id, bsl.book_id FROM book_shelf_link bsl "
            "JOIN shelf s ON s.id = bsl.shelf "
            "WHERE s.kobo_sync = 1 AND s.user_id IS NOT NULL "
            "AND bsl.book_id IN (SELECT id FROM temp.valid_books) "
            "AND NOT EXISTS (SELECT 1 FROM kobo_synced_books ks "
            "WHERE ks.user_id = s.user_id AND ks.book_id = bsl.book_id)"
        ).fetchall()
        for user_id, book_id in missing:
            conn.execute(
                "INSERT INTO kobo_synced_books (user_id, book_id) VALUES (?, ?)", (user_id, book_id)
            )
            self._touch(user_id, book_id)
        return len(missing)

    def touch_sync_collections(self, conn: sqlite3.Connection) -> int:
        """Refresh membership and collection timestamps where sync state was repaired."""
        touched: set[int] = set()
        for user_id, book_id in sorted(self.repaired):
            shelves = [
                row[0]
                for row in conn.execute(
                    "SELECT DISTINCT s.id FROM shelf s JOIN book_shelf_link bsl ON bsl.shelf = s.id "
                    "WHERE s.kobo_sync = 1 AND s.user_id = ? AND bsl.book_id = ?",
                    (user_id, book_id),
                )
            ]
            for shelf_id in shelves:
                conn.execute(
                    "UPDATE book_shelf_link SET date_added = ? WHERE shelf = ? AND book_id = ?",
                    (self.now, shelf_id, book_id),
                )
            touched.update(shelves)
        for shelf_id in touched:
            conn.execute("UPDATE shelf SET last_modified = ? WHERE id = ?", (self.now, shelf_id))
        return len(touched)


def repair_pass(
    catalog: LibraryCatalog,
    *,
    companion: CompanionStore | None = None,
    clock: Clock | None = None,
) -> SweepReport:
    """Fill NULL timestamps and repair device-sync bookkeeping.

    Catalog: NULL timestamp/last_modified are cross-filled or set to now,
    NULL pubdate becomes the undefined date. Companion: NULL timestamps,
    duplicate reading states, reading states missing for books on
    sync-enabled collections, missing statistics and bookmarks, broken
    current-bookmark pointers, stale sync acknowledgments, and acknowledgments
    missing for books on sync-enabled collections. Collections
    whose members were repaired get fresh timestamps last.
    """
    clock = clock or SystemClock()
    instant = clock.now()
    report = SweepReport()

    catalog_now = catalog_timestamp(instant)
    undefined = catalog_timestamp(UNDEFINED_DATE)

    def catalog_timestamps(conn: sqlite3.Connection) -> int:
        fixed = _fill_null_timestamps(conn, CATALOG_TIMESTAMP_COLUMNS, catalog_now)
        fixed += conn.execute(
            "UPDATE books SET pubdate = ? WHERE pubdate IS NULL", (undefined,)
        ).rowcount
        return fixed

    _run_category(catalog.conn, report, "catalog timestamps", catalog_timestamps)

    if companion is None:
        return report

    conn = companion.conn
    run = _RepairRun(conn, companion_timestamp(instant), report)
    _load_valid_books(conn, catalog.book_ids())
    try:
        run.run("companion timestamps", run.timestamps)
        run.run("duplicate reading states", run.duplicate_reading_states)
        run.run("missing sync reading states", run.sync_reading_states)
        run.run("missing statistics", run.missing_statistics)
        run.run("missing bookmarks", run.missing_bookmarks)
        run.run("bookmark pointers", run.bookmark_pointers)
        run.run("stale sync acknowledgments", run.stale_acknowledgments)
        run.run("missing sync acknowledgments", run.missing_acknowledgments)
        run.run("sync collection timestamps", run.touch_sync_collections)
    finally:
        _drop_valid_books(conn)
    return report


def full_cleanup(
    catalog: LibraryCatalog,
    library_root: Path,
    *,
    companion: CompanionStore | None = None,
    clock: Clock | None = None,
) -> SweepReport:
    """Run the orphan pass, then the repair pass."""
    report = orphan_pass(catalog, library_root, companion=companion)
    return report.merge(repair_pass(catalog, companion=companion, clock=clock))
