# ABOUTME: Collection (shelf) management in the companion store (Calibre-Web app.db).
# ABOUTME: Owner resolution, find-or-create collections, ordered membership, and device-sync bookkeeping.

import logging
import sqlite3
import uuid
from dataclasses import dataclass

from shelfwright.config import Settings
from shelfwright.core.clock import Clock, SystemClock, companion_timestamp
from shelfwright.db.connection import transaction
from shelfwright.errors import CollectionNotFoundError, UserNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class Collection:
    """A shelf row, with its owner's name and member count."""

    id: int
    name: str
    uuid: str | None
    owner_id: int
    owner_name: str | None
    is_public: bool
    sync_enabled: bool
    created: str | None
    last_modified: str | None
    member_count: int = 0


@dataclass
class Membership:
    """A book_shelf_link row."""

    book_id: int
    collection_id: int
    position: int
    date_added: str | None


@dataclass
class CollectionCleanup:
    """What clean-up did to one collection."""

    name: str
    orphan_links_removed: int
    removed: bool


_COLLECTION_QUERY = (
    "SELECT s.id, s.name, s.uuid, s.user_id, u.name AS owner_name, s.is_public, "
    "s.kobo_sync, s.created, s.last_modified, "
    "(SELECT COUNT(*) FROM book_shelf_link bsl WHERE bsl.shelf = s.id) AS member_count "
    "FROM shelf s LEFT JOIN user u ON s.user_id = u.id"
)


def _row_to_collection(row: sqlite3.Row) -> Collection:
    return Collection(
        id=row["id"],
        name=row["name"],
        uuid=row["uuid"],
        owner_id=row["user_id"],
        owner_name=row["owner_name"],
        is_public=bool(row["is_public"]),
        sync_enabled=bool(row["kobo_sync"]),
        created=row["created"],
        last_modified=row["last_modified"],
        member_count=row["member_count"],
    )


def reading_state_id(conn: sqlite3.Connection, user_id: int, book_id: int) -> int | None:
    """The newest reading-state id for (user, book), if any."""
    row = conn.execute(
        "SELECT MAX(id) FROM kobo_reading_state WHERE user_id = ? AND book_id = ?",
        (user_id, book_id),
    ).fetchone()
    return row[0] if row and row[0] is not None else None


def create_bookmark(conn: sqlite3.Connection, state_id: int, now: str) -> int:
    """Insert a placeholder bookmark and point the reading state's current bookmark at it."""
    cursor = conn.execute(
        "INSERT INTO kobo_bookmark (kobo_reading_state_id, last_modified) VALUES (?, ?)",
        (state_id, now),
    )
    bookmark_id = cursor.lastrowid
    conn.execute(
        "UPDATE kobo_reading_state SET current_bookmark_id = ? WHERE id = ?",
        (bookmark_id, state_id),
    )
    return bookmark_id  # type: ignore[return-value]


def create_reading_state(conn: sqlite3.Connection, user_id: int, book_id: int, now: str) -> int:
    """Create a reading state with empty statistics and a linked placeholder bookmark.

    Must run inside the caller's transaction so the state, its statistics,
    and the two-way bookmark link appear together.
    """
    cursor = conn.execute(
        "INSERT INTO kobo_reading_state (user_id, book_id, last_modified, priority_timestamp) "
        "VALUES (?, ?, ?, ?)",
        (user_id, book_id, now, now),
    )
    state_id = cursor.lastrowid
    conn.execute(
        "INSERT INTO kobo_statistics (kobo_reading_state_id, last_modified) VALUES (?, ?)",
        (state_id, now),
    )
    create_bookmark(conn, state_id, now)  # type: ignore[arg-type]
    return state_id  # type: ignore[return-value]


class CompanionStore:
    """Wraps a companion-store connection: collections, membership, sync bookkeeping."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._conn = conn
        self._settings = settings or Settings()
        self._clock = clock or SystemClock()

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    def _now(self) -> str:
        return companion_timestamp(self._clock.now())

    # --- Owners and collections ---

    def resolve_owner(self, username: str | None) -> int:
        """Map a username to a user id; None means the configured default owner.

        Raises:
            UserNotFoundError: If a username is given and no such user exists.
        """
        if username is None:
            return self._settings.default_owner_id
        row = self._conn.execute("SELECT id FROM user WHERE name = ?", (username,)).fetchone()
        if row is None:
            raise UserNotFoundError(f"User '{username}' not found")
        return row[0]

    def find_collection(self, name: str, owner_id: int) -> Collection | None:
        """Find the collection with this name owned by this user."""
        row = self._conn.execute(
            f"{_COLLECTION_QUERY} WHERE s.name = ? AND s.user_id = ? ORDER BY s.id LIMIT 1",
            (name, owner_id),
        ).fetchone()
        return _row_to_collection(row) if row else None

    def _find_or_create_collection(self, name: str, owner_id: int) -> Collection:
        existing = self.find_collection(name, owner_id)
        if existing is not None:
            return existing

        now = self._now()
        self._conn.execute(
            "INSERT INTO shelf (uuid, name, is_public, user_id, kobo_sync, created, last_modified) "
            "VALUES (?, ?, 0, ?, 0, ?, ?)",
            (str(uuid.uuid4()), name, owner_id, now, now),
        )
        logger.info("Created collection '%s' for user %d", name, owner_id)
        created = self.find_collection(name, owner_id)
        assert created is not None
        return created

    def list_collections(self) -> list[Collection]:
        """All collections ordered by name."""
        rows = self._conn.execute(f"{_COLLECTION_QUERY} ORDER BY s.name, s.id").fetchall()
        return [_row_to_collection(row) for row in rows]

    def sync_collections(self) -> list[Collection]:
        """Collections with device sync enabled, ordered by name."""
        rows = self._conn.execute(
            f"{_COLLECTION_QUERY} WHERE s.kobo_sync = 1 ORDER BY s.name, s.id"
        ).fetchall()
        return [_row_to_collection(row) for row in rows]

    def collections_for_book(self, book_id: int) -> list[Collection]:
        """Collections a book belongs to."""
        rows = self._conn.execute(
            f"{_COLLECTION_QUERY} WHERE s.id IN "
            "(SELECT shelf FROM book_shelf_link WHERE book_id = ?) ORDER BY s.name",
            (book_id,),
        ).fetchall()
        return [_row_to_collection(row) for row in rows]

    def members(self, collection_id: int) -> list[Membership]:
        """Membership links of a collection in position order."""
        rows = self._conn.execute(
            'SELECT book_id, shelf, "order", date_added FROM book_shelf_link '
            'WHERE shelf = ? ORDER BY "order", id',
            (collection_id,),
        ).fetchall()
        return [Membership(row[0], row[1], row[2], row[3]) for row in rows]

    def book_ids_in_collection(self, name: str) -> list[int]:
        """Book ids on every collection with this name, whoever owns it.

        Raises:
            CollectionNotFoundError: If no collection has this name.
        """
        exists = self._conn.execute("SELECT 1 FROM shelf WHERE name = ?", (name,)).fetchone()
        if exists is None:
            raise CollectionNotFoundError(f"Collection '{name}' not found")
        rows = self._conn.execute(
            "SELECT DISTINCT bsl.book_id FROM book_shelf_link bsl "
            "JOIN shelf s ON s.id = bsl.shelf WHERE s.name = ? ORDER BY bsl.book_id",
            (name,),
        ).fetchall()
        return [row[0] for row in rows]

    def shelved_book_ids(self) -> set[int]:
        """Ids of books on at least one collection."""
        return {row[0] for row in self._conn.execute("SELECT DISTINCT book_id FROM book_shelf_link")}

    def owner_name(self, user_id: int) -> str | None:
        row = self._conn.execute("SELECT name FROM user WHERE id = ?", (user_id,)).fetchone()
        return row[0] if row else None

    # --- Collection manager ---

    def add_book_to_collection(
        self,
        book_id: int,
        collection_name: str,
        owner: str | None = None,
        *,
        allow_readd: bool = False,
    ) -> bool:
        """Add a book to a named collection, creating the collection if needed.

        The new link gets position max+1 within the collection. On a
        sync-enabled collection the owner's reading state for the book is
        bootstrapped, and the owner's sync acknowledgments are cleared so the
        sync consumer re-evaluates membership.

        A book already on the collection is left where it is. With
        `allow_readd`, the existing link's timestamps are refreshed and the
        sync steps are repeated so a changed book is offered to devices again.

        Returns:
            True if a new membership link was inserted.

        Raises:
            UserNotFoundError: If `owner` names a user that does not exist.
        """
        with transaction(self._conn):
            owner_id = self.resolve_owner(owner)
            collection = self._find_or_create_collection(collection_name, owner_id)
            now = self._now()

            link = self._conn.execute(
                "SELECT id FROM book_shelf_link WHERE book_id = ? AND shelf = ?",
                (book_id, collection.id),
            ).fetchone()

            if link is not None:
                if not allow_readd:
                    logger.info("Book %d is already on '%s'", book_id, collection_name)
                    return False
                self._conn.execute(
                    "UPDATE book_shelf_link SET date_added = ? WHERE id = ?", (now, link[0])
                )
                newly_added = False
            else:
                position = self._conn.execute(
                    'SELECT COALESCE(MAX("order"), 0) + 1 FROM book_shelf_link WHERE shelf = ?',
                    (collection.id,),
                ).fetchone()[0]
                self._conn.execute(
                    'INSERT INTO book_shelf_link (book_id, shelf, "order", date_added) '
                    "VALUES (?, ?, ?, ?)",
                    (book_id, collection.id, position, now),
                )
                newly_added = True
                logger.info(
                    "Added book %d to '%s' at position %d", book_id, collection_name, position
                )

            self._conn.execute(
                "UPDATE shelf SET last_modified = ? WHERE id = ?", (now, collection.id)
            )

            if collection.sync_enabled and reading_state_id(self._conn, owner_id, book_id) is None:
                create_reading_state(self._conn, owner_id, book_id, now)
                logger.info("Created reading state for book %d, user %d", book_id, owner_id)

            cleared = self._conn.execute(
                "DELETE FROM kobo_synced_books WHERE user_id = ?", (owner_id,)
            ).rowcount
            if cleared:
                logger.info("Cleared %d sync acknowledgments for user %d", cleared, owner_id)

        return newly_added

    def remove_empty_collections(self, valid_book_ids: set[int]) -> list[CollectionCleanup]:
        """Drop links to books missing from the catalog, then delete empty collections.

        Returns:
            One entry per collection that lost links or was removed.
        """
        report: list[CollectionCleanup] = []
        with transaction(self._conn):
            for collection in self.list_collections():
                orphans = [
                    member.book_id
                    for member in self.members(collection.id)
                    if member.book_id not in valid_book_ids
                ]
                for book_id in orphans:
                    self._conn.execute(
                        "DELETE FROM book_shelf_link WHERE shelf = ? AND book_id = ?",
                        (collection.id, book_id),
                    )

                remaining = self._conn.execute(
                    "SELECT COUNT(*) FROM book_shelf_link WHERE shelf = ?", (collection.id,)
                ).fetchone()[0]
                removed = remaining == 0
                if removed:
                    self._conn.execute("DELETE FROM shelf WHERE id = ?", (collection.id,))
                    logger.info("Removed empty collection '%s'", collection.name)

                if orphans or removed:
                    report.append(CollectionCleanup(collection.name, len(orphans), removed))
        return report
