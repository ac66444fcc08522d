# ABOUTME: Find-or-create for normalized catalog entities (authors, publishers, series, languages).
# ABOUTME: Looks up by natural key first so no duplicate entity row is ever inserted.

import logging
import sqlite3

from shelfwright.db.registry import Entity

logger = logging.getLogger(__name__)


def find_entity(conn: sqlite3.Connection, entity: Entity, key: str) -> int | None:
    """Return the id of the entity row whose natural key equals `key`, if any."""
    desc = entity.table
    row = conn.execute(
        f"SELECT id FROM {desc.table} WHERE {desc.key_column} = ?", (key,)
    ).fetchone()
    return row[0] if row else None


def resolve_entity(
    conn: sqlite3.Connection,
    entity: Entity,
    key: str,
    sort: str | None = None,
) -> int:
    """Find an entity by natural key, or insert it, and return its id.

    A found row is returned untouched; its sort column is never rewritten.
    New rows get `sort` (defaulting to the key) when the table has a sort
    column. Does not open a transaction: callers run this inside their own
    so entity and book writes commit or roll back together.
    """
    existing = find_entity(conn, entity, key)
    if existing is not None:
        return existing

    desc = entity.table
    if desc.sort_column is not None:
        cursor = conn.execute(
            f"INSERT INTO {desc.table} ({desc.key_column}, {desc.sort_column}) VALUES (?, ?)",
            (key, sort if sort is not None else key),
        )
    else:
        cursor = conn.execute(
            f"INSERT INTO {desc.table} ({desc.key_column}) VALUES (?)", (key,)
        )
    logger.debug("Created %s row %d for %r", desc.table, cursor.lastrowid, key)
    return cursor.lastrowid  # type: ignore[return-value]


def link_entity(conn: sqlite3.Connection, entity: Entity, book_id: int, entity_id: int) -> None:
    """Insert the link row joining a book to an entity."""
    desc = entity.table
    conn.execute(
        f"INSERT INTO {desc.link_table} (book, {desc.link_column}) VALUES (?, ?)",
        (book_id, entity_id),
    )


def unlink_entity(conn: sqlite3.Connection, entity: Entity, book_id: int) -> int:
    """Delete every link row joining a book to entities of this kind."""
    desc = entity.table
    cursor = conn.execute(f"DELETE FROM {desc.link_table} WHERE book = ?", (book_id,))
    return cursor.rowcount
