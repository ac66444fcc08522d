# ABOUTME: Closed registry of the catalog and companion tables the engines touch.
# ABOUTME: SQL identifiers come only from these descriptors, never from caller strings.

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class EntityTable:
    """A normalized entity table and the link table that joins it to books."""

    table: str
    key_column: str
    sort_column: str | None
    link_table: str
    link_column: str


class Entity(Enum):
    """Normalized catalog entities resolved by natural key."""

    AUTHOR = EntityTable("authors", "name", "sort", "books_authors_link", "author")
    PUBLISHER = EntityTable("publishers", "name", None, "books_publishers_link", "publisher")
    SERIES = EntityTable("series", "name", "sort", "books_series_link", "series")
    LANGUAGE = EntityTable("languages", "lang_code", None, "books_languages_link", "lang_code")
    TAG = EntityTable("tags", "name", None, "books_tags_link", "tag")

    @property
    def table(self) -> EntityTable:
        return self.value


# Entities whose rows are swept when no link references them.
SWEPT_ENTITIES: tuple[Entity, ...] = (
    Entity.AUTHOR,
    Entity.PUBLISHER,
    Entity.SERIES,
    Entity.TAG,
)

# Catalog tables holding rows keyed by a `book` column, deleted before the book row.
CATALOG_DEPENDENT_TABLES: tuple[str, ...] = (
    "books_authors_link",
    "books_languages_link",
    "books_publishers_link",
    "books_ratings_link",
    "books_series_link",
    "books_tags_link",
    "comments",
    "data",
    "identifiers",
    "metadata_dirtied",
    "annotations_dirtied",
)

# Companion tables keyed directly by `book_id`, leaves first.
COMPANION_BOOK_TABLES: tuple[str, ...] = (
    "downloads",
    "archived_book",
)

# Children of kobo_reading_state, keyed by `kobo_reading_state_id`.
READING_STATE_CHILD_TABLES: tuple[str, ...] = (
    "kobo_bookmark",
    "kobo_statistics",
)


@dataclass(frozen=True)
class TimestampColumn:
    """A nullable timestamp column, with a sibling column to copy from when set."""

    table: str
    column: str
    sibling: str | None = None


CATALOG_TIMESTAMP_COLUMNS: tuple[TimestampColumn, ...] = (
    TimestampColumn("books", "timestamp", "last_modified"),
    TimestampColumn("books", "last_modified", "timestamp"),
)

COMPANION_TIMESTAMP_COLUMNS: tuple[TimestampColumn, ...] = (
    TimestampColumn("shelf", "created", "last_modified"),
    TimestampColumn("shelf", "last_modified", "created"),
    TimestampColumn("book_shelf_link", "date_added"),
    TimestampColumn("archived_book", "last_modified"),
    TimestampColumn("kobo_reading_state", "last_modified", "priority_timestamp"),
    TimestampColumn("kobo_reading_state", "priority_timestamp", "last_modified"),
    TimestampColumn("kobo_bookmark", "last_modified"),
    TimestampColumn("kobo_statistics", "last_modified"),
)
