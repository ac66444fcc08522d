# ABOUTME: SQL DDL for the catalog store (Calibre metadata.db) and companion store (Calibre-Web app.db).
# ABOUTME: Used to bootstrap empty stores; existing Calibre and Calibre-Web files are used as-is.

CATALOG_SCHEMA = """
CREATE TABLE books (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    title         TEXT NOT NULL DEFAULT 'Unknown' COLLATE NOCASE,
    sort          TEXT COLLATE NOCASE,
    timestamp     TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    pubdate       TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    series_index  REAL NOT NULL DEFAULT 1.0,
    author_sort   TEXT COLLATE NOCASE,
    isbn          TEXT DEFAULT '' COLLATE NOCASE,
    lccn          TEXT DEFAULT '' COLLATE NOCASE,
    path          TEXT NOT NULL DEFAULT '',
    flags         INTEGER NOT NULL DEFAULT 1,
    uuid          TEXT,
    has_cover     BOOL DEFAULT 0,
    last_modified TIMESTAMP NOT NULL DEFAULT '2000-01-01 00:00:00+00:00'
);

CREATE INDEX books_idx ON books (sort COLLATE NOCASE);
CREATE INDEX authors_sort_idx ON books (author_sort COLLATE NOCASE);

CREATE TABLE authors (
    id   INTEGER PRIMARY KEY,
    name TEXT NOT NULL COLLATE NOCASE,
    sort TEXT COLLATE NOCASE,
    link TEXT NOT NULL DEFAULT '',
    UNIQUE(name)
);

CREATE TABLE publishers (
    id   INTEGER PRIMARY KEY,
    name TEXT NOT NULL COLLATE NOCASE,
    sort TEXT COLLATE NOCASE,
    UNIQUE(name)
);

CREATE TABLE series (
    id   INTEGER PRIMARY KEY,
    name TEXT NOT NULL COLLATE NOCASE,
    sort TEXT COLLATE NOCASE,
    UNIQUE (name)
);

CREATE TABLE tags (
    id   INTEGER PRIMARY KEY,
    name TEXT NOT NULL COLLATE NOCASE,
    UNIQUE (name)
);

CREATE TABLE ratings (
    id     INTEGER PRIMARY KEY,
    rating INTEGER CHECK(rating > -1 AND rating < 11),
    UNIQUE (rating)
);

CREATE TABLE languages (
    id        INTEGER PRIMARY KEY,
    lang_code TEXT NOT NULL COLLATE NOCASE,
    UNIQUE(lang_code)
);

CREATE TABLE books_authors_link (
    id     INTEGER PRIMARY KEY,
    book   INTEGER NOT NULL,
    author INTEGER NOT NULL,
    UNIQUE(book, author)
);

CREATE TABLE books_languages_link (
    id         INTEGER PRIMARY KEY,
    book       INTEGER NOT NULL,
    lang_code  INTEGER NOT NULL,
    item_order INTEGER NOT NULL DEFAULT 0,
    UNIQUE(book, lang_code)
);

CREATE TABLE books_publishers_link (
    id        INTEGER PRIMARY KEY,
    book      INTEGER NOT NULL,
    publisher INTEGER NOT NULL,
    UNIQUE(book)
);

CREATE TABLE books_ratings_link (
    id     INTEGER PRIMARY KEY,
    book   INTEGER NOT NULL,
    rating INTEGER NOT NULL,
    UNIQUE(book, rating)
);

CREATE TABLE books_series_link (
    id     INTEGER PRIMARY KEY,
    book   INTEGER NOT NULL,
    series INTEGER NOT NULL,
    UNIQUE(book)
);

CREATE TABLE books_tags_link (
    id   INTEGER PRIMARY KEY,
    book INTEGER NOT NULL,
    tag  INTEGER NOT NULL,
    UNIQUE(book, tag)
);

CREATE TABLE comments (
    id   INTEGER PRIMARY KEY,
    book INTEGER NOT NULL,
    text TEXT NOT NULL COLLATE NOCASE,
    UNIQUE(book)
);

CREATE TABLE data (
    id                INTEGER PRIMARY KEY,
    book              INTEGER NOT NULL,
    format            TEXT NOT NULL COLLATE NOCASE,
    uncompressed_size INTEGER NOT NULL,
    name              TEXT NOT NULL,
    UNIQUE(book, format)
);

CREATE TABLE identifiers (
    id   INTEGER PRIMARY KEY,
    book INTEGER NOT NULL,
    type TEXT NOT NULL DEFAULT 'isbn' COLLATE NOCASE,
    val  TEXT NOT NULL COLLATE NOCASE,
    UNIQUE(book, type)
);

CREATE TABLE metadata_dirtied (
    id   INTEGER PRIMARY KEY,
    book INTEGER NOT NULL,
    UNIQUE(book)
);

CREATE TABLE annotations_dirtied (
    id   INTEGER PRIMARY KEY,
    book INTEGER NOT NULL,
    UNIQUE(book)
);
"""

COMPANION_SCHEMA = """
CREATE TABLE user (
    id                     INTEGER PRIMARY KEY,
    name                   VARCHAR(64) UNIQUE,
    email                  VARCHAR(120) UNIQUE DEFAULT '',
    role                   SMALLINT DEFAULT 0,
    password               VARCHAR,
    kobo_only_shelves_sync SMALLINT DEFAULT 0
);

CREATE TABLE shelf (
    id            INTEGER PRIMARY KEY,
    uuid          VARCHAR,
    name          VARCHAR,
    is_public     INTEGER DEFAULT 0,
    user_id       INTEGER REFERENCES user(id),
    kobo_sync     BOOLEAN DEFAULT 0,
    created       DATETIME,
    last_modified DATETIME
);

CREATE TABLE book_shelf_link (
    id         INTEGER PRIMARY KEY,
    book_id    INTEGER,
    "order"    INTEGER,
    shelf      INTEGER REFERENCES shelf(id),
    date_added DATETIME
);

CREATE TABLE kobo_synced_books (
    id      INTEGER PRIMARY KEY,
    user_id INTEGER REFERENCES user(id),
    book_id INTEGER
);

CREATE TABLE kobo_reading_state (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id             INTEGER REFERENCES user(id),
    book_id             INTEGER,
    last_modified       DATETIME,
    priority_timestamp  DATETIME,
    current_bookmark_id INTEGER REFERENCES kobo_bookmark(id)
);

CREATE TABLE kobo_bookmark (
    id                              INTEGER PRIMARY KEY,
    kobo_reading_state_id           INTEGER REFERENCES kobo_reading_state(id),
    last_modified                   DATETIME,
    location_source                 VARCHAR,
    location_type                   VARCHAR,
    location_value                  VARCHAR,
    progress_percent                FLOAT,
    content_source_progress_percent FLOAT
);

CREATE TABLE kobo_statistics (
    id                     INTEGER PRIMARY KEY,
    kobo_reading_state_id  INTEGER REFERENCES kobo_reading_state(id),
    last_modified          DATETIME,
    remaining_time_minutes INTEGER,
    spent_reading_minutes  INTEGER
);

CREATE TABLE downloads (
    id      INTEGER PRIMARY KEY,
    book_id INTEGER,
    user_id INTEGER REFERENCES user(id)
);

CREATE TABLE archived_book (
    id            INTEGER PRIMARY KEY,
    user_id       INTEGER REFERENCES user(id),
    book_id       INTEGER,
    is_archived   BOOLEAN DEFAULT 0,
    last_modified DATETIME
);

INSERT INTO user (id, name, email, role) VALUES (1, 'admin', 'admin@localhost', 1);
"""
