# ABOUTME: Test helpers shared across unit, integration, and e2e tests.
# ABOUTME: Build EPUBs with ebooklib and JPEGs with Pillow, and poke companion rows directly.

import sqlite3
from datetime import UTC, datetime
from io import BytesIO
from pathlib import Path

from ebooklib import epub
from PIL import Image

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)


def make_jpeg(width: int = 120, height: int = 180, color: str = "navy") -> bytes:
    """Encode a solid-colour JPEG."""
    output = BytesIO()
    Image.new("RGB", (width, height), color).save(output, format="JPEG")
    return output.getvalue()


def make_noise_jpeg(width: int, height: int) -> bytes:
    """Encode a high-entropy JPEG that compresses poorly."""
    img = Image.effect_noise((width, height), 100).convert("RGB")
    output = BytesIO()
    img.save(output, format="JPEG", quality=100)
    return output.getvalue()


def write_epub(
    path: Path,
    title: str | None,
    author: str | None,
    *,
    language: str | None = "en",
    publisher: str | None = None,
    pubdate: str | None = None,
    description: str | None = None,
    rights: str | None = None,
    isbn: str | None = None,
    series: str | None = None,
    series_index: str | None = None,
    subtitle: str | None = None,
    cover: bytes | None = None,
    body: str = "Content.",
) -> Path:
    """Write a minimal, structurally valid EPUB with the given metadata."""
    book = epub.EpubBook()
    book.set_identifier(f"urn:uuid:test-{title}-{author}")
    if title:
        book.set_title(title)
    if language:
        book.set_language(language)
    if author:
        book.add_author(author)
    if publisher:
        book.add_metadata("DC", "publisher", publisher)
    if pubdate:
        book.add_metadata("DC", "date", pubdate)
    if description:
        book.add_metadata("DC", "description", description)
    if rights:
        book.add_metadata("DC", "rights", rights)
    if isbn:
        book.add_metadata("DC", "identifier", isbn)
    if series:
        book.add_metadata("OPF", "meta", "", {"name": "calibre:series", "content": series})
    if series_index:
        book.add_metadata(
            "OPF", "meta", "", {"name": "calibre:series_index", "content": series_index}
        )
    if subtitle:
        book.add_metadata("OPF", "meta", "", {"name": "calibre:subtitle", "content": subtitle})
    if cover:
        book.set_cover("cover.jpg", cover)

    chapter = epub.EpubHtml(title="Chapter 1", file_name="chap01.xhtml", lang="en")
    chapter.content = f"<html><body><h1>Chapter 1</h1><p>{body}</p></body></html>".encode()
    book.add_item(chapter)

    book.toc = [epub.Link("chap01.xhtml", "Chapter 1", "chap01")]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter]

    path.parent.mkdir(parents=True, exist_ok=True)
    epub.write_epub(str(path), book)
    return path


def add_user(conn: sqlite3.Connection, name: str, *, only_shelves_sync: bool = False) -> int:
    cursor = conn.execute(
        "INSERT INTO user (name, email, kobo_only_shelves_sync) VALUES (?, ?, ?)",
        (name, f"{name}@example.com", int(only_shelves_sync)),
    )
    return cursor.lastrowid  # type: ignore[return-value]


def enable_sync(conn: sqlite3.Connection, collection_name: str) -> None:
    conn.execute("UPDATE shelf SET kobo_sync = 1 WHERE name = ?", (collection_name,))


def count_rows(conn: sqlite3.Connection, table: str, where: str = "", params: tuple = ()) -> int:
    sql = f"SELECT COUNT(*) FROM {table}"
    if where:
        sql += f" WHERE {where}"
    return conn.execute(sql, params).fetchone()[0]
