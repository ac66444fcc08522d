# ABOUTME: Core metadata data structure handed from the EPUB extractor to the catalog.
# ABOUTME: BookMetadata carries everything the upsert engine and file placement need.

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


@dataclass
class BookMetadata:
    """Structured metadata for an incoming book file.

    Title and author are mandatory; an extractor that cannot produce either
    raises instead of returning a record. Everything else is optional.
    """

    title: str
    author: str
    source_path: Path
    file_size: int = 0
    description: str | None = None
    language: str | None = None
    isbn: str | None = None
    rights: str | None = None
    subtitle: str | None = None
    series: str | None = None
    series_index: float | None = None
    publisher: str | None = None
    pubdate: datetime | None = None
    cover_image: bytes | None = None

    @property
    def has_cover(self) -> bool:
        """Whether embedded cover image data is present."""
        return self.cover_image is not None and len(self.cover_image) > 0

    @property
    def display_name(self) -> str:
        """File-name stem used in the library tree: 'Title - Author'."""
        return f"{self.title} - {self.author}"
