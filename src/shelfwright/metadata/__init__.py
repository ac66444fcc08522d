# ABOUTME: Metadata package: the BookMetadata record and identity/sort normalization.
# ABOUTME: Exports the types and pure functions shared by the extractor and the catalog.

from shelfwright.metadata.sorting import author_sort_key, normalize_language, title_sort_key
from shelfwright.metadata.types import BookMetadata

__all__ = [
    "BookMetadata",
    "author_sort_key",
    "normalize_language",
    "title_sort_key",
]
