# ABOUTME: Change detection between an incoming book's metadata and its catalog record.
# ABOUTME: Produces per-field change flags that gate which columns and links the upsert rewrites.

import sys
from dataclasses import dataclass
from datetime import datetime

from shelfwright.metadata.types import BookMetadata

DEFAULT_SERIES_INDEX = 1.0


@dataclass(frozen=True)
class BookSnapshot:
    """The comparable fields of an existing catalog record."""

    pubdate: datetime | None
    series_index: float
    publisher: str | None
    series: str | None


@dataclass(frozen=True)
class ChangeSet:
    """Which comparable fields differ between the record and the incoming metadata."""

    pubdate_changed: bool = False
    series_index_changed: bool = False
    publisher_changed: bool = False
    series_changed: bool = False

    @property
    def has_any_changes(self) -> bool:
        return (
            self.pubdate_changed
            or self.series_index_changed
            or self.publisher_changed
            or self.series_changed
        )

    @property
    def changed_fields(self) -> list[str]:
        """Names of the changed fields, for reporting."""
        flags = {
            "pubdate": self.pubdate_changed,
            "series_index": self.series_index_changed,
            "publisher": self.publisher_changed,
            "series": self.series_changed,
        }
        return [name for name, changed in flags.items() if changed]


def compare_metadata(existing: BookSnapshot, incoming: BookMetadata) -> ChangeSet:
    """Compare an existing record with incoming metadata.

    Optional values compare equal only when both are None or both are set
    and equal. A missing incoming series index counts as 1.0, and index
    differences within float epsilon are ignored.
    """
    new_index = (
        incoming.series_index if incoming.series_index is not None else DEFAULT_SERIES_INDEX
    )
    return ChangeSet(
        pubdate_changed=existing.pubdate != incoming.pubdate,
        series_index_changed=abs(existing.series_index - new_index) > sys.float_info.epsilon,
        publisher_changed=existing.publisher != incoming.publisher,
        series_changed=existing.series != incoming.series,
    )
