# ABOUTME: Read-only diagnostic reports across the catalog and companion stores.
# ABOUTME: Builds the data behind the inspect and sync-diagnose commands; rendering lives in the CLI.

from dataclasses import dataclass, field
from enum import Enum

from shelfwright.db.catalog import CatalogBook, CatalogStats, LibraryCatalog
from shelfwright.db.companion import Collection, CompanionStore


class SyncStatus(Enum):
    FULL = "full sync setup"
    MISSING_READING_STATE = "missing reading state"
    MISSING_SYNC_ENTRY = "missing sync entry"
    NONE = "no sync setup"

    @classmethod
    def from_flags(cls, acknowledged: bool, has_reading_state: bool) -> "SyncStatus":
        if acknowledged and has_reading_state:
            return cls.FULL
        if acknowledged:
            return cls.MISSING_READING_STATE
        if has_reading_state:
            return cls.MISSING_SYNC_ENTRY
        return cls.NONE


@dataclass
class MemberView:
    """A collection member resolved against the catalog."""

    position: int
    book_id: int
    title: str | None
    date_added: str | None = None
    status: SyncStatus | None = None

    @property
    def display_title(self) -> str:
        return self.title if self.title is not None else f"Unknown (ID: {self.book_id})"


@dataclass
class CollectionView:
    collection: Collection
    members: list[MemberView] = field(default_factory=list)


@dataclass
class DanglingLink:
    """A membership link whose book is not in the catalog."""

    book_id: int
    collection_name: str


@dataclass
class InspectReport:
    stats: CatalogStats
    recent: list[CatalogBook]
    collections: list[CollectionView] = field(default_factory=list)
    dangling_links: list[DanglingLink] = field(default_factory=list)


@dataclass
class SyncUser:
    id: int
    name: str | None
    only_shelves_sync: bool


@dataclass
class SyncDiagnosis:
    users: list[SyncUser] = field(default_factory=list)
    collections: list[CollectionView] = field(default_factory=list)


def _titles(catalog: LibraryCatalog) -> dict[int, str]:
    return {book.id: book.title for book in catalog.list_books()}


def inspect_library(
    catalog: LibraryCatalog, companion: CompanionStore | None = None
) -> InspectReport:
    """Collect catalog statistics, recent books, and collection membership."""
    report = InspectReport(stats=catalog.stats(), recent=catalog.recent_books())
    if companion is None:
        return report

    titles = _titles(catalog)
    for collection in companion.list_collections():
        view = CollectionView(collection)
        for member in companion.members(collection.id):
            view.members.append(
                MemberView(member.position, member.book_id, titles.get(member.book_id))
            )
            if member.book_id not in titles:
                report.dangling_links.append(DanglingLink(member.book_id, collection.name))
        report.collections.append(view)
    return report


def diagnose_sync(catalog: LibraryCatalog, companion: CompanionStore) -> SyncDiagnosis:
    """Report sync-enabled collections and each member's device-sync setup."""
    conn = companion.conn
    diagnosis = SyncDiagnosis()

    for row in conn.execute(
        "SELECT id, name, kobo_only_shelves_sync FROM user WHERE id IN "
        "(SELECT DISTINCT user_id FROM shelf WHERE kobo_sync = 1) ORDER BY id"
    ):
        diagnosis.users.append(SyncUser(row[0], row[1], bool(row[2])))

    titles = _titles(catalog)
    for collection in companion.sync_collections():
        view = CollectionView(collection)
        for member in companion.members(collection.id):
            acknowledged = conn.execute(
                "SELECT 1 FROM kobo_synced_books WHERE user_id = ? AND book_id = ?",
                (collection.owner_id, member.book_id),
            ).fetchone() is not None
            has_state = conn.execute(
                "SELECT 1 FROM kobo_reading_state WHERE user_id = ? AND book_id = ?",
                (collection.owner_id, member.book_id),
            ).fetchone() is not None
            view.members.append(
                MemberView(
                    member.position,
                    member.book_id,
                    titles.get(member.book_id),
                    date_added=member.date_added,
                    status=SyncStatus.from_flags(acknowledged, has_state),
                )
            )
        diagnosis.collections.append(view)
    return diagnosis
