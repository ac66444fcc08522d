# ABOUTME: Public API for the shelfwright storage layer.
# ABOUTME: Exports store connections, the catalog and companion wrappers, and the hash provider.

from shelfwright.db.catalog import CatalogBook, LibraryCatalog
from shelfwright.db.companion import Collection, CompanionStore
from shelfwright.db.connection import open_catalog, open_companion, transaction
from shelfwright.db.hashing import compute_file_hash

__all__ = [
    "CatalogBook",
    "Collection",
    "CompanionStore",
    "LibraryCatalog",
    "compute_file_hash",
    "open_catalog",
    "open_companion",
    "transaction",
]
