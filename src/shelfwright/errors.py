# ABOUTME: Exception taxonomy shared by the catalog, companion, and filesystem layers.
# ABOUTME: Input errors abort one unit of work; storage errors surface as sqlite3.Error.


class ShelfwrightError(Exception):
    """Base class for errors that abort a single unit of work."""


class MetadataError(ShelfwrightError):
    """Raised when a book's metadata cannot be read or lacks a required field."""


class UnsupportedFormatError(ShelfwrightError):
    """Raised when a source file's extension is not a supported book format."""


class UserNotFoundError(ShelfwrightError):
    """Raised when a referenced username does not exist in the companion store."""


class CollectionNotFoundError(ShelfwrightError):
    """Raised when a referenced collection does not exist."""


class BookNotFoundError(ShelfwrightError):
    """Raised when a referenced book id does not exist in the catalog."""


class StoreNotFoundError(ShelfwrightError):
    """Raised when a database file required by a command is missing."""


class LibraryFileError(ShelfwrightError):
    """Raised when a filesystem step in the library tree fails."""
