# ABOUTME: Shared pytest fixtures for shelfwright tests.
# ABOUTME: Provides sample EPUB files and empty catalog/companion stores on a fixed clock.

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from shelfwright.config import Settings
from shelfwright.core.clock import FixedClock
from shelfwright.db.catalog import LibraryCatalog
from shelfwright.db.companion import CompanionStore
from shelfwright.db.connection import open_catalog, open_companion
from tests.helpers import FIXED_NOW, add_user, make_jpeg, write_epub


@pytest.fixture
def make_epub() -> Callable[..., Path]:
    """Factory for EPUB files: make_epub(path, title, author, **metadata)."""
    return write_epub


@pytest.fixture
def incoming_dir(tmp_path: Path) -> Path:
    """Directory holding books waiting to be imported."""
    path = tmp_path / "incoming"
    path.mkdir()
    return path


@pytest.fixture
def gatsby_epub(incoming_dir: Path) -> Path:
    """The Great Gatsby with publisher, date, ISBN, description, and a cover."""
    return write_epub(
        incoming_dir / "gatsby.epub",
        "The Great Gatsby",
        "F. Scott Fitzgerald",
        publisher="Scribner",
        pubdate="1925-04-10",
        description="<p>A novel of the Jazz Age.</p>",
        isbn="9780743273565",
        cover=make_jpeg(),
    )


@pytest.fixture
def corrupt_epub(incoming_dir: Path) -> Path:
    """A file with an .epub name that is not a valid EPUB."""
    path = incoming_dir / "corrupt.epub"
    path.write_text("this is not a valid epub file")
    return path


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(FIXED_NOW)


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def library_root(tmp_path: Path) -> Path:
    root = tmp_path / "Calibre Library"
    root.mkdir()
    return root


@pytest.fixture
def catalog_db(library_root: Path) -> Path:
    return library_root / "metadata.db"


@pytest.fixture
def catalog(catalog_db: Path) -> Iterator[LibraryCatalog]:
    """An empty catalog store at '<library_root>/metadata.db'."""
    conn = open_catalog(catalog_db, create=True)
    yield LibraryCatalog(conn)
    conn.close()


@pytest.fixture
def companion_db(tmp_path: Path) -> Path:
    return tmp_path / "app.db"


@pytest.fixture
def companion(
    companion_db: Path, clock: FixedClock, settings: Settings
) -> Iterator[CompanionStore]:
    """An empty companion store with only the admin user (id 1)."""
    conn = open_companion(companion_db, create=True)
    yield CompanionStore(conn, settings=settings, clock=clock)
    conn.close()


@pytest.fixture
def alice(companion: CompanionStore) -> int:
    """Id of a second user, 'alice'."""
    return add_user(companion.conn, "alice")
