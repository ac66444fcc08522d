# ABOUTME: Opens the catalog and optional companion store for a CLI command.
# ABOUTME: Closes both connections on exit and turns a missing store into a clean exit 1.

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from shelfwright.config import DEFAULT_LIBRARY_PATH, Settings
from shelfwright.db.catalog import LibraryCatalog
from shelfwright.db.companion import CompanionStore
from shelfwright.db.connection import open_catalog, open_companion
from shelfwright.errors import StoreNotFoundError


@dataclass
class Stores:
    catalog: LibraryCatalog
    companion: CompanionStore | None
    library_root: Path
    settings: Settings


@contextmanager
def open_stores(
    console: Console,
    library_path: Path | None,
    companion_path: Path | None,
    *,
    require_companion: bool = False,
) -> Iterator[Stores]:
    """Open the stores a command needs, exiting with status 1 if one is missing."""
    metadata_db = library_path or DEFAULT_LIBRARY_PATH
    if require_companion and companion_path is None:
        console.print("[red]This command needs --companion-db (or SHELFWRIGHT_COMPANION_DB).[/red]")
        raise SystemExit(1)

    settings = Settings.from_env()
    try:
        catalog_conn = open_catalog(metadata_db)
    except StoreNotFoundError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise SystemExit(1) from exc

    companion_conn = None
    try:
        companion = None
        if companion_path is not None:
            companion_conn = open_companion(companion_path)
            companion = CompanionStore(companion_conn, settings=settings)
        yield Stores(
            catalog=LibraryCatalog(catalog_conn),
            companion=companion,
            library_root=metadata_db.parent,
            settings=settings,
        )
    except StoreNotFoundError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise SystemExit(1) from exc
    finally:
        if companion_conn is not None:
            companion_conn.close()
        catalog_conn.close()
