# ABOUTME: Shared Click options for shelfwright commands.
# ABOUTME: Store locations come from flags or SHELFWRIGHT_* environment variables.

from pathlib import Path

import click

from shelfwright.config import DEFAULT_LIBRARY_PATH

library_option = click.option(
    "--library",
    "library_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="SHELFWRIGHT_LIBRARY",
    default=None,
    help=f"Path to the catalog database, metadata.db (default: {DEFAULT_LIBRARY_PATH})",
)

companion_option = click.option(
    "--companion-db",
    "companion_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="SHELFWRIGHT_COMPANION_DB",
    default=None,
    help="Path to the companion database with collections and sync state (app.db).",
)

owner_option = click.option(
    "--user",
    "owner",
    default=None,
    help="Username owning the collection (default: the configured default owner).",
)
