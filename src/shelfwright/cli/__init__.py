# ABOUTME: CLI package for shelfwright, built on Click.
# ABOUTME: Defines the root command group, configures Rich logging, and registers subcommands.

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from shelfwright.cli.commands import (
    add_cmd,
    collection_cmd,
    delete_cmd,
    inspect_cmd,
    ls_cmd,
    sweep_cmd,
)

_LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def _configure_logging(verbosity: int) -> None:
    logging.basicConfig(
        level=_LOG_LEVELS.get(verbosity, logging.DEBUG),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(package_name="shelfwright")
@click.option("-v", "--verbose", count=True, help="Log more detail (-v info, -vv debug).")
def cli(verbose: int) -> None:
    """shelfwright - keep a Calibre library, its Calibre-Web shelves, and its files in step."""
    _configure_logging(verbose)


cli.add_command(add_cmd.add)
cli.add_command(add_cmd.import_command)
cli.add_command(ls_cmd.ls)
cli.add_command(delete_cmd.delete)
cli.add_command(collection_cmd.collections)
cli.add_command(collection_cmd.collect)
cli.add_command(collection_cmd.clean_collections)
cli.add_command(inspect_cmd.inspect)
cli.add_command(sweep_cmd.cleanup)
cli.add_command(sweep_cmd.sync_repair)
cli.add_command(sweep_cmd.sync_diagnose)
