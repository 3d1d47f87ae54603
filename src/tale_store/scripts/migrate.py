#!/usr/bin/env python3
"""Migrate a legacy TALE document into a SQLite store.

The whole migration runs in one transaction. A store that already holds
tales, families, samples or assemblies is refused unless --wipe is given.

Usage:
    tale-migrate tales.yaml tales.sqlite
    tale-migrate tales.yaml tales.sqlite --wipe
"""

from __future__ import annotations

import sqlite3
import sys
from pathlib import Path

import click

from tale_store.errors import GuardedOverwriteError, TaleStoreError
from tale_store.migration import migrate_file
from tale_store.scripts._common import EXIT_FAILURE, EXIT_REFUSED, TaleCommand, setup_logging


@click.command(cls=TaleCommand)
@click.argument("document", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("store", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--wipe",
    is_flag=True,
    help="Delete existing rows before migrating",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging",
)
def main(document: Path, store: Path, wipe: bool, verbose: bool) -> None:
    """Migrate DOCUMENT into the SQLite file STORE."""
    setup_logging(verbose)

    click.echo(f"Migrating {document} into {store}")
    try:
        result = migrate_file(document, store, wipe=wipe)
    except GuardedOverwriteError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(EXIT_REFUSED)
    except (TaleStoreError, sqlite3.Error) as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(EXIT_FAILURE)

    click.echo(f"Done: {result}")


if __name__ == "__main__":
    main()
