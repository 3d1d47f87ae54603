#!/usr/bin/env python3
"""Copy each family's alignment block from a document into the store.

Usage:
    tale-store-alignments tales.yaml tales.sqlite
"""

from __future__ import annotations

import sqlite3
import sys
from pathlib import Path

import click

from tale_store.alignments import store_alignment_file
from tale_store.errors import TaleStoreError
from tale_store.scripts._common import EXIT_FAILURE, TaleCommand, setup_logging


@click.command(cls=TaleCommand)
@click.argument("document", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("store", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging",
)
def main(document: Path, store: Path, verbose: bool) -> None:
    """Store the alignments of DOCUMENT's families in STORE."""
    setup_logging(verbose)

    try:
        updated = store_alignment_file(document, store)
    except (TaleStoreError, sqlite3.Error) as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(EXIT_FAILURE)

    click.echo(f"Stored alignments for {updated} families")


if __name__ == "__main__":
    main()
