#!/usr/bin/env python3
"""Check that a store matches the document it was migrated from.

Exits with status 2 when any difference is found.

Usage:
    tale-verify tales.yaml tales.sqlite
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from tale_store.errors import TaleStoreError
from tale_store.scripts._common import EXIT_FAILURE, EXIT_REFUSED, TaleCommand, setup_logging
from tale_store.verify import MAX_DIFFS, verify_files


@click.command(cls=TaleCommand)
@click.argument("document", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("store", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--max-diffs",
    type=click.IntRange(min=1),
    default=MAX_DIFFS,
    show_default=True,
    help="Number of differences listed before the rest are summarized",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging",
)
def main(document: Path, store: Path, max_diffs: int, verbose: bool) -> None:
    """Compare DOCUMENT with the SQLite file STORE."""
    setup_logging(verbose)

    try:
        report = verify_files(document, store, max_diffs=max_diffs)
    except TaleStoreError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(EXIT_FAILURE)

    click.echo(report.summary())
    if report.has_diffs:
        sys.exit(EXIT_REFUSED)


if __name__ == "__main__":
    main()
