#!/usr/bin/env python3
"""Fill missing accession, sample and taxonomy metadata from NCBI.

Assemblies are processed in batches of distinct accessions. Raw responses
are cached on disk, so an interrupted run can be restarted cheaply. Ctrl-C
stops the run after the current batch.

Usage:
    tale-enrich tales.sqlite
    tale-enrich tales.sqlite 50 --delay-ms 500 --cache-dir cache/ncbi
"""

from __future__ import annotations

import dataclasses
import signal
import sqlite3
import sys
import threading
from pathlib import Path

import click

from tale_store.clients.ncbi import NcbiClient
from tale_store.config import NcbiSettings
from tale_store.enrichment import enrich_store
from tale_store.errors import TaleStoreError
from tale_store.ncbi.cache import ResponseCache
from tale_store.scripts._common import EXIT_FAILURE, TaleCommand, setup_logging
from tale_store.store.connection import open_store


@click.command(cls=TaleCommand)
@click.argument("store", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("batch_size", type=click.IntRange(min=1), required=False)
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Response cache directory (default: $TALE_STORE_NCBI_CACHE_DIR or a temp dir)",
)
@click.option(
    "--delay-ms",
    type=click.IntRange(min=0),
    default=None,
    help="Pause after every outbound batch in milliseconds (default: 200)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging",
)
def main(
    store: Path,
    batch_size: int | None,
    cache_dir: Path | None,
    delay_ms: int | None,
    verbose: bool,
) -> None:
    """Enrich the assemblies and samples in STORE from NCBI.

    BATCH_SIZE is the number of distinct accessions fetched per batch
    (default: 100).
    """
    setup_logging(verbose)

    settings = NcbiSettings.from_env()
    overrides = {
        "batch_size": batch_size,
        "cache_dir": cache_dir,
        "delay_ms": delay_ms,
    }
    settings = dataclasses.replace(settings, **{k: v for k, v in overrides.items() if v is not None})
    click.echo(f"Enriching {store} (batch size {settings.batch_size}, cache {settings.cache_dir})")

    cancel = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    conn = open_store(store)
    try:
        with NcbiClient.from_settings(settings) as client:
            stats = enrich_store(
                conn,
                client,
                ResponseCache(settings.cache_dir),
                batch_size=settings.batch_size,
                delay_ms=settings.delay_ms,
                cancel=cancel,
            )
    except (TaleStoreError, sqlite3.Error) as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(EXIT_FAILURE)
    finally:
        conn.close()
        signal.signal(signal.SIGINT, previous)

    click.echo(f"Done: {stats}")
    if stats.failed_accessions:
        click.echo(f"Skipped accessions: {', '.join(sorted(set(stats.failed_accessions)))}")


if __name__ == "__main__":
    main()
