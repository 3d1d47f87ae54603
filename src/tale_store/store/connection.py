"""SQLite connection helpers."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


def open_store(path: str | Path) -> sqlite3.Connection:
    """Open (or create) a store file.

    The connection runs in autocommit mode so that :func:`transaction` can
    issue explicit ``BEGIN``/``COMMIT``; rows come back as ``sqlite3.Row``.
    """
    conn = sqlite3.connect(str(path), isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    logger.debug(f"Opened store {path}")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block inside one write transaction.

    Any exception rolls back everything written in the block, schema
    statements included, and is re-raised.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        logger.debug("Transaction rolled back")
        raise
    conn.execute("COMMIT")
