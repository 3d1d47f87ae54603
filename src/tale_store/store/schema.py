"""Idempotent schema management for the TALE store.

``ensure_schema`` applies the packaged base script and then adds every column
introduced by a later revision that the file does not have yet. It never
drops or truncates anything and can be run on a current store at any time.
"""

from __future__ import annotations

import logging
import sqlite3
from importlib import resources

from tale_store.errors import SchemaError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
SCHEMA_RESOURCE = "schema.sql"

# (table, column, declaration) for columns added after the base revision
ADDED_COLUMNS: list[tuple[str, str, str]] = [
    ("repeat", "masked_seq_1", "TEXT"),
    ("repeat", "masked_seq_2", "TEXT"),
    ("tale", "is_pseudo", "INTEGER NOT NULL DEFAULT 0"),
    ("tale", "external_name", "TEXT"),
    ("assembly", "replicon_type", "TEXT"),
    ("samples", "species", "TEXT"),
    ("samples", "pathovar", "TEXT"),
    ("samples", "isolate", "TEXT"),
    ("samples", "geo_tag", "TEXT"),
    ("samples", "taxon_id", "INTEGER REFERENCES taxonomy(id)"),
    ("family", "alignments_blob", "TEXT"),
]


def load_schema_script() -> str:
    """Return the packaged base schema text."""
    return resources.files("tale_store.store").joinpath(SCHEMA_RESOURCE).read_text(encoding="utf-8")


def split_statements(script: str) -> list[str]:
    """Split a schema script into individual non-empty statements."""
    return [stmt.strip() for stmt in script.split(";") if stmt.strip()]


def column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    """Check whether ``table`` has ``column`` (case-insensitive)."""
    rows = conn.execute(f"PRAGMA table_info('{table}')").fetchall()
    return any(str(row[1]).lower() == column.lower() for row in rows)


def ensure_column(conn: sqlite3.Connection, table: str, column: str, declaration: str) -> bool:
    """Add a column when absent.

    Returns:
        True if the column was added
    """
    if column_exists(conn, table, column):
        return False
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {declaration}")
    logger.info(f"Added column {table}.{column}")
    return True


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Bring the store up to the current schema revision.

    Any failing statement aborts the call with :class:`SchemaError`; rolling
    back is left to the caller's transaction.
    """
    try:
        for statement in split_statements(load_schema_script()):
            conn.execute(statement)
        for table, column, declaration in ADDED_COLUMNS:
            ensure_column(conn, table, column, declaration)
        conn.execute("INSERT OR IGNORE INTO schema_migrations(version) VALUES (?)", (SCHEMA_VERSION,))
    except sqlite3.Error as e:
        raise SchemaError(f"Schema update failed: {e}") from e
    logger.debug(f"Schema at revision {SCHEMA_VERSION}")


def applied_versions(conn: sqlite3.Connection) -> list[int]:
    """Return the recorded schema revisions in ascending order."""
    return [row[0] for row in conn.execute("SELECT version FROM schema_migrations ORDER BY version")]
