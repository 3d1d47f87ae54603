"""Natural-key upsert primitive.

Rows are located by their natural key (compared with ``IS`` so that NULL key
parts match NULL), inserted when absent, and otherwise updated in one of two
modes:

- ``coalesce``: only fill columns that are currently NULL
- ``replace``: overwrite every given column

Table and column names are module constants, never user input.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping
from typing import Any, Literal

logger = logging.getLogger(__name__)

UpsertMode = Literal["coalesce", "replace"]


def find_id(conn: sqlite3.Connection, table: str, key: Mapping[str, Any]) -> Any:
    """Return the id of the row matching ``key``, or None."""
    where = " AND ".join(f"{col} IS ?" for col in key)
    row = conn.execute(f"SELECT id FROM {table} WHERE {where} LIMIT 1", tuple(key.values())).fetchone()
    return row[0] if row is not None else None


def insert_row(conn: sqlite3.Connection, table: str, values: Mapping[str, Any]) -> Any:
    """Insert a row and return its ``id`` column.

    An explicit id is returned as given; otherwise the id is read back by
    rowid, which also covers tables whose ``id`` is not an integer alias.
    """
    columns = ", ".join(values)
    marks = ", ".join("?" for _ in values)
    cursor = conn.execute(f"INSERT INTO {table} ({columns}) VALUES ({marks})", tuple(values.values()))
    if values.get("id") is not None:
        return values["id"]
    row = conn.execute(f"SELECT id FROM {table} WHERE rowid = ?", (cursor.lastrowid,)).fetchone()
    return row[0]


def update_row(
    conn: sqlite3.Connection,
    table: str,
    row_id: Any,
    values: Mapping[str, Any],
    mode: UpsertMode = "coalesce",
) -> None:
    """Update an existing row by id using the given mode."""
    if not values:
        return
    if mode == "coalesce":
        assignments = ", ".join(f"{col} = COALESCE({col}, ?)" for col in values)
    elif mode == "replace":
        assignments = ", ".join(f"{col} = ?" for col in values)
    else:
        raise ValueError(f"Unknown upsert mode: {mode}")
    conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", (*values.values(), row_id))


def upsert(
    conn: sqlite3.Connection,
    table: str,
    key: Mapping[str, Any],
    values: Mapping[str, Any] | None = None,
    mode: UpsertMode = "coalesce",
) -> Any:
    """Find by natural key, else insert; update the non-key columns when found.

    Args:
        conn: Open connection
        table: Target table (must have an ``id`` primary key column)
        key: Natural key columns and values
        values: Non-key columns to write
        mode: ``coalesce`` fills NULL columns only, ``replace`` overwrites

    Returns:
        Row id of the found or inserted row
    """
    values = dict(values or {})
    existing = find_id(conn, table, key)
    if existing is None:
        row_id = insert_row(conn, table, {**key, **values})
        logger.debug(f"Inserted {table} id={row_id} key={dict(key)}")
        return row_id
    update_row(conn, table, existing, values, mode)
    return existing
