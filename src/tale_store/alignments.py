"""Store each family's serialized alignment block on its family row."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from tale_store.document.loader import load_document
from tale_store.document.models import TaleDocument
from tale_store.store.connection import open_store, transaction
from tale_store.store.schema import ensure_schema

logger = logging.getLogger(__name__)


def store_alignment_blobs(document: TaleDocument, conn: sqlite3.Connection) -> int:
    """Write ``family.alignments_blob`` for every family that has alignments.

    Families missing from the store are logged and skipped.

    Returns:
        Number of family rows updated
    """
    updated = 0
    with transaction(conn):
        ensure_schema(conn)
        for family in document.families:
            if not family.alignments:
                continue
            cursor = conn.execute(
                "UPDATE family SET alignments_blob = ? WHERE name = ?", (family.alignments, family.name)
            )
            if cursor.rowcount == 0:
                logger.warning(f"Family {family.name} not in store, alignments not stored")
                continue
            updated += cursor.rowcount
    logger.info(f"Stored alignments for {updated} families")
    return updated


def store_alignment_file(document_path: str | Path, store_path: str | Path) -> int:
    document = load_document(document_path)
    conn = open_store(store_path)
    try:
        return store_alignment_blobs(document, conn)
    finally:
        conn.close()
