"""SQLite store for migrated TALE data.

- connection: Opening the store and explicit write transactions
- schema: Idempotent, additive schema management
- upsert: Natural-key upsert primitive
- dao: Row-level writes used by the migration
- reader: Rebuilding a document from the store
"""

from tale_store.store.connection import open_store, transaction
from tale_store.store.dao import TaleDao, accession_display, split_accession
from tale_store.store.reader import read_document
from tale_store.store.schema import SCHEMA_VERSION, ensure_column, ensure_schema
from tale_store.store.upsert import upsert

__all__ = [
    "SCHEMA_VERSION",
    "TaleDao",
    "accession_display",
    "ensure_column",
    "ensure_schema",
    "open_store",
    "read_document",
    "split_accession",
    "transaction",
    "upsert",
]
