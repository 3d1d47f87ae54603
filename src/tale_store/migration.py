"""Load a parsed TALE document into the relational store.

Everything happens inside one transaction: the schema update, the overwrite
guard, the optional wipe and every insert. Any failure rolls the whole run
back, so the store is either fully migrated or untouched.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path

from tale_store.document.loader import load_document
from tale_store.document.models import FamilyEntry, TaleDocument, TaleEntry
from tale_store.errors import GuardedOverwriteError, ReferentialIntegrityError
from tale_store.store.connection import open_store, transaction
from tale_store.store.dao import TaleDao, split_accession
from tale_store.store.schema import ensure_schema
from tale_store.strains.normalizer import parse_strain_label
from tale_store.tree import newick

logger = logging.getLogger(__name__)

# Tables whose rows mean the store already holds a migration
GUARDED_TABLES = ("tale", "family", "samples", "assembly")

# Child-to-parent order
WIPE_ORDER = (
    "family_member",
    "family",
    "analysis_config",
    "dmat_tale_order",
    "dmat",
    "repeat",
    "tale",
    "assembly",
    "samples",
    "taxonomy",
    "taxonomy_legacy",
    "data_version",
)


@dataclass
class MigrationResult:
    """Row counts written by one migration run."""

    tales: int = 0
    repeats: int = 0
    samples: int = 0
    assemblies: int = 0
    families: int = 0
    members: int = 0
    dmat_rows: int = 0
    data_version: int | None = None
    wiped: bool = False

    def __str__(self) -> str:
        return (
            f"Migration: {self.tales} tales, {self.repeats} repeats, "
            f"{self.samples} samples, {self.assemblies} assemblies, "
            f"{self.families} families ({self.members} members), "
            f"{self.dmat_rows} matrix rows, data version {self.data_version}"
        )


def populated_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the guarded tables that already hold rows."""
    return [table for table in GUARDED_TABLES if conn.execute(f"SELECT 1 FROM {table} LIMIT 1").fetchone()]


def wipe_store(conn: sqlite3.Connection) -> None:
    """Delete all migrated rows, children first."""
    for table in WIPE_ORDER:
        deleted = conn.execute(f"DELETE FROM {table}").rowcount
        logger.debug(f"Wiped {deleted} rows from {table}")


def next_data_version(previous: int | None, now_ms: int | None = None) -> int:
    """Millisecond timestamp, forced above the previous marker."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if previous is None:
        return now_ms
    return max(previous + 1, now_ms)


def _label_name(species: str, pathovar: str | None) -> str:
    return f"{species} pv. {pathovar}" if pathovar else species


class _Migrator:
    """Per-run state: the DAO, the name -> row id map and the counters."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.dao = TaleDao(conn)
        self.tale_ids: dict[str, int] = {}
        self.sample_ids: set[int] = set()
        self.assembly_ids: set[int] = set()
        self.result = MigrationResult()

    def migrate_tale(self, tale: TaleEntry) -> int:
        parsed = parse_strain_label(tale.strain)
        legacy_taxon_id = None
        if parsed is not None:
            legacy_taxon_id = self.dao.upsert_legacy_taxonomy(
                _label_name(parsed.species, parsed.pathovar), parsed.species, parsed.pathovar
            )
        elif tale.strain:
            logger.debug(f"Keeping raw strain label for {tale.name}: {tale.strain!r}")

        sample_id = self.dao.upsert_sample(
            tale.strain,
            species=parsed.species if parsed else None,
            pathovar=parsed.pathovar if parsed else None,
            isolate=parsed.isolate if parsed else None,
            legacy_taxon_id=legacy_taxon_id,
        )
        self.sample_ids.add(sample_id)

        assembly_id = None
        accession, version = split_accession(tale.accession)
        if accession is not None:
            assembly_id = self.dao.upsert_assembly(accession, version, sample_id)
            self.assembly_ids.add(assembly_id)

        tale_id = self.dao.upsert_tale(tale, sample_id, assembly_id)
        self.result.repeats += self.dao.insert_repeats(tale_id, tale.repeats)
        self.tale_ids[tale.name] = tale_id
        return tale_id

    def _row_id(self, name: str, context: str) -> int:
        tale_id = self.tale_ids.get(name)
        if tale_id is None:
            raise ReferentialIntegrityError(f"{context} references tale {name!r} with no row id")
        return tale_id

    def migrate_family(self, family: FamilyEntry) -> int:
        member_ids = [self._row_id(name, f"Family {family.name}") for name in family.members]
        if family.tree is not None:
            outside = [name for name in family.tree.elements() if name not in family.members]
            if outside:
                raise ReferentialIntegrityError(
                    f"Tree of family {family.name} has leaves that are not members: {', '.join(outside)}"
                )
        tree = family.tree if family.tree is not None else newick.simple_tree(family.members)
        tree_text = newick.encode(tree, self.tale_ids.get)
        family_id = self.dao.upsert_family(family.name, len(member_ids), tree_text)
        self.result.members += self.dao.replace_family_members(family_id, member_ids)
        return family_id

    def migrate_analysis(self, document: TaleDocument) -> None:
        analysis = document.analysis
        config_id = self.dao.upsert_analysis_config(analysis)
        if analysis.dmat is not None:
            self.dao.store_dmat(analysis.dmat, config_id)
        order = [self._row_id(name, "Distance matrix order") for name in document.dmat_order()]
        self.result.dmat_rows = self.dao.store_dmat_order(order, config_id)


def migrate(document: TaleDocument, conn: sqlite3.Connection, wipe: bool = False) -> MigrationResult:
    """Migrate a parsed document into the store in one transaction.

    Args:
        document: Parsed document
        conn: Store connection from :func:`open_store`
        wipe: Delete existing rows first; without it a populated store is refused

    Returns:
        Counts of what was written

    Raises:
        GuardedOverwriteError: Store already populated and ``wipe`` is False
        ReferentialIntegrityError: A family or tree names a tale with no row
        SchemaError: Schema update failed
    """
    with transaction(conn):
        ensure_schema(conn)
        populated = populated_tables(conn)
        if populated and not wipe:
            raise GuardedOverwriteError(
                f"Store already contains data ({', '.join(populated)}); rerun with wipe to replace it"
            )

        migrator = _Migrator(conn)
        previous_version = migrator.dao.read_data_version()
        if wipe:
            wipe_store(conn)
            migrator.result.wiped = True

        for tale in document.tales:
            migrator.migrate_tale(tale)
        logger.info(f"Inserted {len(migrator.tale_ids)} tales")

        for family in document.families:
            migrator.migrate_family(family)
        logger.info(f"Inserted {len(document.families)} families")

        migrator.migrate_analysis(document)

        version = next_data_version(previous_version)
        migrator.dao.set_data_version(version)

        result = migrator.result
        result.tales = len(migrator.tale_ids)
        result.samples = len(migrator.sample_ids)
        result.assemblies = len(migrator.assembly_ids)
        result.families = len(document.families)
        result.data_version = version
    return result


def migrate_file(document_path: str | Path, store_path: str | Path, wipe: bool = False) -> MigrationResult:
    """Load a document file and migrate it into the store file.

    The document is fully parsed before the store is opened.
    """
    document = load_document(document_path)
    conn = open_store(store_path)
    try:
        result = migrate(document, conn, wipe=wipe)
    finally:
        conn.close()
    logger.info(f"Migration finished into {store_path}")
    return result
