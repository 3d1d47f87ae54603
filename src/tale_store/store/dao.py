"""Row-level writes for the TALE store."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable

from tale_store.document.models import AnalysisParameters, RepeatEntry, TaleEntry, flatten_costs
from tale_store.store.upsert import find_id, insert_row, update_row, upsert

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_ID = "default"


def split_accession(display: str | None) -> tuple[str | None, str | None]:
    """Split an accession display string into (name, version).

    Only a purely numeric suffix after the last dot counts as a version.

    Examples:
        >>> split_accession("CP000967.2")
        ('CP000967', '2')
        >>> split_accession("GCF_000019585")
        ('GCF_000019585', None)
    """
    if display is None or not display.strip():
        return None, None
    text = display.strip()
    name, dot, version = text.rpartition(".")
    if dot and name and version.isdigit():
        return name, version
    return text, None


def accession_display(name: str | None, version: str | None) -> str | None:
    """Inverse of :func:`split_accession`."""
    if not name:
        return None
    if version:
        return f"{name}.{version}"
    return name


def strand_to_column(strand: bool | None) -> int | None:
    if strand is None:
        return None
    return 1 if strand else -1


def strand_from_column(value: int | None) -> bool | None:
    if value is None:
        return None
    return value > 0


class TaleDao:
    """Writes entities into the store, keyed by their natural keys."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---- taxonomy / samples / assemblies --------------------------------

    def upsert_legacy_taxonomy(self, name: str, species: str | None, pathovar: str | None) -> int:
        """Deduplicate legacy taxonomy rows by (name, species, pathovar)."""
        return upsert(self.conn, "taxonomy_legacy", {"name": name, "species": species, "pathovar": pathovar})

    def upsert_sample(
        self,
        legacy_label: str | None,
        *,
        species: str | None = None,
        pathovar: str | None = None,
        isolate: str | None = None,
        legacy_taxon_id: int | None = None,
    ) -> int:
        """Find a sample by its legacy label, else insert; fill missing fields."""
        return upsert(
            self.conn,
            "samples",
            {"legacy_strain_name": legacy_label},
            {
                "species": species,
                "pathovar": pathovar,
                "isolate": isolate,
                "legacy_taxon_id": legacy_taxon_id,
            },
        )

    def upsert_assembly(self, accession: str | None, version: str | None, sample_id: int) -> int:
        """Find an assembly by (accession, version), else insert.

        Assemblies without an accession are scoped per sample.
        """
        if accession is None:
            return upsert(self.conn, "assembly", {"accession": None, "version": None, "sample_id": sample_id})
        return upsert(self.conn, "assembly", {"accession": accession, "version": version}, {"sample_id": sample_id})

    # ---- tales and repeats ----------------------------------------------

    def upsert_tale(self, tale: TaleEntry, sample_id: int, assembly_id: int | None) -> int:
        """Insert or replace a tale keyed by its legacy name."""
        values = {
            "external_name": tale.external_name,
            "dna_seq": tale.dna_sequence(),
            "protein_seq": tale.protein_sequence(),
            "start_pos": tale.start_pos,
            "end_pos": tale.end_pos,
            "strand": strand_to_column(tale.strand),
            "is_new": int(tale.is_new),
            "is_pseudo": int(tale.is_pseudo),
            "assembly_id": assembly_id,
            "sample_id": sample_id,
        }
        existing = find_id(self.conn, "tale", {"legacy_name": tale.name})
        if existing is None:
            return insert_row(self.conn, "tale", {"legacy_name": tale.name, **values})
        update_row(self.conn, "tale", existing, values, mode="replace")
        self.conn.execute("DELETE FROM repeat WHERE tale_id = ?", (existing,))
        return existing

    def insert_repeats(self, tale_id: int, repeats: Iterable[RepeatEntry]) -> int:
        """Insert repeats in their original order (0-based ordinals)."""
        rows = [
            (tale_id, ordinal, r.rvd, r.rvd_length, r.masked_1, r.masked_2)
            for ordinal, r in enumerate(repeats)
        ]
        self.conn.executemany(
            "INSERT INTO repeat (tale_id, repeat_ordinal, rvd, rvd_len, masked_seq_1, masked_seq_2) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            rows,
        )
        return len(rows)

    # ---- families -------------------------------------------------------

    def upsert_family(self, name: str, member_count: int, tree_newick: str | None) -> int:
        return upsert(
            self.conn,
            "family",
            {"name": name},
            {"member_count": member_count, "tree_newick": tree_newick},
            mode="replace",
        )

    def replace_family_members(self, family_id: int, tale_ids: Iterable[int]) -> int:
        self.conn.execute("DELETE FROM family_member WHERE family_id = ?", (family_id,))
        rows = [(family_id, tale_id) for tale_id in dict.fromkeys(tale_ids)]
        self.conn.executemany("INSERT INTO family_member (family_id, tale_id) VALUES (?, ?)", rows)
        return len(rows)

    # ---- analysis state -------------------------------------------------

    def upsert_analysis_config(self, params: AnalysisParameters, config_id: str = DEFAULT_CONFIG_ID) -> str:
        """Write the analysis parameters and return the config id."""
        columns = {
            "alignment_type": params.alignment_type,
            "cut": params.cut,
            "extra_gap_open": params.extra_gap_open,
            "extra_gap_ext": params.extra_gap_ext,
            "linkage": params.linkage,
            "pval": params.pval,
            **flatten_costs(params.costs),
            "reserved_names": ",".join(params.reserved_names) if params.reserved_names else None,
        }
        return upsert(self.conn, "analysis_config", {"id": config_id}, columns, mode="replace")

    def store_dmat(self, data: str | None, config_id: str = DEFAULT_CONFIG_ID) -> None:
        cursor = self.conn.execute("UPDATE dmat SET data = ? WHERE config_id = ?", (data, config_id))
        if cursor.rowcount == 0:
            self.conn.execute("INSERT INTO dmat (config_id, data) VALUES (?, ?)", (config_id, data))

    def store_dmat_order(self, tale_ids: list[int], config_id: str = DEFAULT_CONFIG_ID) -> int:
        self.conn.execute("DELETE FROM dmat_tale_order WHERE config_id = ?", (config_id,))
        self.conn.executemany(
            "INSERT INTO dmat_tale_order (config_id, ordinal, tale_id) VALUES (?, ?, ?)",
            [(config_id, ordinal, tale_id) for ordinal, tale_id in enumerate(tale_ids)],
        )
        return len(tale_ids)

    # ---- data version ---------------------------------------------------

    def read_data_version(self) -> int | None:
        row = self.conn.execute("SELECT version FROM data_version WHERE id = 1").fetchone()
        return int(row[0]) if row is not None else None

    def set_data_version(self, version: int) -> None:
        upsert(self.conn, "data_version", {"id": 1}, {"version": version}, mode="replace")
