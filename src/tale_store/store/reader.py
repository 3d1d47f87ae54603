"""Rebuild a TaleDocument from the relational store.

Lets downstream tools work from the store alone. Repeat sequences are
reassembled from their masked fragments and code, tale start/end regions
are recovered by locating the repeat block inside the stored protein
sequence, and family trees are decoded with store ids as leaf keys.
"""

from __future__ import annotations

import logging
import sqlite3

from tale_store.document.models import (
    COST_COLUMNS,
    AnalysisParameters,
    ClusterTree,
    FamilyEntry,
    RepeatEntry,
    SequenceParts,
    TaleDocument,
    TaleEntry,
    costs_from_columns,
)
from tale_store.store.dao import DEFAULT_CONFIG_ID, accession_display, strand_from_column
from tale_store.tree import newick

logger = logging.getLogger(__name__)


def parse_dmat(text: str | None) -> list[list[float]]:
    """Parse a serialized distance matrix.

    Rows end with ``$``, values are separated by ``;`` and a decimal comma
    is accepted. Text after the last ``$`` is ignored.

    Examples:
        >>> parse_dmat("0;1,5$1,5;0$")
        [[0.0, 1.5], [1.5, 0.0]]
    """
    if not text:
        return []
    rows: list[list[float]] = []
    for chunk in text.split("$")[:-1]:
        chunk = chunk.strip()
        if not chunk:
            rows.append([])
            continue
        rows.append([float(value.strip().replace(",", ".")) for value in chunk.split(";")])
    return rows


def read_data_version(conn: sqlite3.Connection) -> int | None:
    row = conn.execute("SELECT version FROM data_version WHERE id = 1").fetchone()
    return int(row[0]) if row is not None else None


def _read_repeats(conn: sqlite3.Connection, tale_id: int) -> list[RepeatEntry]:
    rows = conn.execute(
        "SELECT rvd, rvd_len, masked_seq_1, masked_seq_2 FROM repeat WHERE tale_id = ? ORDER BY repeat_ordinal",
        (tale_id,),
    ).fetchall()
    return [
        RepeatEntry(rvd=row["rvd"], rvd_length=row["rvd_len"], masked_1=row["masked_seq_1"], masked_2=row["masked_seq_2"])
        for row in rows
    ]


def _repeat_span(protein: str | None, repeats: list[RepeatEntry]) -> tuple[int, int] | None:
    """Locate the concatenated repeat block inside the protein sequence."""
    if not protein or not repeats:
        return None
    pieces = [r.full_sequence() for r in repeats]
    if any(piece is None for piece in pieces):
        return None
    block = "".join(pieces)  # type: ignore[arg-type]
    index = protein.find(block)
    if not block or index < 0:
        return None
    return index, index + len(block)


def _split_dna(dna: str, span: tuple[int, int] | None, repeats: list[RepeatEntry]) -> SequenceParts:
    """Split the source-alphabet sequence codon-wise along the protein layout."""
    if span is None:
        return SequenceParts(start=dna)
    start_len, end_start = span[0] * 3, span[1] * 3
    if end_start > len(dna):
        return SequenceParts(start=dna)
    pieces: list[str] = []
    offset = start_len
    for repeat in repeats:
        length = len(repeat.full_sequence() or "") * 3
        pieces.append(dna[offset : offset + length])
        offset += length
    return SequenceParts(start=dna[:start_len] or None, repeats=pieces, end=dna[end_start:] or None)


def read_tales(conn: sqlite3.Connection) -> list[TaleEntry]:
    rows = conn.execute(
        "SELECT t.id, t.legacy_name, t.external_name, t.dna_seq, t.protein_seq, t.start_pos, t.end_pos, "
        "t.strand, t.is_new, t.is_pseudo, s.legacy_strain_name, a.accession, a.version "
        "FROM tale t "
        "LEFT JOIN samples s ON s.id = t.sample_id "
        "LEFT JOIN assembly a ON a.id = t.assembly_id "
        "ORDER BY t.id"
    ).fetchall()

    tales: list[TaleEntry] = []
    for row in rows:
        repeats = _read_repeats(conn, row["id"])
        protein = row["protein_seq"]
        span = _repeat_span(protein, repeats)
        start = end = None
        if span is not None:
            start = protein[: span[0]] or None
            end = protein[span[1] :] or None
        elif protein:
            logger.debug(f"Repeat block not found in protein of {row['legacy_name']}")
        dna = _split_dna(row["dna_seq"], span, repeats) if row["dna_seq"] else None

        tales.append(
            TaleEntry(
                name=row["legacy_name"],
                doc_id=row["id"],
                external_name=row["external_name"],
                strain=row["legacy_strain_name"],
                accession=accession_display(row["accession"], row["version"]),
                start_pos=row["start_pos"],
                end_pos=row["end_pos"],
                strand=strand_from_column(row["strand"]),
                is_new=bool(row["is_new"]),
                is_pseudo=bool(row["is_pseudo"]),
                start=start,
                end=end,
                repeats=repeats,
                dna=dna,
            )
        )
    return tales


def read_dmat_order(conn: sqlite3.Connection, config_id: str = DEFAULT_CONFIG_ID) -> list[int]:
    """Tale row ids in distance-matrix row order."""
    rows = conn.execute(
        "SELECT tale_id FROM dmat_tale_order WHERE config_id = ? ORDER BY ordinal", (config_id,)
    ).fetchall()
    return [row[0] for row in rows]


def read_families(conn: sqlite3.Connection, names_by_id: dict[int, str]) -> list[FamilyEntry]:
    index_by_id = {tale_id: i for i, tale_id in enumerate(read_dmat_order(conn))}
    families: list[FamilyEntry] = []
    for row in conn.execute("SELECT id, name, tree_newick, alignments_blob FROM family ORDER BY id").fetchall():
        member_ids = [
            r[0]
            for r in conn.execute(
                "SELECT tale_id FROM family_member WHERE family_id = ? ORDER BY tale_id", (row["id"],)
            )
        ]
        members = [names_by_id[tale_id] for tale_id in member_ids if tale_id in names_by_id]

        tree: ClusterTree[str] | None = newick.decode(row["tree_newick"], names_by_id, index_by_id)
        if tree is None:
            logger.debug(f"Family {row['name']} has no stored tree, using a simple tree")
            tree = newick.simple_tree(members)
        families.append(FamilyEntry(name=row["name"], members=members, tree=tree, alignments=row["alignments_blob"]))
    return families


def read_analysis(
    conn: sqlite3.Connection, names_by_id: dict[int, str], config_id: str = DEFAULT_CONFIG_ID
) -> AnalysisParameters:
    row = conn.execute("SELECT * FROM analysis_config WHERE id = ?", (config_id,)).fetchone()
    dmat_row = conn.execute("SELECT data FROM dmat WHERE config_id = ?", (config_id,)).fetchone()
    order = [names_by_id[tale_id] for tale_id in read_dmat_order(conn, config_id) if tale_id in names_by_id]
    params = AnalysisParameters(dmat=dmat_row[0] if dmat_row else None, dmat_order=order or None)
    if row is None:
        return params

    params.alignment_type = row["alignment_type"]
    params.cut = row["cut"]
    params.extra_gap_open = row["extra_gap_open"]
    params.extra_gap_ext = row["extra_gap_ext"]
    params.linkage = row["linkage"]
    params.pval = row["pval"]
    params.costs = costs_from_columns({col: row[col] for col in COST_COLUMNS})
    reserved = row["reserved_names"]
    params.reserved_names = [name for name in reserved.split(",") if name] if reserved else []
    return params


def read_document(conn: sqlite3.Connection) -> TaleDocument:
    """Rebuild the whole document from the store."""
    tales = read_tales(conn)
    names_by_id = {tale.doc_id: tale.name for tale in tales}
    families = read_families(conn, names_by_id)
    analysis = read_analysis(conn, names_by_id)
    logger.info(f"Read {len(tales)} tales and {len(families)} families from store")
    return TaleDocument(tales=tales, families=families, analysis=analysis)
