"""Compare a source document with what a migration left in the store.

Four checks run independently (tales, families, trees, distance matrix).
A store error inside one check is recorded as a ``check_failed`` diff and
the remaining checks still run. Queries are read-only.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from tale_store.document.loader import load_document
from tale_store.document.models import TaleDocument, TaleEntry
from tale_store.store.connection import open_store
from tale_store.store.dao import accession_display, split_accession, strand_to_column
from tale_store.tree.newick import extract_leaf_ids

logger = logging.getLogger(__name__)

MAX_DIFFS = 50


class DiffKind(str, Enum):
    """Kinds of mismatch between document and store."""

    TALE_COUNT = "tale_count"
    TALE_MISSING_DB = "tale_missing_db"
    TALE_FIELD = "tale_field"
    REPEAT_COUNT = "repeat_count"
    FAMILY_COUNT = "family_count"
    FAMILY_MISSING_DB = "family_missing_db"
    FAMILY_MEMBERS = "family_members"
    FAMILY_TREE_MISSING = "family_tree_missing"
    FAMILY_TREE_EMPTY = "family_tree_empty"
    FAMILY_TREE_LEAF_COUNT = "family_tree_leaf_count"
    DMAT_TALE_ORDER_COUNT = "dmat_tale_order_count"
    DMAT_ROW_COUNT = "dmat_row_count"
    CHECK_FAILED = "check_failed"


@dataclass
class Diff:
    """A single mismatch."""

    kind: DiffKind
    message: str

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


@dataclass
class DiffReport:
    """Accumulated mismatches; only the first ``max_diffs`` are kept.

    Attributes:
        max_diffs: How many diffs are enumerated
        count: Total diffs seen, including those not kept
        diffs: The enumerated diffs
        stats: Counts by diff kind
    """

    max_diffs: int = MAX_DIFFS
    count: int = 0
    diffs: list[Diff] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)

    def add(self, kind: DiffKind, message: str) -> None:
        """Record a diff and update stats."""
        self.count += 1
        self.stats[kind.value] = self.stats.get(kind.value, 0) + 1
        if len(self.diffs) < self.max_diffs:
            self.diffs.append(Diff(kind, message))

    @property
    def has_diffs(self) -> bool:
        return self.count > 0

    @property
    def omitted(self) -> int:
        """Diffs counted but not enumerated."""
        return self.count - len(self.diffs)

    def get_diffs_by_kind(self, kind: DiffKind) -> list[Diff]:
        return [d for d in self.diffs if d.kind == kind]

    def summary(self) -> str:
        if not self.has_diffs:
            return "No differences found"
        lines = [f"{self.count} difference(s) found:"]
        lines.extend(f"  {diff}" for diff in self.diffs)
        if self.omitted:
            lines.append(f"  ... {self.omitted} more mismatches omitted ...")
        return "\n".join(lines)


# =============================================================================
# Tales
# =============================================================================


def _field_diff(report: DiffReport, tale: str, name: str, expected: object, actual: object) -> None:
    if expected != actual:
        report.add(DiffKind.TALE_FIELD, f"{tale}: {name} differs (document={expected!r}, store={actual!r})")


def _check_repeats(report: DiffReport, tale: TaleEntry, rows: list[sqlite3.Row]) -> None:
    if len(tale.repeats) != len(rows):
        report.add(
            DiffKind.REPEAT_COUNT,
            f"{tale.name}: {len(tale.repeats)} repeats in document, {len(rows)} in store",
        )
        return
    for ordinal, (repeat, row) in enumerate(zip(tale.repeats, rows)):
        label = f"{tale.name} repeat {ordinal}"
        _field_diff(report, label, "rvd", repeat.rvd, row["rvd"])
        _field_diff(report, label, "rvd_len", repeat.rvd_length, row["rvd_len"])
        _field_diff(report, label, "masked_seq_1", repeat.masked_1, row["masked_seq_1"])
        _field_diff(report, label, "masked_seq_2", repeat.masked_2, row["masked_seq_2"])


def check_tales(document: TaleDocument, conn: sqlite3.Connection, report: DiffReport) -> None:
    """Counts, per-tale fields and per-repeat fields."""
    stored = conn.execute("SELECT COUNT(*) FROM tale").fetchone()[0]
    if stored != len(document.tales):
        report.add(DiffKind.TALE_COUNT, f"{len(document.tales)} tales in document, {stored} in store")

    for tale in document.tales:
        row = conn.execute(
            "SELECT t.id, t.protein_seq, t.dna_seq, t.start_pos, t.end_pos, t.strand, t.is_new, "
            "s.legacy_strain_name, a.accession, a.version "
            "FROM tale t "
            "LEFT JOIN samples s ON s.id = t.sample_id "
            "LEFT JOIN assembly a ON a.id = t.assembly_id "
            "WHERE t.legacy_name = ?",
            (tale.name,),
        ).fetchone()
        if row is None:
            report.add(DiffKind.TALE_MISSING_DB, f"{tale.name}: not in store")
            continue

        _field_diff(report, tale.name, "protein_seq", tale.protein_sequence(), row["protein_seq"])
        _field_diff(report, tale.name, "dna_seq", tale.dna_sequence(), row["dna_seq"])
        _field_diff(report, tale.name, "strain", tale.strain, row["legacy_strain_name"])
        _field_diff(
            report,
            tale.name,
            "accession",
            accession_display(*split_accession(tale.accession)),
            accession_display(row["accession"], row["version"]),
        )
        _field_diff(report, tale.name, "start_pos", tale.start_pos, row["start_pos"])
        _field_diff(report, tale.name, "end_pos", tale.end_pos, row["end_pos"])
        _field_diff(report, tale.name, "strand", strand_to_column(tale.strand), row["strand"])
        _field_diff(report, tale.name, "is_new", int(tale.is_new), row["is_new"])

        repeats = conn.execute(
            "SELECT rvd, rvd_len, masked_seq_1, masked_seq_2 FROM repeat WHERE tale_id = ? ORDER BY repeat_ordinal",
            (row["id"],),
        ).fetchall()
        _check_repeats(report, tale, repeats)


# =============================================================================
# Families and trees
# =============================================================================


def check_families(document: TaleDocument, conn: sqlite3.Connection, report: DiffReport) -> None:
    """Family count and member sets (order-independent)."""
    stored = conn.execute("SELECT COUNT(*) FROM family").fetchone()[0]
    if stored != len(document.families):
        report.add(DiffKind.FAMILY_COUNT, f"{len(document.families)} families in document, {stored} in store")

    for family in document.families:
        row = conn.execute("SELECT id FROM family WHERE name = ?", (family.name,)).fetchone()
        if row is None:
            report.add(DiffKind.FAMILY_MISSING_DB, f"{family.name}: not in store")
            continue
        members = {
            r[0]
            for r in conn.execute(
                "SELECT t.legacy_name FROM family_member fm JOIN tale t ON t.id = fm.tale_id WHERE fm.family_id = ?",
                (row[0],),
            )
        }
        expected = set(family.members)
        if members != expected:
            missing = sorted(expected - members)
            extra = sorted(members - expected)
            report.add(DiffKind.FAMILY_MEMBERS, f"{family.name}: missing={missing} extra={extra}")


def check_trees(document: TaleDocument, conn: sqlite3.Connection, report: DiffReport) -> None:
    """Every stored tree is non-empty and has one leaf per member."""
    for family in document.families:
        row = conn.execute("SELECT id, tree_newick FROM family WHERE name = ?", (family.name,)).fetchone()
        if row is None:
            # reported by check_families
            continue
        text = row["tree_newick"]
        if text is None:
            report.add(DiffKind.FAMILY_TREE_MISSING, f"{family.name}: no tree stored")
            continue
        leaves = extract_leaf_ids(text)
        if not text.strip() or not leaves:
            report.add(DiffKind.FAMILY_TREE_EMPTY, f"{family.name}: stored tree has no leaves")
            continue
        member_count = conn.execute(
            "SELECT COUNT(*) FROM family_member WHERE family_id = ?", (row["id"],)
        ).fetchone()[0]
        if len(leaves) != member_count:
            report.add(
                DiffKind.FAMILY_TREE_LEAF_COUNT,
                f"{family.name}: {len(leaves)} tree leaves, {member_count} members",
            )


# =============================================================================
# Distance matrix
# =============================================================================


def check_dmat(document: TaleDocument, conn: sqlite3.Connection, report: DiffReport) -> None:
    """Row-order table and matrix rows both cover every tale."""
    expected = len(document.tales)
    order = conn.execute("SELECT COUNT(*) FROM dmat_tale_order").fetchone()[0]
    if order != expected:
        report.add(DiffKind.DMAT_TALE_ORDER_COUNT, f"{order} rows in order table, {expected} tales")

    row = conn.execute("SELECT data FROM dmat WHERE data IS NOT NULL LIMIT 1").fetchone()
    if row is not None:
        rows = row[0].count("$")
        if rows != expected:
            report.add(DiffKind.DMAT_ROW_COUNT, f"{rows} matrix rows, {expected} tales")


CHECKS: tuple[tuple[str, Callable[[TaleDocument, sqlite3.Connection, DiffReport], None]], ...] = (
    ("tales", check_tales),
    ("families", check_families),
    ("trees", check_trees),
    ("dmat", check_dmat),
)


def verify(document: TaleDocument, conn: sqlite3.Connection, max_diffs: int = MAX_DIFFS) -> DiffReport:
    """Run every check against the store.

    Args:
        document: Parsed source document
        conn: Store connection
        max_diffs: How many diffs to enumerate in the report

    Returns:
        Report of all mismatches; empty when the store matches
    """
    report = DiffReport(max_diffs=max_diffs)
    for name, check in CHECKS:
        try:
            check(document, conn, report)
        except sqlite3.Error as e:
            logger.error(f"Check {name} failed: {e}")
            report.add(DiffKind.CHECK_FAILED, f"{name}: {e}")
    logger.info(f"Verification finished with {report.count} difference(s)")
    return report


def verify_files(document_path: str | Path, store_path: str | Path, max_diffs: int = MAX_DIFFS) -> DiffReport:
    document = load_document(document_path)
    conn = open_store(store_path)
    try:
        return verify(document, conn, max_diffs=max_diffs)
    finally:
        conn.close()
