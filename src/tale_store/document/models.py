"""Domain models for the parsed TALE document.

The legacy document is rebuilt as an arena: tales are held in a list and
referenced by name or integer id, and cluster trees carry those references
as leaf payloads instead of live objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass
class RepeatEntry:
    """A single repeat of a TALE.

    Attributes:
        rvd: Two-letter repeat variable diresidue code (e.g., "HD", "N*")
        rvd_length: 1 for single-character codes, 2 for two-letter codes
        masked_1: Repeat fragment before the code
        masked_2: Repeat fragment after the code
        sequence: Full repeat sequence when the document provides it
    """

    rvd: str | None = None
    rvd_length: int | None = None
    masked_1: str | None = None
    masked_2: str | None = None
    sequence: str | None = None

    def rvd_fragment(self) -> str | None:
        """Return the part of the code that occurs in the repeat sequence."""
        if self.rvd is not None and self.rvd_length == 1:
            return self.rvd[:1]
        return self.rvd

    def full_sequence(self) -> str | None:
        """Return the repeat sequence, rebuilding it from fragments if needed."""
        if self.sequence:
            return self.sequence
        if self.masked_1 is None and self.masked_2 is None:
            return None
        joined = "".join(part for part in (self.masked_1, self.rvd_fragment(), self.masked_2) if part)
        return joined or None


@dataclass
class SequenceParts:
    """Source-alphabet copy of a TALE, split like its derived-alphabet form."""

    start: str | None = None
    repeats: list[str] = field(default_factory=list)
    end: str | None = None

    def joined(self) -> str | None:
        """Concatenate start, repeats and end."""
        text = "".join([self.start or "", *self.repeats, self.end or ""])
        return text or None


@dataclass
class TaleEntry:
    """A TALE (sequence entity) as read from the document.

    Attributes:
        name: Identifying name, the natural key in the store
        doc_id: Integer id used by trees inside the document
        external_name: Optional legacy external name
        strain: Free-text strain label (e.g., "Xoo PXO99A")
        accession: Accession display string (e.g., "CP000967.2")
        start_pos: Start coordinate on the accession
        end_pos: End coordinate on the accession
        strand: True forward, False reverse, None unknown
        is_new: Newly observed TALE
        is_pseudo: Pseudo gene
        start: N-terminal region (derived alphabet)
        end: C-terminal region (derived alphabet)
        repeats: Ordered repeats
        dna: Original source-alphabet sequence, if present
    """

    name: str
    doc_id: int
    external_name: str | None = None
    strain: str | None = None
    accession: str | None = None
    start_pos: int | None = None
    end_pos: int | None = None
    strand: bool | None = None
    is_new: bool = False
    is_pseudo: bool = False
    start: str | None = None
    end: str | None = None
    repeats: list[RepeatEntry] = field(default_factory=list)
    dna: SequenceParts | None = None

    def protein_sequence(self) -> str | None:
        """Return start + repeats + end in the derived alphabet."""
        parts = [self.start or ""]
        parts.extend(r.full_sequence() or "" for r in self.repeats)
        parts.append(self.end or "")
        text = "".join(parts)
        return text or None

    def dna_sequence(self) -> str | None:
        """Return the original source-alphabet sequence."""
        return self.dna.joined() if self.dna else None


@dataclass
class ClusterTree(Generic[T]):
    """Node of a hierarchical clustering tree.

    Leaves carry an element and a cluster index; internal nodes carry the
    merge distance and their children.
    """

    distance: float = 0.0
    children: list[ClusterTree[T]] = field(default_factory=list)
    element: T | None = None
    index: int = -1

    @classmethod
    def leaf(cls, element: T, index: int) -> ClusterTree[T]:
        return cls(element=element, index=index)

    @classmethod
    def internal(cls, distance: float, children: list[ClusterTree[T]]) -> ClusterTree[T]:
        return cls(distance=distance, children=list(children))

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def leaves(self) -> list[ClusterTree[T]]:
        """Return leaves in left-to-right order."""
        if self.is_leaf:
            return [self]
        out: list[ClusterTree[T]] = []
        for child in self.children:
            out.extend(child.leaves())
        return out

    def elements(self) -> list[T]:
        """Return leaf elements in left-to-right order."""
        return [leaf.element for leaf in self.leaves() if leaf.element is not None]


# =============================================================================
# Cost model
# =============================================================================


@dataclass(frozen=True)
class RvdCosts:
    """Substitution costs between repeat codes."""

    gap: float
    twelve: float
    thirteen: float
    bonus: float


@dataclass(frozen=True)
class AffineCosts:
    """Affine gap costs wrapping an inner substitution model."""

    open: float
    extend: float
    inner: CostModel | None = None


CostModel = AffineCosts | RvdCosts

AFFINE_COLUMNS = ("cost_affine_open", "cost_affine_extend")
RVD_COLUMNS = ("cost_rvd_gap", "cost_rvd_twelve", "cost_rvd_thirteen", "cost_rvd_bonus")
COST_COLUMNS = AFFINE_COLUMNS + RVD_COLUMNS


def cost_model_to_dict(model: CostModel | None) -> dict[str, Any] | None:
    """Serialize a cost model with an explicit ``kind`` tag."""
    if model is None:
        return None
    if isinstance(model, RvdCosts):
        return {
            "kind": "rvd",
            "gap": model.gap,
            "twelve": model.twelve,
            "thirteen": model.thirteen,
            "bonus": model.bonus,
        }
    return {
        "kind": "affine",
        "open": model.open,
        "extend": model.extend,
        "inner": cost_model_to_dict(model.inner),
    }


def cost_model_from_dict(data: dict[str, Any] | None) -> CostModel | None:
    """Rebuild a cost model from its tagged dict form.

    Raises:
        ValueError: Unknown kind or missing coefficient
    """
    if data is None:
        return None
    kind = data.get("kind")
    try:
        if kind == "rvd":
            return RvdCosts(
                gap=float(data["gap"]),
                twelve=float(data["twelve"]),
                thirteen=float(data["thirteen"]),
                bonus=float(data["bonus"]),
            )
        if kind == "affine":
            return AffineCosts(
                open=float(data["open"]),
                extend=float(data["extend"]),
                inner=cost_model_from_dict(data.get("inner")),
            )
    except (KeyError, TypeError) as e:
        raise ValueError(f"Incomplete {kind} cost model: {e}") from e
    raise ValueError(f"Unknown cost model kind: {kind!r}")


def flatten_costs(model: CostModel | None) -> dict[str, float | None]:
    """Map a cost model onto the analysis_config cost columns."""
    values: dict[str, float | None] = dict.fromkeys(COST_COLUMNS)
    rvd: CostModel | None = model
    if isinstance(model, AffineCosts):
        values["cost_affine_open"] = model.open
        values["cost_affine_extend"] = model.extend
        rvd = model.inner
    if isinstance(rvd, RvdCosts):
        values["cost_rvd_gap"] = rvd.gap
        values["cost_rvd_twelve"] = rvd.twelve
        values["cost_rvd_thirteen"] = rvd.thirteen
        values["cost_rvd_bonus"] = rvd.bonus
    return values


def costs_from_columns(values: dict[str, float | None]) -> CostModel | None:
    """Rebuild the cost model written by :func:`flatten_costs`.

    Each layer is present when all of its columns are set: the four RVD
    columns give an :class:`RvdCosts`, the two affine columns wrap it (or
    nothing) in :class:`AffineCosts`. None when neither layer is complete.
    """
    rvd: RvdCosts | None = None
    if all(values.get(col) is not None for col in RVD_COLUMNS):
        rvd = RvdCosts(
            gap=float(values["cost_rvd_gap"]),  # type: ignore[arg-type]
            twelve=float(values["cost_rvd_twelve"]),  # type: ignore[arg-type]
            thirteen=float(values["cost_rvd_thirteen"]),  # type: ignore[arg-type]
            bonus=float(values["cost_rvd_bonus"]),  # type: ignore[arg-type]
        )
    if any(values.get(col) is None for col in AFFINE_COLUMNS):
        return rvd
    return AffineCosts(
        open=float(values["cost_affine_open"]),  # type: ignore[arg-type]
        extend=float(values["cost_affine_extend"]),  # type: ignore[arg-type]
        inner=rvd,
    )


@dataclass
class AnalysisParameters:
    """Alignment and clustering parameters that produced the families."""

    alignment_type: str | None = None
    extra_gap_open: float | None = None
    extra_gap_ext: float | None = None
    linkage: str | None = None
    cut: float | None = None
    pval: float | None = None
    costs: CostModel | None = None
    reserved_names: list[str] = field(default_factory=list)
    dmat: str | None = None  # rows terminated by "$", values separated by ";"
    dmat_order: list[str] | None = None  # tale names in matrix row order


@dataclass
class FamilyEntry:
    """A TALE family: named members plus their clustering tree."""

    name: str
    members: list[str] = field(default_factory=list)
    tree: ClusterTree[str] | None = None
    alignments: str | None = None


@dataclass
class TaleDocument:
    """Parsed document: tales, families and analysis parameters."""

    tales: list[TaleEntry] = field(default_factory=list)
    families: list[FamilyEntry] = field(default_factory=list)
    analysis: AnalysisParameters = field(default_factory=AnalysisParameters)

    def tale_by_name(self) -> dict[str, TaleEntry]:
        return {tale.name: tale for tale in self.tales}

    def dmat_order(self) -> list[str]:
        """Tale names in distance-matrix row order."""
        if self.analysis.dmat_order is not None:
            return list(self.analysis.dmat_order)
        return [tale.name for tale in self.tales]
