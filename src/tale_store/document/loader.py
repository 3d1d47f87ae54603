"""Load a parsed TALE document from YAML or JSON.

The legacy document grammar is handled upstream; this module consumes its
parsed form as plain data and builds the dataclass arena in
:mod:`tale_store.document.models`.

Expected layout::

    tales:
      - name: Tal1
        id: 1                   # optional, defaults to 1-based position
        strain: Xoo PXO99A
        accession: CP000967.2
        start_pos: 100
        end_pos: 3100
        strand: "+"
        start: MDPIR
        end: LRQ
        repeats:
          - {rvd: HD, rvd_length: 2, masked: [LTPEQVVAIAS, GGKQALETVQRLLPVLCQAHG]}
        dna: {start: ATG, repeats: [...], end: TGA}
    families:
      - name: TalAA
        members: [Tal1, Tal2]
        tree: "(1:2,2:2);"      # or nested {distance, children} / {leaf}
    analysis:
      linkage: AVERAGE
      costs: {kind: affine, open: 5, extend: 1, inner: {kind: rvd, ...}}
      dmat: "0;1$1;0$"
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from tale_store.document.models import (
    AnalysisParameters,
    ClusterTree,
    FamilyEntry,
    RepeatEntry,
    SequenceParts,
    TaleDocument,
    TaleEntry,
    cost_model_from_dict,
)
from tale_store.errors import StructuralParseError, TreeParseError
from tale_store.tree import newick

logger = logging.getLogger(__name__)


def load_document(path: str | Path) -> TaleDocument:
    """Read and validate a document file.

    Args:
        path: YAML or JSON file (JSON is a subset of YAML)

    Returns:
        Parsed TaleDocument

    Raises:
        StructuralParseError: File unreadable or structurally invalid
    """
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise StructuralParseError(f"Cannot read document {path}: {e}") from e
    except yaml.YAMLError as e:
        raise StructuralParseError(f"Cannot parse document {path}: {e}") from e

    document = document_from_dict(data)
    logger.info(f"Loaded {len(document.tales)} tales and {len(document.families)} families from {path}")
    return document


def document_from_dict(data: Any) -> TaleDocument:
    """Build a TaleDocument from already-parsed data."""
    if not isinstance(data, dict):
        raise StructuralParseError("Document root must be a mapping")
    raw_tales = data.get("tales")
    if not isinstance(raw_tales, list):
        raise StructuralParseError("Document must contain a 'tales' list")

    tales = [_parse_tale(raw, position) for position, raw in enumerate(raw_tales, start=1)]
    _check_unique(tales)

    by_name = {tale.name: tale for tale in tales}
    by_id = {tale.doc_id: tale.name for tale in tales}

    families = [_parse_family(raw, by_name, by_id) for raw in _as_list(data.get("families"), "families")]
    seen: set[str] = set()
    for family in families:
        if family.name in seen:
            raise StructuralParseError(f"Duplicate family name: {family.name}")
        seen.add(family.name)

    analysis = _parse_analysis(data.get("analysis"), by_name)
    return TaleDocument(tales=tales, families=families, analysis=analysis)


# =============================================================================
# Field helpers
# =============================================================================


def _as_list(value: Any, what: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise StructuralParseError(f"'{what}' must be a list")
    return value


def _opt_str(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise StructuralParseError(f"Field '{key}' must be a scalar")
    text = str(value).strip()
    return text or None


def _opt_int(raw: dict[str, Any], key: str) -> int | None:
    value = raw.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise StructuralParseError(f"Field '{key}' must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise StructuralParseError(f"Field '{key}' must be an integer, got {value!r}") from e


def _opt_float(raw: dict[str, Any], key: str) -> float | None:
    value = raw.get(key)
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace(",", "."))
    except (TypeError, ValueError) as e:
        raise StructuralParseError(f"Field '{key}' must be a number, got {value!r}") from e


def _flag(raw: dict[str, Any], key: str) -> bool:
    value = raw.get(key, False)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0", ""):
        return False
    if isinstance(value, int):
        return value != 0
    raise StructuralParseError(f"Field '{key}' must be a boolean, got {value!r}")


def parse_strand(value: Any) -> bool | None:
    """Map the accepted orientation spellings onto True/False/None."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (1, -1):
            return value == 1
    elif isinstance(value, str):
        text = value.strip().lower()
        if text in ("+", "forward", "true", "1"):
            return True
        if text in ("-", "reverse", "false", "-1"):
            return False
        if text in ("", "?", "unknown", "null"):
            return None
    raise StructuralParseError(f"Invalid strand value: {value!r}")


# =============================================================================
# Entities
# =============================================================================


def _parse_repeat(raw: Any, tale_name: str) -> RepeatEntry:
    if isinstance(raw, str):
        return RepeatEntry(rvd=raw, rvd_length=1 if len(raw) == 1 or raw.endswith("*") else 2)
    if not isinstance(raw, dict):
        raise StructuralParseError(f"Repeat of {tale_name} must be a mapping or a code")
    masked = raw.get("masked")
    masked_1 = _opt_str(raw, "masked_1")
    masked_2 = _opt_str(raw, "masked_2")
    if masked is not None:
        if not isinstance(masked, list) or len(masked) > 2:
            raise StructuralParseError(f"Repeat 'masked' of {tale_name} must be a list of at most two fragments")
        parts = [str(m) if m is not None else None for m in masked] + [None, None]
        masked_1, masked_2 = parts[0] or None, parts[1] or None
    return RepeatEntry(
        rvd=_opt_str(raw, "rvd"),
        rvd_length=_opt_int(raw, "rvd_length"),
        masked_1=masked_1,
        masked_2=masked_2,
        sequence=_opt_str(raw, "sequence"),
    )


def _parse_dna(raw: Any, tale_name: str) -> SequenceParts | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        return SequenceParts(start=raw)
    if not isinstance(raw, dict):
        raise StructuralParseError(f"'dna' of {tale_name} must be a mapping or a string")
    repeats = [str(r) for r in _as_list(raw.get("repeats"), f"{tale_name}.dna.repeats")]
    return SequenceParts(start=_opt_str(raw, "start"), repeats=repeats, end=_opt_str(raw, "end"))


def _parse_tale(raw: Any, position: int) -> TaleEntry:
    if not isinstance(raw, dict):
        raise StructuralParseError(f"Tale #{position} must be a mapping")
    name = _opt_str(raw, "name")
    if not name:
        raise StructuralParseError(f"Tale #{position} has no name")
    doc_id = _opt_int(raw, "id")
    if doc_id is None:
        doc_id = position
    if doc_id <= 0:
        raise StructuralParseError(f"Tale {name} has non-positive id {doc_id}")

    repeats = [_parse_repeat(r, name) for r in _as_list(raw.get("repeats"), f"{name}.repeats")]
    return TaleEntry(
        name=name,
        doc_id=doc_id,
        external_name=_opt_str(raw, "external_name"),
        strain=_opt_str(raw, "strain"),
        accession=_opt_str(raw, "accession"),
        start_pos=_opt_int(raw, "start_pos"),
        end_pos=_opt_int(raw, "end_pos"),
        strand=parse_strand(raw.get("strand")),
        is_new=_flag(raw, "is_new"),
        is_pseudo=_flag(raw, "is_pseudo"),
        start=_opt_str(raw, "start"),
        end=_opt_str(raw, "end"),
        repeats=repeats,
        dna=_parse_dna(raw.get("dna"), name),
    )


def _check_unique(tales: list[TaleEntry]) -> None:
    names: set[str] = set()
    ids: set[int] = set()
    for tale in tales:
        if tale.name in names:
            raise StructuralParseError(f"Duplicate tale name: {tale.name}")
        if tale.doc_id in ids:
            raise StructuralParseError(f"Duplicate tale id: {tale.doc_id}")
        names.add(tale.name)
        ids.add(tale.doc_id)


# =============================================================================
# Families and trees
# =============================================================================


def _tree_from_mapping(raw: Any, by_name: dict[str, TaleEntry], counter: list[int]) -> ClusterTree[str]:
    if isinstance(raw, str) and raw in by_name:
        counter[0] += 1
        return ClusterTree.leaf(raw, counter[0] - 1)
    if not isinstance(raw, dict):
        raise StructuralParseError(f"Invalid tree node: {raw!r}")
    if "leaf" in raw:
        name = str(raw["leaf"])
        if name not in by_name:
            raise StructuralParseError(f"Tree leaf references unknown tale: {name}")
        counter[0] += 1
        return ClusterTree.leaf(name, counter[0] - 1)
    children = raw.get("children")
    if not isinstance(children, list) or not children:
        raise StructuralParseError("Internal tree node needs a non-empty 'children' list")
    distance = _opt_float(raw, "distance")
    return ClusterTree.internal(
        distance if distance is not None else 0.0,
        [_tree_from_mapping(child, by_name, counter) for child in children],
    )


def _parse_tree(raw: Any, family: str, by_name: dict[str, TaleEntry], by_id: dict[int, str]) -> ClusterTree[str] | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        try:
            return newick.decode(raw, by_id)
        except TreeParseError as e:
            raise StructuralParseError(f"Bad tree for family {family}: {e}") from e
    return _tree_from_mapping(raw, by_name, [0])


def _parse_family(raw: Any, by_name: dict[str, TaleEntry], by_id: dict[int, str]) -> FamilyEntry:
    if not isinstance(raw, dict):
        raise StructuralParseError("Family entries must be mappings")
    name = _opt_str(raw, "name")
    if not name:
        raise StructuralParseError("Family without a name")

    members: list[str] = []
    for member in _as_list(raw.get("members"), f"{name}.members"):
        key = str(member)
        if key not in by_name:
            raise StructuralParseError(f"Family {name} references unknown tale: {key}")
        if key not in members:
            members.append(key)

    tree = _parse_tree(raw.get("tree"), name, by_name, by_id)
    if tree is not None and not members:
        # a tree alone defines the membership
        members = list(dict.fromkeys(tree.elements()))

    alignments = raw.get("alignments")
    return FamilyEntry(
        name=name,
        members=members,
        tree=tree,
        alignments=str(alignments) if alignments is not None else None,
    )


def _parse_analysis(raw: Any, by_name: dict[str, TaleEntry]) -> AnalysisParameters:
    if raw is None:
        return AnalysisParameters()
    if not isinstance(raw, dict):
        raise StructuralParseError("'analysis' must be a mapping")
    try:
        costs = cost_model_from_dict(raw.get("costs"))
    except ValueError as e:
        raise StructuralParseError(f"Invalid cost model: {e}") from e

    reserved = raw.get("reserved_names") or []
    if isinstance(reserved, str):
        reserved = [part.strip() for part in reserved.split(",") if part.strip()]
    elif not isinstance(reserved, list):
        raise StructuralParseError("'reserved_names' must be a list or comma-separated string")

    order = raw.get("dmat_order")
    if order is not None:
        order = [str(name) for name in _as_list(order, "dmat_order")]
        unknown = [name for name in order if name not in by_name]
        if unknown:
            raise StructuralParseError(f"'dmat_order' references unknown tales: {', '.join(unknown)}")

    return AnalysisParameters(
        alignment_type=_opt_str(raw, "alignment_type"),
        extra_gap_open=_opt_float(raw, "extra_gap_open"),
        extra_gap_ext=_opt_float(raw, "extra_gap_ext"),
        linkage=_opt_str(raw, "linkage"),
        cut=_opt_float(raw, "cut"),
        pval=_opt_float(raw, "pval"),
        costs=costs,
        reserved_names=[str(r) for r in reserved],
        dmat=_opt_str(raw, "dmat"),
        dmat_order=order,
    )
