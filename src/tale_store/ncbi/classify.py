"""Accession and replicon classification."""

from __future__ import annotations

from tale_store.ncbi.records import GenbankData

ASSEMBLY_PREFIXES = ("GCA_", "GCF_")

# First match wins
REPLICON_KEYWORDS = ("chromosome", "plasmid", "genome", "gene")


def infer_accession_type(accession: str | None) -> str | None:
    """Return "assembly" for GCA_/GCF_ accessions, "nuccore" otherwise."""
    if accession is None:
        return None
    if accession.strip().upper().startswith(ASSEMBLY_PREFIXES):
        return "assembly"
    return "nuccore"


def is_assembly_accession(accession: str | None) -> bool:
    return infer_accession_type(accession) == "assembly"


def detect_from_assembly_level(level: str | None) -> str | None:
    """Map an assembly level ("Complete Genome", "Contig", ...) to a replicon type."""
    if level is None or not level.strip():
        return None
    lowered = level.lower()
    if "chromosome" in lowered:
        return "chromosome"
    if "plasmid" in lowered:
        return "plasmid"
    if any(word in lowered for word in ("genome", "complete", "scaffold", "contig")):
        return "genome"
    return None


def _scan(text: str | None) -> str | None:
    if not text:
        return None
    lowered = text.lower()
    for keyword in REPLICON_KEYWORDS:
        if keyword in lowered:
            return keyword
    return None


def detect_replicon_type(data: GenbankData | None, accession_type: str | None) -> str | None:
    """Classify the replicon a record describes.

    Assemblies use their assembly level and default to "genome". Sequence
    records scan the definition line first, then the whole record.
    """
    if accession_type is not None and accession_type.lower() == "assembly":
        return detect_from_assembly_level(data.assembly_level if data else None) or "genome"
    if data is None:
        return None
    return _scan(data.definition) or _scan(data.full_record)
