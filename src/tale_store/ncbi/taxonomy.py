"""Organism-name parsing and rank derivation for NCBI taxonomy rows."""

from __future__ import annotations

from dataclasses import dataclass

from tale_store.strains.abbreviations import PV_MARKERS


@dataclass(frozen=True)
class TaxonParts:
    """Organism name split into species and pathovar.

    Attributes:
        species: "<Genus> <epithet>"
        pathovar: Pathovar epithet, lowercased
        canonical_name: "<species> pv. <pathovar>" or the species
        has_suffix: Tokens follow the pathovar (usually a strain name)
    """

    species: str
    pathovar: str | None
    canonical_name: str
    has_suffix: bool


def parse_taxon_from_name(organism: str | None) -> TaxonParts | None:
    """Parse an NCBI organism name.

    Examples:
        >>> parse_taxon_from_name("Xanthomonas oryzae pv. oryzae PXO99A").has_suffix
        True
        >>> parse_taxon_from_name("Xanthomonas") is None
        True
    """
    if organism is None:
        return None
    tokens = organism.split()
    if len(tokens) < 2:
        return None
    species = f"{tokens[0]} {tokens[1].lower()}"
    pathovar = None
    has_suffix = False
    for i, token in enumerate(tokens):
        if token.lower() in PV_MARKERS:
            if i + 1 < len(tokens):
                pathovar = tokens[i + 1].lower()
                has_suffix = i + 2 < len(tokens)
            break
    canonical = f"{species} pv. {pathovar}" if pathovar else species
    return TaxonParts(species, pathovar, canonical, has_suffix)


def derive_rank(parts: TaxonParts | None) -> str | None:
    """Most specific rank present: strain > pathovar > species > genus."""
    if parts is None:
        return None
    if parts.has_suffix:
        return "strain"
    if parts.pathovar:
        return "pathovar"
    lowered = parts.species.lower()
    if lowered.endswith(" sp.") or lowered.endswith(" sp"):
        return "genus"
    return "species"


def normalize_rank(ncbi_rank: str | None, fallback: str | None) -> str | None:
    """Prefer NCBI's rank unless it is blank or "no rank"."""
    if ncbi_rank is None or not ncbi_rank.strip():
        return fallback
    rank = ncbi_rank.strip()
    if rank.lower() == "no rank":
        return fallback
    return rank
