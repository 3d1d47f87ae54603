"""Parse free-text strain labels into structured taxonomy parts.

Labels come in two shapes::

    Xanthomonas oryzae pv. oryzae PXO99A   -> genus first
    Xoo PXO99A                             -> pathovar shorthand first

Anything else is not parsed; callers keep the raw label only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tale_store.strains.abbreviations import (
    GENUS,
    PV_MARKERS,
    SP_MARKERS,
    STRAIN_MARKER,
    is_genus_indicator,
    lookup_abbreviation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedLabel:
    """Structured view of a strain label.

    Attributes:
        species: Binomial, or "<Genus> sp." for unidentified species (species rank)
        pathovar: Pathovar epithet (e.g., "oryzae")
        isolate: Isolate/strain designation (e.g., "PXO99A")
        rank: Most specific rank present: strain, pathovar or species
    """

    species: str
    pathovar: str | None
    isolate: str | None
    rank: str


def _tokens(label: str | None) -> list[str]:
    return label.split() if label else []


def _isolate_from(tokens: list[str]) -> str | None:
    """Join the trailing tokens, dropping a leading "strain" marker."""
    if tokens and tokens[0].lower() == STRAIN_MARKER:
        tokens = tokens[1:]
    isolate = " ".join(tokens).strip()
    return isolate or None


def _rank(pathovar: str | None, isolate: str | None) -> str:
    if isolate:
        return "strain"
    if pathovar:
        return "pathovar"
    return "species"


def _split_pathovar(tokens: list[str]) -> tuple[str | None, list[str]]:
    """Find a pv/pv. marker at the front of ``tokens``; return (pathovar, rest).

    A marker with nothing after it is dropped.
    """
    if tokens and tokens[0].lower() in PV_MARKERS:
        if len(tokens) == 1:
            return None, []
        return tokens[1], tokens[2:]
    return None, tokens


def parse_strain_label(label: str | None) -> NormalizedLabel | None:
    """Parse a strain label.

    Rules, first match wins:

    1. The first token names the genus ("Xanthomonas", "X.", "X"): the second
       token is the species epithet, or an "sp." marker meaning no species
       and no pathovar. An optional "pv." pathovar follows.
    2. The first token is a known shorthand ("Xoo"): species and default
       pathovar come from the table; a "pv."/"pv" token anywhere after it
       overrides the pathovar.
    3. Otherwise the label is not parseable and None is returned.

    Whatever follows is the isolate, with a leading "strain" dropped.

    Examples:
        >>> parse_strain_label("Xoo PXO99A").species
        'Xanthomonas oryzae'
        >>> parse_strain_label("Pseudomonas syringae") is None
        True
    """
    tokens = _tokens(label)
    if not tokens:
        return None

    first = tokens[0]
    if is_genus_indicator(first):
        if len(tokens) < 2:
            return None
        epithet = tokens[1]
        if epithet.lower() in SP_MARKERS:
            species = f"{GENUS} sp."
            isolate = _isolate_from(tokens[2:])
            return NormalizedLabel(species, None, isolate, _rank(None, isolate))
        species = f"{GENUS} {epithet.lower()}"
        pathovar, rest = _split_pathovar(tokens[2:])
        isolate = _isolate_from(rest)
        return NormalizedLabel(species, pathovar, isolate, _rank(pathovar, isolate))

    entry = lookup_abbreviation(first)
    if entry is None:
        logger.debug(f"Unparseable strain label: {label!r}")
        return None

    species, pathovar = entry
    rest = tokens[1:]
    for i, token in enumerate(rest):
        if token.lower() not in PV_MARKERS:
            continue
        if i + 1 < len(rest):
            pathovar = rest[i + 1]
            rest = rest[:i] + rest[i + 2 :]
        else:
            rest = rest[:i]
        break
    isolate = _isolate_from(rest)
    return NormalizedLabel(species, pathovar, isolate, _rank(pathovar, isolate))


def last_token(label: str | None) -> str | None:
    """Return the last whitespace-delimited token, used for label matching."""
    tokens = _tokens(label)
    return tokens[-1] if tokens else None
