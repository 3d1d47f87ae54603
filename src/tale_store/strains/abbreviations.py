"""Static lookup tables for Xanthomonas strain labels.

Legacy strain labels usually start with a pathovar shorthand such as ``Xoo``
(X. oryzae pv. oryzae) or with the genus itself. The tables are plain data so
they can be extended and tested without touching the parsing rules.
"""

from __future__ import annotations

GENUS = "Xanthomonas"

# First tokens that stand for the genus name
GENUS_INDICATORS: frozenset[str] = frozenset({"xanthomonas", "x.", "x"})

# Second tokens that mean "unidentified species"
SP_MARKERS: frozenset[str] = frozenset({"sp.", "sp", "spp.", "spp"})

# Tokens that introduce an explicit pathovar
PV_MARKERS: frozenset[str] = frozenset({"pv", "pv."})

# Token introducing an isolate designation
STRAIN_MARKER = "strain"

# short code -> (species, default pathovar)
ABBREVIATIONS: dict[str, tuple[str, str | None]] = {
    "Xoo": ("Xanthomonas oryzae", "oryzae"),
    "Xoc": ("Xanthomonas oryzae", "oryzicola"),
    "Xo": ("Xanthomonas oryzae", None),
    "Xcc": ("Xanthomonas campestris", "campestris"),
    "Xca": ("Xanthomonas campestris", "armoraciae"),
    "Xcr": ("Xanthomonas campestris", "raphani"),
    "Xcm": ("Xanthomonas campestris", "musacearum"),
    "Xc": ("Xanthomonas campestris", None),
    "Xac": ("Xanthomonas citri", "citri"),
    "Xci": ("Xanthomonas citri", "citri"),
    "Xcf": ("Xanthomonas citri", "fuscans"),
    "Xcaur": ("Xanthomonas citri", "aurantifolii"),
    "Xam": ("Xanthomonas axonopodis", "manihotis"),
    "Xpm": ("Xanthomonas phaseoli", "manihotis"),
    "Xax": ("Xanthomonas axonopodis", None),
    "Xcv": ("Xanthomonas euvesicatoria", "vesicatoria"),
    "Xe": ("Xanthomonas euvesicatoria", None),
    "Xeu": ("Xanthomonas euvesicatoria", None),
    "Xv": ("Xanthomonas vesicatoria", None),
    "Xg": ("Xanthomonas gardneri", None),
    "Xp": ("Xanthomonas perforans", None),
    "Xtu": ("Xanthomonas translucens", "undulosa"),
    "Xtt": ("Xanthomonas translucens", "translucens"),
    "Xtc": ("Xanthomonas translucens", "cerealis"),
    "Xt": ("Xanthomonas translucens", None),
    "Xvm": ("Xanthomonas vasicola", "musacearum"),
    "Xvh": ("Xanthomonas vasicola", "holcicola"),
    "Xvv": ("Xanthomonas vasicola", "vasculorum"),
    "Xag": ("Xanthomonas axonopodis", "glycines"),
    "Xcp": ("Xanthomonas citri", "phaseoli"),
    "Xfa": ("Xanthomonas fragariae", None),
    "Xh": ("Xanthomonas hortorum", None),
    "Xhp": ("Xanthomonas hortorum", "pelargonii"),
    "Xar": ("Xanthomonas arboricola", None),
    "Xaj": ("Xanthomonas arboricola", "juglandis"),
    "Xap": ("Xanthomonas arboricola", "pruni"),
    "Xal": ("Xanthomonas albilineans", None),
    "Xcyn": ("Xanthomonas cynarae", None),
}

_ABBREVIATIONS_LOWER = {code.lower(): value for code, value in ABBREVIATIONS.items()}


def lookup_abbreviation(token: str) -> tuple[str, str | None] | None:
    """Return (species, default pathovar) for a short code, case-insensitively."""
    return _ABBREVIATIONS_LOWER.get(token.lower())


def is_genus_indicator(token: str) -> bool:
    return token.lower() in GENUS_INDICATORS
