"""Heuristics for reconciling legacy strain labels with external values.

Legacy labels ("Xoo strain PXO99A") and NCBI strain qualifiers ("PXO99A")
rarely agree verbatim. Two fallback tests decide whether they describe the
same isolate:

1. case-insensitive equality of the last whitespace token, where a
   placeholder on either side ("unnamed...", "x", empty) always matches;
2. case-insensitive equality after stripping every non-alphanumeric
   character from both full strings.
"""

from __future__ import annotations

import re

from tale_store.strains.normalizer import last_token

# Metadata values that mean "no value"
PLACEHOLDER_VALUES: frozenset[str] = frozenset(
    {
        "-",
        "unknown",
        "missing",
        "na",
        "n/a",
        "not applicable",
        "not collected",
    }
)

_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def trim_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def is_placeholder_strain(value: str | None) -> bool:
    """Return True for empty, "unnamed..." or "x" strain tokens."""
    if value is None:
        return True
    lowered = value.strip().lower()
    return not lowered or lowered.startswith("unnamed") or lowered == "x"


def normalize_strain_key(value: str | None) -> str | None:
    """Strip every non-alphanumeric character; None if nothing is left."""
    if _blank(value):
        return None
    cleaned = _NON_ALNUM_RE.sub("", value.strip())  # type: ignore[union-attr]
    return cleaned or None


def strain_matches(legacy: str | None, observed: str | None) -> bool:
    """Decide whether a legacy label and an observed strain agree.

    A missing value on either side counts as agreement, since there is
    nothing to contradict.

    Examples:
        >>> strain_matches("strain XYZ", "XYZ")
        True
        >>> strain_matches("unnamed", "PXO99A")
        True
    """
    if _blank(observed) or _blank(legacy):
        return True
    legacy_token = last_token(legacy)
    if is_placeholder_strain(legacy_token):
        return True
    observed_token = last_token(observed)
    if observed_token is None or is_placeholder_strain(observed_token):
        return True
    if observed_token.lower() == (legacy_token or "").lower():
        return True
    legacy_key = normalize_strain_key(legacy)
    observed_key = normalize_strain_key(observed)
    if legacy_key is None or observed_key is None:
        return False
    return legacy_key.lower() == observed_key.lower()


def should_replace_strain(legacy: str | None, observed: str | None) -> bool:
    """Decide whether the observed value may fill the normalized strain name.

    True when the legacy label is missing or a placeholder, or when both
    agree once punctuation is stripped.
    """
    if _blank(observed):
        return False
    if _blank(legacy):
        return True
    if is_placeholder_strain(last_token(legacy)):
        return True
    legacy_key = normalize_strain_key(legacy)
    observed_key = normalize_strain_key(observed)
    if legacy_key is None or observed_key is None:
        return False
    return legacy_key.lower() == observed_key.lower()


def sanitize_metadata_value(value: str | None) -> str | None:
    """Trim a geo tag or collection date; placeholders become None."""
    trimmed = trim_to_none(value)
    if trimmed is None or trimmed.lower() in PLACEHOLDER_VALUES:
        return None
    return trimmed
