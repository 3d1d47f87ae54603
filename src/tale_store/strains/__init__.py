"""Strain label handling.

- abbreviations: Static Xanthomonas abbreviation table
- normalizer: Legacy strain label parsing into species, pathovar and isolate
- matching: Strain comparison and metadata placeholder handling
"""

from tale_store.strains.matching import (
    is_placeholder_strain,
    sanitize_metadata_value,
    should_replace_strain,
    strain_matches,
)
from tale_store.strains.normalizer import NormalizedLabel, parse_strain_label

__all__ = [
    "NormalizedLabel",
    "is_placeholder_strain",
    "parse_strain_label",
    "sanitize_metadata_value",
    "should_replace_strain",
    "strain_matches",
]
