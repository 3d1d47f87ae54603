"""NCBI response handling.

- records: GenBank flat-file and E-utilities XML parsing
- cache: On-disk cache of raw responses
- classify: Accession and replicon classification
- taxonomy: Organism name parsing and rank derivation
"""

from tale_store.ncbi.cache import ResponseCache
from tale_store.ncbi.records import (
    AssemblySummary,
    BiosampleData,
    GenbankData,
    TaxonomyRecord,
    parse_genbank_record,
)

__all__ = [
    "AssemblySummary",
    "BiosampleData",
    "GenbankData",
    "ResponseCache",
    "TaxonomyRecord",
    "parse_genbank_record",
]
