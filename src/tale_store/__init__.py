"""tale-store: legacy TALE documents in SQLite, NCBI enrichment and verification."""

__version__ = "0.1.0"
