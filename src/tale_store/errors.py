"""Exception hierarchy for tale-store.

Structural, schema, guard and referential errors are fatal: they unwind the
migration transaction and leave the store untouched. Fetch and record parse
failures are recoverable: the enrichment engine catches them per accession,
logs them and moves on.
"""

from __future__ import annotations


class TaleStoreError(Exception):
    """Base class for all tale-store errors."""


class StructuralParseError(TaleStoreError):
    """The input document is malformed."""


class TreeParseError(StructuralParseError):
    """Bracket-notation tree text could not be parsed.

    Attributes:
        position: Character offset where parsing failed
    """

    def __init__(self, message: str, position: int):
        super().__init__(f"{message} at position {position}")
        self.position = position


class SchemaError(TaleStoreError):
    """A schema statement failed."""


class GuardedOverwriteError(TaleStoreError):
    """The destination store already holds data and wipe was not requested."""


class ReferentialIntegrityError(TaleStoreError):
    """A family member or tree leaf references an entity missing from the id map."""


class TreeEncodingError(ReferentialIntegrityError):
    """A tree leaf has no durable row id."""


class ExternalFetchFailure(TaleStoreError):
    """Network error, timeout, or non-success status from the metadata service."""


class RecordParseFailure(TaleStoreError):
    """An external record did not have the expected shape."""
