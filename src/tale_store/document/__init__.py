"""Legacy TALE document subpackage.

- models: Tales, repeats, families, cluster trees and analysis parameters
- loader: YAML document loading into the models
"""

from tale_store.document.loader import document_from_dict, load_document
from tale_store.document.models import (
    AffineCosts,
    AnalysisParameters,
    ClusterTree,
    FamilyEntry,
    RepeatEntry,
    RvdCosts,
    SequenceParts,
    TaleDocument,
    TaleEntry,
)

__all__ = [
    "AffineCosts",
    "AnalysisParameters",
    "ClusterTree",
    "FamilyEntry",
    "RepeatEntry",
    "RvdCosts",
    "SequenceParts",
    "TaleDocument",
    "TaleEntry",
    "document_from_dict",
    "load_document",
]
