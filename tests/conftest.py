"""Pytest configuration for tale-store tests.

This file is automatically loaded by pytest and sets up fixtures shared
across all test modules.
"""

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
import yaml
from dotenv import load_dotenv

from tale_store.document.loader import document_from_dict
from tale_store.document.models import TaleDocument
from tale_store.store.connection import open_store

# Load .env file so integration tests can pick up NCBI_API_KEY
load_dotenv()


def sample_document_data() -> dict[str, Any]:
    """Two tales in one family, the smallest complete document."""
    return {
        "tales": [
            {
                "name": "Tal1",
                "id": 1,
                "strain": "Xoo PXO99A",
                "accession": "CP000967.2",
                "start_pos": 100,
                "end_pos": 3100,
                "strand": "+",
                "start": "MDPIR",
                "end": "LRQ",
                "repeats": [
                    {"rvd": "HD", "rvd_length": 2, "masked": ["LTPEQVVAIAS", "GGKQALETVQ"]},
                    {"rvd": "N*", "rvd_length": 1, "masked": ["LTPDQVVAIAS", "GGKQALETVQ"]},
                ],
                "dna": {"start": "ATG", "repeats": ["CTGACC", "CTGACG"], "end": "TGA"},
            },
            {
                "name": "Tal2",
                "id": 2,
                "strain": "Xoo PXO99A",
                "accession": "CP000967.2",
                "start_pos": 5000,
                "end_pos": 8000,
                "strand": "-",
                "is_new": True,
                "start": "MDPIR",
                "end": "LRQ",
                "repeats": [{"rvd": "NG", "rvd_length": 2, "masked": ["LTPEQVVAIAS", "GGKQALETVQ"]}],
            },
        ],
        "families": [
            {"name": "TalAA", "members": ["Tal1", "Tal2"], "tree": "(1,2);", "alignments": "Tal1 HD-N*\nTal2 NG--"},
        ],
        "analysis": {
            "alignment_type": "repeats",
            "linkage": "AVERAGE",
            "cut": 5.0,
            "costs": {
                "kind": "affine",
                "open": 5,
                "extend": 1,
                "inner": {"kind": "rvd", "gap": 5, "twelve": 4, "thirteen": 0, "bonus": 0.2},
            },
            "dmat": "0;1,5$1,5;0$",
        },
    }


@pytest.fixture
def document_data() -> dict[str, Any]:
    return sample_document_data()


@pytest.fixture
def document(document_data: dict[str, Any]) -> TaleDocument:
    return document_from_dict(document_data)


@pytest.fixture
def document_path(tmp_path: Path, document_data: dict[str, Any]) -> Path:
    path = tmp_path / "tales.yaml"
    path.write_text(yaml.safe_dump(document_data), encoding="utf-8")
    return path


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "tales.sqlite"


@pytest.fixture
def conn(store_path: Path) -> Generator[Any, None, None]:
    connection = open_store(store_path)
    yield connection
    connection.close()


# =============================================================================
# NCBI response samples
# =============================================================================

GENBANK_RECORD = """LOCUS       CP000967             5240075 bp    DNA     circular BCT 31-JAN-2014
DEFINITION  Xanthomonas oryzae pv. oryzae PXO99A, complete sequence,
            chromosome.
ACCESSION   CP000967
VERSION     CP000967.2
DBLINK      BioProject: PRJNA28127
            BioSample: SAMN02603918
SOURCE      Xanthomonas oryzae pv. oryzae PXO99A
FEATURES             Location/Qualifiers
     source          1..5240075
                     /organism="Xanthomonas oryzae pv. oryzae PXO99A"
                     /mol_type="genomic DNA"
                     /strain="PXO99A"
                     /db_xref="taxon:360094"
                     /country="Philippines"
                     /geo_loc_name="Philippines"
                     /collection_date="missing"
ORIGIN
        1 gatcgcggcg
//
"""

PLASMID_RECORD = """LOCUS       AB000001                5000 bp    DNA     circular BCT 01-JAN-2020
DEFINITION  Xanthomonas citri pv. citri strain 306 plasmid pXAC64, complete
            sequence.
ACCESSION   AB000001
VERSION     AB000001.1
SOURCE      Xanthomonas citri pv. citri
FEATURES             Location/Qualifiers
     source          1..5000
                     /organism="Xanthomonas citri pv. citri"
                     /strain="306"
                     /db_xref="taxon:611301"
                     /geo_loc_name="Brazil:
                     Sao Paulo"
                     /collection_date="1997"
ORIGIN
        1 atgc
//
"""

BIOSAMPLE_XML = """<?xml version="1.0" ?>
<BioSampleSet>
  <BioSample accession="SAMN02603918" id="2603918">
    <Attributes>
      <Attribute attribute_name="strain">PXO99A</Attribute>
      <Attribute attribute_name="geo_loc_name">Philippines: Luzon</Attribute>
      <Attribute attribute_name="collection_date">1985</Attribute>
    </Attributes>
  </BioSample>
  <BioSample accession="SAMN00000002" id="2">
    <Attributes>
      <Attribute attribute_name="strain">BLS256</Attribute>
      <Attribute attribute_name="geo_loc_name">not collected</Attribute>
    </Attributes>
  </BioSample>
</BioSampleSet>
"""

ASSEMBLY_ESEARCH_XML = """<?xml version="1.0" ?>
<eSearchResult><Count>1</Count><IdList><Id>123456</Id></IdList></eSearchResult>
"""

ASSEMBLY_SUMMARY_XML = """<?xml version="1.0" ?>
<eSummaryResult>
  <DocumentSummarySet>
    <DocumentSummary uid="123456">
      <AssemblyAccession>GCF_000019585.2</AssemblyAccession>
      <SpeciesName>Xanthomonas oryzae</SpeciesName>
      <Organism>Xanthomonas oryzae pv. oryzae PXO99A (g-proteobacteria)</Organism>
      <Taxid>360094</Taxid>
      <BioSampleAccn>SAMN02603918</BioSampleAccn>
      <AssemblyStatus>Complete Genome</AssemblyStatus>
    </DocumentSummary>
  </DocumentSummarySet>
</eSummaryResult>
"""


def taxonomy_xml(taxon_id: str, name: str, rank: str, parent: str) -> str:
    return (
        '<?xml version="1.0" ?>\n<TaxaSet><Taxon>'
        f"<TaxId>{taxon_id}</TaxId><ScientificName>{name}</ScientificName>"
        f"<ParentTaxId>{parent}</ParentTaxId><Rank>{rank}</Rank>"
        "<LineageEx><Taxon><TaxId>1</TaxId><ScientificName>root</ScientificName><Rank>no rank</Rank></Taxon>"
        "</LineageEx></Taxon></TaxaSet>"
    )


# taxon id -> (scientific name, rank, parent taxon id)
TAXA = {
    "360094": ("Xanthomonas oryzae pv. oryzae PXO99A", "strain", "64187"),
    "64187": ("Xanthomonas oryzae pv. oryzae", "pathovar", "347"),
    "347": ("Xanthomonas oryzae", "species", "338"),
    "338": ("Xanthomonas", "genus", "1"),
    "1": ("root", "no rank", "1"),
}


@pytest.fixture
def genbank_record() -> str:
    return GENBANK_RECORD


@pytest.fixture
def plasmid_record() -> str:
    return PLASMID_RECORD


@pytest.fixture
def biosample_xml() -> str:
    return BIOSAMPLE_XML


@pytest.fixture
def assembly_summary_xml() -> str:
    return ASSEMBLY_SUMMARY_XML


@pytest.fixture
def assembly_esearch_xml() -> str:
    return ASSEMBLY_ESEARCH_XML


@pytest.fixture
def taxonomy_responses() -> dict[str, str]:
    """Taxonomy XML keyed by taxon id, for a small Xanthomonas lineage."""
    return {taxon_id: taxonomy_xml(taxon_id, *values) for taxon_id, values in TAXA.items()}
