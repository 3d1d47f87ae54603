"""Parsers for raw NCBI E-utilities responses.

Handles four response shapes:
- GenBank flat files (``efetch db=nuccore rettype=gb``), possibly several
  records per response separated by ``//`` lines
- Assembly ``esearch`` / ``esummary`` XML
- BioSample XML sets (``efetch db=biosample``)
- Taxonomy XML (``efetch db=taxonomy``)

XML payloads that cannot be parsed raise :class:`RecordParseFailure`.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass

from tale_store.errors import RecordParseFailure

logger = logging.getLogger(__name__)

RECORD_SEPARATOR = "\n//"
CONTINUATION_INDENT = " " * 12


@dataclass
class GenbankData:
    """Metadata pulled from a sequence record or an assembly summary.

    Attributes:
        accession: Accession without version (e.g., "CP000967")
        version: Version number as text (e.g., "2")
        definition: DEFINITION line, continuation lines joined
        full_record: Raw record text
        assembly_level: Assembly level, assembly summaries only
        organism: Organism name (e.g., "Xanthomonas oryzae pv. oryzae PXO99A")
        taxon_id: NCBI Taxonomy id as text
        biosample_id: BioSample accession (e.g., "SAMN02603555")
        strain: /strain qualifier
        geo: /geo_loc_name qualifier
        collection_date: /collection_date qualifier
    """

    accession: str | None = None
    version: str | None = None
    definition: str | None = None
    full_record: str | None = None
    assembly_level: str | None = None
    organism: str | None = None
    taxon_id: str | None = None
    biosample_id: str | None = None
    strain: str | None = None
    geo: str | None = None
    collection_date: str | None = None


@dataclass
class BiosampleData:
    """Attributes of one BioSample record."""

    biosample_id: str
    strain: str | None = None
    geo: str | None = None
    collection_date: str | None = None


@dataclass
class AssemblySummary:
    """Fields of an assembly esummary document."""

    accession: str | None = None
    organism: str | None = None
    taxon_id: str | None = None
    biosample_id: str | None = None
    assembly_level: str | None = None

    def to_genbank(self, requested: str, raw: str) -> GenbankData:
        """View the summary as sequence metadata for the shared update path."""
        accession = self.accession or requested
        return GenbankData(
            accession=accession,
            version=version_from_accession(accession),
            full_record=raw,
            assembly_level=self.assembly_level,
            organism=self.organism,
            taxon_id=self.taxon_id,
            biosample_id=self.biosample_id,
        )


@dataclass
class TaxonomyRecord:
    """One node of the NCBI taxonomy."""

    taxon_id: str
    scientific_name: str | None = None
    rank: str | None = None
    parent_tax_id: str | None = None


def _trim(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def version_from_accession(accession: str | None) -> str | None:
    """Return the numeric suffix after the last dot (``GCF_000019585.2`` -> ``2``)."""
    if accession is None:
        return None
    _, dot, version = accession.strip().rpartition(".")
    if dot and version.isdigit():
        return version
    return None


# =============================================================================
# GenBank flat files
# =============================================================================


def _line_value(record: str, keyword: str) -> str | None:
    """Second whitespace token of the first line starting with ``keyword``."""
    for line in record.split("\n"):
        if line.startswith(keyword):
            tokens = line.split()
            if len(tokens) >= 2:
                return tokens[1].strip()
    return None


def extract_accession(record: str) -> str | None:
    return _line_value(record, "ACCESSION")


def extract_version(record: str) -> str | None:
    """Version number from the VERSION line (``VERSION  CP000967.2`` -> ``2``)."""
    token = _line_value(record, "VERSION")
    if token is None or "." not in token:
        return None
    return token.split(".")[1] or None


def extract_block_value(record: str, label: str) -> str | None:
    """Read a header block such as DEFINITION, joining its continuation lines."""
    marker = label + "  "
    index = record.find(marker)
    if index < 0:
        return None
    lines = record[index + len(marker) :].split("\n")
    parts = [lines[0].strip()]
    for line in lines[1:]:
        if not line.startswith(CONTINUATION_INDENT):
            break
        parts.append(line.strip())
    return _trim(" ".join(parts))


def extract_qualifier(record: str, qualifier: str, prefix: str | None = None) -> str | None:
    """Value of the first ``/qualifier="..."`` feature qualifier.

    With ``prefix`` (e.g., ``taxon`` for ``/db_xref="taxon:64187"``) only values
    carrying that prefix are considered and the prefix is stripped. Values
    wrapped over several lines are joined with single spaces.
    """
    pattern = re.compile(r"/" + re.escape(qualifier) + r'="([^"]*)"')
    for match in pattern.finditer(record):
        value = " ".join(match.group(1).split())
        if not value:
            continue
        if prefix is None:
            return value
        if value.startswith(prefix + ":"):
            return value[len(prefix) + 1 :]
    return None


def extract_biosample_line(record: str) -> str | None:
    """BioSample id from a DBLINK ``BioSample:`` line."""
    index = record.find("BioSample:")
    if index < 0:
        return None
    rest = record[index + len("BioSample:") :].split("\n", 1)[0]
    return _trim(rest)


def split_genbank_records(text: str) -> dict[str, str]:
    """Split a multi-record GenBank response, keyed by ACCESSION.

    Each value keeps its ``//`` terminator so it can be cached as-is.
    """
    records: dict[str, str] = {}
    for part in text.split(RECORD_SEPARATOR):
        record = part.strip()
        if not record:
            continue
        accession = extract_accession(record)
        if accession is not None:
            records[accession] = record + "\n//\n"
    return records


def record_version_id(record: str) -> str | None:
    """Full ``accession.version`` token from the VERSION line."""
    return _line_value(record, "VERSION")


def parse_genbank_record(record: str) -> GenbankData:
    """Parse one GenBank flat-file record.

    Raises:
        RecordParseFailure: The text has no ACCESSION line
    """
    accession = extract_accession(record)
    if accession is None:
        raise RecordParseFailure("GenBank record without ACCESSION line")
    biosample = extract_qualifier(record, "db_xref", "BioSample") or extract_biosample_line(record)
    return GenbankData(
        accession=accession,
        version=extract_version(record),
        definition=extract_block_value(record, "DEFINITION"),
        full_record=record,
        organism=extract_qualifier(record, "organism"),
        taxon_id=extract_qualifier(record, "db_xref", "taxon"),
        biosample_id=biosample,
        strain=extract_qualifier(record, "strain"),
        geo=extract_qualifier(record, "geo_loc_name"),
        collection_date=extract_qualifier(record, "collection_date"),
    )


# =============================================================================
# XML responses
# =============================================================================


def _parse_xml(xml: str, what: str) -> ET.Element:
    try:
        return ET.fromstring(xml)
    except ET.ParseError as e:
        raise RecordParseFailure(f"Unparseable {what} XML: {e}") from e


def parse_esearch_ids(xml: str) -> list[str]:
    """UIDs from an esearch result."""
    root = _parse_xml(xml, "esearch")
    return [text for elem in root.iter("Id") if (text := _trim(elem.text))]


def _summary_value(root: ET.Element, *names: str) -> str | None:
    """First non-blank value of any of ``names``.

    Supports both the DocumentSummary layout (``<Taxid>64187</Taxid>``) and
    the older ``<Item Name="Taxid">`` layout.
    """
    for name in names:
        for elem in root.iter():
            if elem.tag == name or (elem.tag == "Item" and elem.get("Name") == name):
                value = _trim(elem.text)
                if value:
                    return value
    return None


def parse_assembly_summary(xml: str | None) -> AssemblySummary | None:
    """Parse an assembly esummary document; None for blank input."""
    if xml is None or not xml.strip():
        return None
    root = _parse_xml(xml, "assembly summary")
    return AssemblySummary(
        accession=_summary_value(root, "AssemblyAccession"),
        organism=_summary_value(root, "SpeciesName", "Organism"),
        taxon_id=_summary_value(root, "Taxid"),
        biosample_id=_summary_value(root, "BioSampleAccn", "BioSampleAccession", "BioSample"),
        assembly_level=_summary_value(root, "AssemblyLevel", "AssemblyStatus"),
    )


def split_biosample_records(xml: str) -> dict[str, str]:
    """Split a BioSampleSet response into per-accession XML documents."""
    root = _parse_xml(xml, "biosample")
    elements = [root] if root.tag == "BioSample" else list(root.iter("BioSample"))
    records: dict[str, str] = {}
    for elem in elements:
        accession = elem.get("accession")
        if accession:
            records[accession] = ET.tostring(elem, encoding="unicode")
    return records


def parse_biosample_xml(biosample_id: str, xml: str | None) -> BiosampleData | None:
    """Read strain, geo_loc_name and collection_date attributes."""
    if xml is None or not xml.strip():
        return None
    root = _parse_xml(xml, "biosample")
    values: dict[str, str] = {}
    for attr in root.iter("Attribute"):
        name = attr.get("attribute_name")
        value = _trim(attr.text)
        if name and value and name not in values:
            values[name] = value
    return BiosampleData(
        biosample_id=biosample_id,
        strain=values.get("strain"),
        geo=values.get("geo_loc_name"),
        collection_date=values.get("collection_date"),
    )


def parse_taxonomy_xml(xml: str | None, taxon_id: str) -> TaxonomyRecord | None:
    """Read the requested taxon's own name, rank and parent (not its lineage)."""
    if xml is None or not xml.strip():
        return None
    root = _parse_xml(xml, "taxonomy")
    taxon = root if root.tag == "Taxon" else root.find("Taxon")
    if taxon is None:
        logger.debug(f"No Taxon element for taxon {taxon_id}")
        return None
    return TaxonomyRecord(
        taxon_id=taxon_id,
        scientific_name=_trim(taxon.findtext("ScientificName")),
        rank=_trim(taxon.findtext("Rank")),
        parent_tax_id=_trim(taxon.findtext("ParentTaxId")),
    )
