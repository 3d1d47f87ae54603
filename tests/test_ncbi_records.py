"""Tests for NCBI response parsers."""

import pytest

from tale_store.errors import RecordParseFailure
from tale_store.ncbi.records import (
    extract_block_value,
    extract_qualifier,
    parse_assembly_summary,
    parse_biosample_xml,
    parse_esearch_ids,
    parse_genbank_record,
    parse_taxonomy_xml,
    record_version_id,
    split_biosample_records,
    split_genbank_records,
    version_from_accession,
)


class TestGenbank:
    """Tests for GenBank flat-file parsing."""

    def test_parse_record(self, genbank_record: str) -> None:
        """Test the fields read from a complete record."""
        data = parse_genbank_record(genbank_record)

        assert data.accession == "CP000967"
        assert data.version == "2"
        assert data.definition == "Xanthomonas oryzae pv. oryzae PXO99A, complete sequence, chromosome."
        assert data.organism == "Xanthomonas oryzae pv. oryzae PXO99A"
        assert data.taxon_id == "360094"
        assert data.biosample_id == "SAMN02603918"
        assert data.strain == "PXO99A"
        assert data.geo == "Philippines"
        assert data.collection_date == "missing"

    def test_wrapped_qualifier(self, plasmid_record: str) -> None:
        """Test that a qualifier spanning lines is joined."""
        assert extract_qualifier(plasmid_record, "geo_loc_name") == "Brazil: Sao Paulo"

    def test_qualifier_prefix(self, genbank_record: str) -> None:
        """Test selecting a db_xref by prefix."""
        assert extract_qualifier(genbank_record, "db_xref", "taxon") == "360094"
        assert extract_qualifier(genbank_record, "db_xref", "GeneID") is None

    def test_no_biosample(self, plasmid_record: str) -> None:
        """Test a record without a BioSample link."""
        assert parse_genbank_record(plasmid_record).biosample_id is None

    def test_missing_accession(self) -> None:
        """Test that a record without ACCESSION is rejected."""
        with pytest.raises(RecordParseFailure):
            parse_genbank_record("LOCUS       X\n//\n")

    def test_split_records(self, genbank_record: str, plasmid_record: str) -> None:
        """Test splitting a multi-record response by versioned accession."""
        records = split_genbank_records(genbank_record + plasmid_record)

        assert set(records) == {"CP000967.2", "AB000001.1"}
        assert records["AB000001.1"].startswith("LOCUS")
        assert records["AB000001.1"].endswith("\n//\n")

    def test_split_keeps_both_versions(self, genbank_record: str) -> None:
        """Test that two versions of one accession are both kept."""
        newer = genbank_record.replace("VERSION     CP000967.2", "VERSION     CP000967.3")

        records = split_genbank_records(genbank_record + newer)

        assert set(records) == {"CP000967.2", "CP000967.3"}
        assert record_version_id(records["CP000967.3"]) == "CP000967.3"

    def test_split_without_version_line(self, plasmid_record: str) -> None:
        """Test that a record lacking VERSION is keyed by its accession."""
        record = plasmid_record.replace("VERSION     AB000001.1\n", "")

        assert set(split_genbank_records(record)) == {"AB000001"}

    def test_record_version_id(self, genbank_record: str) -> None:
        """Test reading the full versioned id."""
        assert record_version_id(genbank_record) == "CP000967.2"

    def test_block_value_absent(self, genbank_record: str) -> None:
        """Test a header block that is not present."""
        assert extract_block_value(genbank_record, "KEYWORDS") is None


class TestVersionFromAccession:
    """Tests for version_from_accession()."""

    def test_versioned(self) -> None:
        """Test a numeric suffix."""
        assert version_from_accession("GCF_000019585.2") == "2"

    def test_unversioned(self) -> None:
        """Test no suffix and a non-numeric suffix."""
        assert version_from_accession("GCF_000019585") is None
        assert version_from_accession("abc.x") is None


class TestAssembly:
    """Tests for assembly esearch/esummary parsing."""

    def test_esearch_ids(self, assembly_esearch_xml: str) -> None:
        """Test reading the UID list."""
        assert parse_esearch_ids(assembly_esearch_xml) == ["123456"]

    def test_document_summary(self, assembly_summary_xml: str) -> None:
        """Test the DocumentSummary layout with AssemblyStatus fallback."""
        summary = parse_assembly_summary(assembly_summary_xml)

        assert summary is not None
        assert summary.accession == "GCF_000019585.2"
        assert summary.taxon_id == "360094"
        assert summary.biosample_id == "SAMN02603918"
        assert summary.assembly_level == "Complete Genome"

    def test_item_layout(self) -> None:
        """Test the older Item Name= layout."""
        xml = (
            "<eSummaryResult><DocSum><Id>1</Id>"
            '<Item Name="AssemblyAccession" Type="String">GCA_000007385.1</Item>'
            '<Item Name="Taxid" Type="String">64187</Item>'
            '<Item Name="AssemblyLevel" Type="String">Chromosome</Item>'
            "</DocSum></eSummaryResult>"
        )

        summary = parse_assembly_summary(xml)

        assert summary is not None
        assert summary.accession == "GCA_000007385.1"
        assert summary.assembly_level == "Chromosome"

    def test_to_genbank(self, assembly_summary_xml: str) -> None:
        """Test viewing a summary as sequence metadata."""
        summary = parse_assembly_summary(assembly_summary_xml)
        assert summary is not None

        data = summary.to_genbank("GCF_000019585", assembly_summary_xml)

        assert data.accession == "GCF_000019585.2"
        assert data.version == "2"
        assert data.assembly_level == "Complete Genome"

    def test_blank_and_invalid(self) -> None:
        """Test blank input and unparseable XML."""
        assert parse_assembly_summary("  ") is None
        with pytest.raises(RecordParseFailure):
            parse_assembly_summary("<eSummaryResult>")


class TestBiosample:
    """Tests for BioSample parsing."""

    def test_split(self, biosample_xml: str) -> None:
        """Test splitting a BioSampleSet per accession."""
        records = split_biosample_records(biosample_xml)

        assert set(records) == {"SAMN02603918", "SAMN00000002"}

    def test_parse(self, biosample_xml: str) -> None:
        """Test reading attributes from one sample."""
        record = split_biosample_records(biosample_xml)["SAMN02603918"]

        data = parse_biosample_xml("SAMN02603918", record)

        assert data is not None
        assert data.strain == "PXO99A"
        assert data.geo == "Philippines: Luzon"
        assert data.collection_date == "1985"

    def test_missing(self) -> None:
        """Test that no XML gives no sample."""
        assert parse_biosample_xml("SAMN1", None) is None


class TestTaxonomy:
    """Tests for taxonomy parsing."""

    def test_parse(self, taxonomy_responses: dict[str, str]) -> None:
        """Test that the taxon's own fields are read, not its lineage."""
        record = parse_taxonomy_xml(taxonomy_responses["64187"], "64187")

        assert record is not None
        assert record.scientific_name == "Xanthomonas oryzae pv. oryzae"
        assert record.rank == "pathovar"
        assert record.parent_tax_id == "347"

    def test_no_taxon(self) -> None:
        """Test an empty TaxaSet."""
        assert parse_taxonomy_xml("<TaxaSet/>", "1") is None
