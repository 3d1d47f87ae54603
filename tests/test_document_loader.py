"""Tests for document loading."""

from pathlib import Path
from typing import Any

import pytest

from tale_store.document.loader import document_from_dict, load_document, parse_strand
from tale_store.document.models import AffineCosts, RvdCosts
from tale_store.errors import StructuralParseError


class TestLoadDocument:
    """Tests for load_document() and document_from_dict()."""

    def test_load_sample(self, document_path: Path) -> None:
        """Test loading the two-tale sample document."""
        document = load_document(document_path)

        assert [tale.name for tale in document.tales] == ["Tal1", "Tal2"]
        assert document.families[0].members == ["Tal1", "Tal2"]
        assert document.families[0].tree is not None
        assert document.families[0].tree.elements() == ["Tal1", "Tal2"]

    def test_tale_fields(self, document_data: dict[str, Any]) -> None:
        """Test that tale scalars and sequences are read."""
        tale = document_from_dict(document_data).tales[0]

        assert tale.doc_id == 1
        assert tale.strand is True
        assert tale.repeats[1].rvd == "N*"
        assert tale.repeats[1].masked_1 == "LTPDQVVAIAS"
        assert tale.protein_sequence() == "MDPIR" + "LTPEQVVAIASHDGGKQALETVQ" + "LTPDQVVAIASNGGKQALETVQ" + "LRQ"
        assert tale.dna_sequence() == "ATGCTGACCCTGACGTGA"

    def test_analysis(self, document_data: dict[str, Any]) -> None:
        """Test the analysis block and its tagged cost model."""
        analysis = document_from_dict(document_data).analysis

        assert analysis.linkage == "AVERAGE"
        assert analysis.costs == AffineCosts(open=5.0, extend=1.0, inner=RvdCosts(5.0, 4.0, 0.0, 0.2))
        assert analysis.dmat == "0;1,5$1,5;0$"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that an unreadable file is a structural error."""
        with pytest.raises(StructuralParseError, match="Cannot read"):
            load_document(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that malformed YAML is a structural error."""
        path = tmp_path / "bad.yaml"
        path.write_text("tales: [unclosed", encoding="utf-8")

        with pytest.raises(StructuralParseError, match="Cannot parse"):
            load_document(path)

    def test_root_must_be_mapping(self) -> None:
        """Test that a list root is rejected."""
        with pytest.raises(StructuralParseError):
            document_from_dict([1, 2])

    def test_tales_required(self) -> None:
        """Test that a document needs a tales list."""
        with pytest.raises(StructuralParseError, match="'tales'"):
            document_from_dict({"families": []})

    def test_duplicate_tale_name(self) -> None:
        """Test that tale names are unique."""
        with pytest.raises(StructuralParseError, match="Duplicate tale name"):
            document_from_dict({"tales": [{"name": "Tal1"}, {"name": "Tal1"}]})

    def test_default_ids(self) -> None:
        """Test that ids default to the 1-based position."""
        document = document_from_dict({"tales": [{"name": "A"}, {"name": "B"}]})

        assert [tale.doc_id for tale in document.tales] == [1, 2]

    def test_unknown_member(self, document_data: dict[str, Any]) -> None:
        """Test that a family member must be a known tale."""
        document_data["families"][0]["members"].append("Tal9")

        with pytest.raises(StructuralParseError, match="unknown tale: Tal9"):
            document_from_dict(document_data)

    def test_bad_tree_text(self, document_data: dict[str, Any]) -> None:
        """Test that a malformed tree string is a structural error."""
        document_data["families"][0]["tree"] = "(1,2"

        with pytest.raises(StructuralParseError, match="Bad tree for family TalAA"):
            document_from_dict(document_data)

    def test_nested_tree(self, document_data: dict[str, Any]) -> None:
        """Test a tree given as nested mappings."""
        document_data["families"][0]["tree"] = {
            "distance": 3.5,
            "children": [{"leaf": "Tal2"}, "Tal1"],
        }

        tree = document_from_dict(document_data).families[0].tree

        assert tree is not None
        assert tree.distance == 3.5
        assert tree.elements() == ["Tal2", "Tal1"]

    def test_members_from_tree(self, document_data: dict[str, Any]) -> None:
        """Test that a tree alone defines the members."""
        del document_data["families"][0]["members"]

        family = document_from_dict(document_data).families[0]

        assert family.members == ["Tal1", "Tal2"]

    def test_unknown_cost_kind(self, document_data: dict[str, Any]) -> None:
        """Test that an untagged cost model is rejected."""
        document_data["analysis"]["costs"] = {"kind": "blosum"}

        with pytest.raises(StructuralParseError, match="Invalid cost model"):
            document_from_dict(document_data)

    def test_reserved_names_csv(self, document_data: dict[str, Any]) -> None:
        """Test that reserved names may be a comma-separated string."""
        document_data["analysis"]["reserved_names"] = "TalA, TalB,"

        analysis = document_from_dict(document_data).analysis

        assert analysis.reserved_names == ["TalA", "TalB"]

    def test_dmat_order_unknown(self, document_data: dict[str, Any]) -> None:
        """Test that the matrix order must name known tales."""
        document_data["analysis"]["dmat_order"] = ["Tal2", "Tal7"]

        with pytest.raises(StructuralParseError, match="Tal7"):
            document_from_dict(document_data)


class TestParseStrand:
    """Tests for parse_strand()."""

    @pytest.mark.parametrize("value", ["+", "forward", 1, True])
    def test_forward(self, value: Any) -> None:
        """Test forward spellings."""
        assert parse_strand(value) is True

    @pytest.mark.parametrize("value", ["-", "reverse", -1, False])
    def test_reverse(self, value: Any) -> None:
        """Test reverse spellings."""
        assert parse_strand(value) is False

    @pytest.mark.parametrize("value", [None, "", "?", "unknown"])
    def test_unknown(self, value: Any) -> None:
        """Test unknown spellings."""
        assert parse_strand(value) is None

    def test_invalid(self) -> None:
        """Test that other values are rejected."""
        with pytest.raises(StructuralParseError):
            parse_strand("sideways")
