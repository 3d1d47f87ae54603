"""Tests for schema management and the upsert primitive."""

import sqlite3
from unittest.mock import patch

import pytest

from tale_store.document.models import TaleDocument
from tale_store.errors import SchemaError
from tale_store.migration import migrate
from tale_store.store.connection import transaction
from tale_store.store.schema import (
    ADDED_COLUMNS,
    SCHEMA_VERSION,
    applied_versions,
    column_exists,
    ensure_column,
    ensure_schema,
    split_statements,
)
from tale_store.store.upsert import find_id, insert_row, update_row, upsert


def table_names(conn: sqlite3.Connection) -> set[str]:
    return {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}


class TestEnsureSchema:
    """Tests for ensure_schema()."""

    def test_creates_tables(self, conn: sqlite3.Connection) -> None:
        """Test that every store table exists afterwards."""
        ensure_schema(conn)

        expected = {
            "taxonomy_legacy",
            "taxonomy",
            "samples",
            "assembly",
            "tale",
            "repeat",
            "family",
            "family_member",
            "analysis_config",
            "dmat",
            "dmat_tale_order",
            "data_version",
        }
        assert expected <= table_names(conn)

    def test_added_columns_present(self, conn: sqlite3.Connection) -> None:
        """Test that later-revision columns are added."""
        ensure_schema(conn)

        for table, column, _declaration in ADDED_COLUMNS:
            assert column_exists(conn, table, column), f"{table}.{column}"

    def test_idempotent(self, conn: sqlite3.Connection) -> None:
        """Test that a second run changes nothing and keeps data."""
        ensure_schema(conn)
        conn.execute("INSERT INTO samples (legacy_strain_name) VALUES ('Xoo PXO99A')")

        ensure_schema(conn)

        assert conn.execute("SELECT COUNT(*) FROM samples").fetchone()[0] == 1
        assert applied_versions(conn) == [SCHEMA_VERSION]

    def test_upgrades_older_store(self, conn: sqlite3.Connection) -> None:
        """Test that a store missing a later column gets it added."""
        conn.execute(
            "CREATE TABLE family (id INTEGER PRIMARY KEY, name TEXT NOT NULL UNIQUE, member_count INTEGER, tree_newick TEXT)"
        )
        conn.execute("INSERT INTO family (name) VALUES ('TalAA')")

        ensure_schema(conn)

        assert column_exists(conn, "family", "alignments_blob")
        assert conn.execute("SELECT name FROM family").fetchone()[0] == "TalAA"

    def test_failure_wrapped(self, conn: sqlite3.Connection) -> None:
        """Test that DDL failures surface as SchemaError."""
        with (
            patch("tale_store.store.schema.load_schema_script", return_value="CREATE TABLE broken (;"),
            pytest.raises(SchemaError),
        ):
            ensure_schema(conn)

    def test_rolled_back_in_transaction(self, conn: sqlite3.Connection) -> None:
        """Test that a failed transaction leaves no tables behind."""
        with pytest.raises(RuntimeError), transaction(conn):
            ensure_schema(conn)
            raise RuntimeError("boom")

        assert "tale" not in table_names(conn)


class TestEnsureColumn:
    """Tests for ensure_column()."""

    def test_add_once(self, conn: sqlite3.Connection) -> None:
        """Test that a column is added only when missing."""
        conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")

        assert ensure_column(conn, "t", "note", "TEXT") is True
        assert ensure_column(conn, "t", "NOTE", "TEXT") is False


class TestSplitStatements:
    """Tests for split_statements()."""

    def test_split(self) -> None:
        """Test splitting on semicolons and dropping blanks."""
        assert split_statements("CREATE TABLE a (x);\n\n CREATE TABLE b (y);  ") == [
            "CREATE TABLE a (x)",
            "CREATE TABLE b (y)",
        ]


class TestUpsert:
    """Tests for the natural-key upsert primitive."""

    @pytest.fixture
    def schema(self, conn: sqlite3.Connection) -> sqlite3.Connection:
        ensure_schema(conn)
        return conn

    def test_insert_then_find(self, schema: sqlite3.Connection) -> None:
        """Test that the same key returns the same row."""
        first = upsert(schema, "taxonomy_legacy", {"name": "Xoo", "species": "Xanthomonas oryzae", "pathovar": None})
        second = upsert(schema, "taxonomy_legacy", {"name": "Xoo", "species": "Xanthomonas oryzae", "pathovar": None})

        assert first == second
        assert schema.execute("SELECT COUNT(*) FROM taxonomy_legacy").fetchone()[0] == 1

    def test_null_key_matches_null(self, schema: sqlite3.Connection) -> None:
        """Test that NULL key parts match NULL."""
        row_id = upsert(schema, "samples", {"legacy_strain_name": None})

        assert find_id(schema, "samples", {"legacy_strain_name": None}) == row_id

    def test_coalesce_keeps_existing(self, schema: sqlite3.Connection) -> None:
        """Test that coalesce mode fills only NULL columns."""
        row_id = upsert(schema, "samples", {"legacy_strain_name": "Xoo PXO99A"}, {"species": "Xanthomonas oryzae"})
        upsert(schema, "samples", {"legacy_strain_name": "Xoo PXO99A"}, {"species": "other", "isolate": "PXO99A"})

        row = schema.execute("SELECT species, isolate FROM samples WHERE id = ?", (row_id,)).fetchone()
        assert tuple(row) == ("Xanthomonas oryzae", "PXO99A")

    def test_replace_overwrites(self, schema: sqlite3.Connection) -> None:
        """Test that replace mode overwrites."""
        row_id = upsert(schema, "family", {"name": "TalAA"}, {"member_count": 2})
        upsert(schema, "family", {"name": "TalAA"}, {"member_count": 3}, mode="replace")

        assert schema.execute("SELECT member_count FROM family WHERE id = ?", (row_id,)).fetchone()[0] == 3

    def test_text_primary_key(self, schema: sqlite3.Connection) -> None:
        """Test that non-integer ids come back unchanged."""
        assert upsert(schema, "analysis_config", {"id": "default"}, {"linkage": "AVERAGE"}) == "default"
        assert upsert(schema, "analysis_config", {"id": "default"}, {"cut": 5.0}) == "default"

    def test_insert_row_reads_back_id(self, schema: sqlite3.Connection) -> None:
        """Test that an inserted row's id column is returned, not just its rowid."""
        assert insert_row(schema, "analysis_config", {"id": "alt", "linkage": "SINGLE"}) == "alt"
        row_id = insert_row(schema, "family", {"name": "TalAB"})

        assert schema.execute("SELECT name FROM family WHERE id = ?", (row_id,)).fetchone()[0] == "TalAB"

    def test_dmat_references_config(self, schema: sqlite3.Connection, document: TaleDocument) -> None:
        """Test that dmat rows point at the analysis_config key after a migration."""
        migrate(document, schema)

        config_ids = {row[0] for row in schema.execute("SELECT id FROM analysis_config")}
        dmat_ids = {row[0] for row in schema.execute("SELECT config_id FROM dmat")}
        order_ids = {row[0] for row in schema.execute("SELECT config_id FROM dmat_tale_order")}
        assert config_ids == {"default"}
        assert dmat_ids == config_ids
        assert order_ids == config_ids

    def test_unknown_mode(self, schema: sqlite3.Connection) -> None:
        """Test that an unknown update mode is rejected."""
        row_id = upsert(schema, "family", {"name": "TalAA"})

        with pytest.raises(ValueError):
            update_row(schema, "family", row_id, {"member_count": 1}, mode="merge")  # type: ignore[arg-type]
