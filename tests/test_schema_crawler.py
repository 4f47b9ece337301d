"""Tests for the relational and document schema crawler."""

from datetime import datetime

import pytest
from bson import ObjectId

from conftest import FakeDocumentAdapter, FakeRelationalAdapter, accounts_catalog

from metadata_graph.adapters.dialects import MysqlDialect
from metadata_graph.core.errors import ReadOnlyViolationError
from metadata_graph.crawling.degradation import WarningCollector
from metadata_graph.crawling.documents import iter_paths, value_signature, value_type_name
from metadata_graph.crawling.schema import (
    ColumnRow,
    TableRow,
    crawl_document_schema,
    crawl_relational_schema,
    infer_fields,
)
from metadata_graph.models.crawl import WarningLevel


class TestCatalogRows:
    """Tests for catalog row parsing."""

    def test_view_kind(self):
        """Test that view types map to VIEW."""
        assert TableRow(table_name="v", table_type="VIEW").kind == "VIEW"
        assert TableRow(table_name="v", table_type="SYSTEM VIEW").kind == "VIEW"
        assert TableRow(table_name="t", table_type="BASE TABLE").kind == "BASE TABLE"

    @pytest.mark.parametrize(
        "value,expected",
        [("YES", True), ("NO", False), ("yes", True), (True, True), (False, False)],
    )
    def test_nullable(self, value, expected):
        """Test nullability flags from different engines."""
        row = ColumnRow(table_name="t", column_name="c", data_type="int", is_nullable=value)
        assert row.nullable is expected

    def test_default_stringified(self):
        """Test that non-string defaults become strings."""
        row = ColumnRow(
            table_name="t", column_name="c", data_type="int", is_nullable="NO", column_default=0
        )
        assert row.column_default == "0"


class TestRelationalSchema:
    """Tests for crawl_relational_schema."""

    @pytest.mark.asyncio
    async def test_accounts_table(self):
        """Test tables joined with their ordered columns."""
        adapter = FakeRelationalAdapter(accounts_catalog())
        collector = WarningCollector(adapter.source_id)

        tables = await crawl_relational_schema(adapter, collector)

        assert len(tables) == 1
        table = tables[0]
        assert table.schema_name == "public"
        assert table.name == "accounts"
        assert table.kind == "BASE TABLE"
        assert [c.name for c in table.columns] == ["id", "name"]
        assert table.columns[0].nullable is False
        assert table.columns[1].nullable is True
        assert table.columns[1].character_maximum_length == 255
        assert len(collector) == 0

    @pytest.mark.asyncio
    async def test_orphan_columns_skipped(self):
        """Test that columns of unlisted tables are dropped."""
        catalog = accounts_catalog()
        catalog.columns.append(
            {
                "table_schema": "public",
                "table_name": "hidden",
                "column_name": "secret",
                "data_type": "text",
                "is_nullable": "YES",
            }
        )
        adapter = FakeRelationalAdapter(catalog)

        tables = await crawl_relational_schema(adapter, WarningCollector(adapter.source_id))

        assert [t.name for t in tables] == ["accounts"]
        assert len(tables[0].columns) == 2

    @pytest.mark.asyncio
    async def test_malformed_rows_skipped(self):
        """Test that rows missing required fields do not abort the crawl."""
        catalog = accounts_catalog()
        catalog.tables.append({"table_schema": "public"})
        catalog.columns.append({"table_schema": "public", "table_name": "accounts"})
        adapter = FakeRelationalAdapter(catalog)

        tables = await crawl_relational_schema(adapter, WarningCollector(adapter.source_id))

        assert len(tables) == 1
        assert len(tables[0].columns) == 2

    @pytest.mark.asyncio
    async def test_catalog_failure(self):
        """Test that an unreadable catalog yields an error warning and no tables."""
        catalog = accounts_catalog(tables=RuntimeError("permission denied for schema information_schema"))
        adapter = FakeRelationalAdapter(catalog)
        collector = WarningCollector(adapter.source_id)

        tables = await crawl_relational_schema(adapter, collector)

        assert tables == []
        warning = collector.warnings[0]
        assert warning.level == WarningLevel.ERROR
        assert warning.feature == "schema"
        assert warning.suggestion is not None
        assert collector.permission_denied is True

    @pytest.mark.asyncio
    async def test_read_only_violation_propagates(self):
        """Test that a guard violation is never downgraded to a warning."""
        catalog = accounts_catalog(tables=ReadOnlyViolationError("nope"))
        adapter = FakeRelationalAdapter(catalog)
        collector = WarningCollector(adapter.source_id)

        with pytest.raises(ReadOnlyViolationError):
            await crawl_relational_schema(adapter, collector)
        assert len(collector) == 0

    @pytest.mark.asyncio
    async def test_schemaless_tables(self):
        """Test that a missing schema still joins columns."""
        catalog = accounts_catalog(
            dialect=MysqlDialect(),
            tables=[{"table_schema": None, "table_name": "t", "table_type": "BASE TABLE"}],
            columns=[
                {
                    "table_schema": None,
                    "table_name": "t",
                    "column_name": "c",
                    "data_type": "int",
                    "is_nullable": "NO",
                }
            ],
        )
        adapter = FakeRelationalAdapter(catalog, dialect=MysqlDialect())

        tables = await crawl_relational_schema(adapter, WarningCollector(adapter.source_id))

        assert tables[0].schema_name is None
        assert tables[0].columns[0].name == "c"


class TestDocumentTraversal:
    """Tests for document path helpers."""

    def test_paths(self):
        """Test dotted and array paths."""
        paths = [path for path, _ in iter_paths({"a": {"b": 1, "c": [1, 2]}})]
        assert paths == ["a", "a.b", "a.c", "a.c[]", "a.c[]"]

    def test_type_names(self):
        """Test type naming including BSON types."""
        assert value_type_name(None) == "null"
        assert value_type_name(True) == "boolean"
        assert value_type_name(3) == "number"
        assert value_type_name(2.5) == "number"
        assert value_type_name("x") == "string"
        assert value_type_name(datetime(2024, 1, 1)) == "date"
        assert value_type_name({}) == "object"
        assert value_type_name([]) == "array"
        assert value_type_name(ObjectId()) == "objectId"

    def test_signature_ignores_key_order(self):
        """Test that structurally equal values share a signature."""
        assert value_signature({"a": 1, "b": 2}) == value_signature({"b": 2, "a": 1})
        assert value_signature(1) != value_signature("1")


class TestInferFields:
    """Tests for infer_fields."""

    def test_nested_paths(self):
        """Test that nested and array paths are all reported."""
        fields = infer_fields([{"a": {"b": 1, "c": [1, 2]}}])
        assert {f.path for f in fields} == {"a", "a.b", "a.c", "a.c[]"}
        by_path = {f.path: f for f in fields}
        assert by_path["a"].types == ["object"]
        assert by_path["a.c"].is_array is True
        assert by_path["a.c[]"].types == ["number"]

    def test_missing_and_null_are_nullable(self):
        """Test that missing or null values both make a path nullable."""
        fields = infer_fields([{"name": "Alice", "age": 30}, {"name": None}])
        by_path = {f.path: f for f in fields}
        assert by_path["name"].nullable is True
        assert by_path["name"].types == ["null", "string"]
        assert by_path["age"].nullable is True
        assert by_path["age"].observed_count == 1

    def test_always_present_is_not_nullable(self):
        """Test that a path present and non-null everywhere is not nullable."""
        fields = infer_fields([{"name": "Alice"}, {"name": "Bob"}])
        assert fields[0].nullable is False
        assert fields[0].observed_count == 2

    def test_sorted(self):
        """Test that fields are sorted by path."""
        fields = infer_fields([{"z": 1, "a": 1, "m": 1}])
        assert [f.path for f in fields] == ["a", "m", "z"]

    def test_empty_sample(self):
        """Test that an empty sample yields no fields."""
        assert infer_fields([]) == []


class TestDocumentSchema:
    """Tests for crawl_document_schema."""

    @pytest.mark.asyncio
    async def test_collections(self):
        """Test collections with inferred fields."""
        adapter = FakeDocumentAdapter(
            {"users": [{"name": "Alice"}, {"name": "Bob"}], "empty": []}
        )
        collector = WarningCollector(adapter.source_id)

        collections = await crawl_document_schema(adapter, collector, sample_size=10)

        assert [c.name for c in collections] == ["empty", "users"]
        users = collections[1]
        assert users.database == "appdb"
        assert users.document_sample_size == 2
        assert [f.path for f in users.fields] == ["name"]
        assert collections[0].fields == []
        assert adapter.pipelines[0][1] == [{"$sample": {"size": 10}}]

    @pytest.mark.asyncio
    async def test_sample_failure_isolated(self):
        """Test that one unreadable collection does not hide the others."""
        adapter = FakeDocumentAdapter(
            {"users": [{"name": "Alice"}], "audit": [{"x": 1}]},
            failures={("audit", "$sample"): RuntimeError("not authorized on appdb")},
        )
        collector = WarningCollector(adapter.source_id)

        collections = await crawl_document_schema(adapter, collector, sample_size=10)

        assert [c.name for c in collections] == ["audit", "users"]
        assert collections[0].fields == []
        assert collections[1].fields[0].path == "name"
        assert collector.warnings[0].level == WarningLevel.WARNING
        assert collector.permission_denied is True

    @pytest.mark.asyncio
    async def test_listing_failure(self):
        """Test that an unlistable database yields an error warning."""
        adapter = FakeDocumentAdapter({}, list_error=RuntimeError("connection reset"))
        collector = WarningCollector(adapter.source_id)

        assert await crawl_document_schema(adapter, collector, sample_size=10) == []
        assert collector.warnings[0].level == WarningLevel.ERROR
