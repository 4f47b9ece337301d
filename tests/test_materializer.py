"""Tests for projecting crawl results into the graph."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from metadata_graph.core.errors import GraphStorageError
from metadata_graph.models.crawl import (
    AvailableFeatures,
    CrawlResult,
    CrawlWarning,
    WarningLevel,
)
from metadata_graph.models.graph import EdgeType, NodeType
from metadata_graph.models.snapshot import (
    Collection,
    CollectionProfile,
    Column,
    ColumnProfile,
    DocumentField,
    DocumentSnapshot,
    FieldProfile,
    ForeignKeyConstraint,
    RelationalSnapshot,
    Table,
    TableProfile,
)
from metadata_graph.models.source import Source, SourceKind
from metadata_graph.storage.graph_store import GraphWriter
from metadata_graph.storage.materializer import (
    CRAWL_WARNINGS_KIND,
    PROFILE_STATS_KIND,
    GraphMaterializer,
    RelationalProjector,
)

PG_SOURCE = Source(id="s1", kind=SourceKind.RELATIONAL_SQL, name="Accounts DB")
MONGO_SOURCE = Source(id="m1", kind=SourceKind.DOCUMENT)

TABLE_ID = "tbl_s1_public_accounts"


def accounts_result(**overrides) -> CrawlResult:
    snapshot = RelationalSnapshot(
        tables=[
            Table(
                schema_name="public",
                name="accounts",
                row_count=5,
                columns=[
                    Column(name="id", type="integer", nullable=False),
                    Column(name="name", type="character varying", nullable=True),
                ],
            )
        ],
        profiles=[
            TableProfile(
                schema_name="public",
                name="accounts",
                sampled_rows=5,
                columns=[
                    ColumnProfile(column="id", null_fraction=0.0, distinct_count=5, sample_count=5, min=1, max=5),
                    ColumnProfile(column="name", null_fraction=0.2, distinct_count=4, sample_count=5),
                ],
            )
        ],
    )
    values = dict(
        source_id="s1",
        kind=SourceKind.RELATIONAL_SQL,
        data=snapshot,
        available_features=AvailableFeatures(has_row_counts=True, has_statistics=True),
        finished_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return CrawlResult(**values)


def orders_result() -> CrawlResult:
    """Two tables joined by orders.customer_id -> customers.id."""
    snapshot = RelationalSnapshot(
        tables=[
            Table(schema_name="public", name="customers", columns=[Column(name="id", type="int", nullable=False)]),
            Table(
                schema_name="public",
                name="orders",
                columns=[
                    Column(name="id", type="int", nullable=False),
                    Column(name="customer_id", type="int", nullable=True),
                ],
            ),
        ],
        foreign_keys=[
            ForeignKeyConstraint(
                constraint_name="orders_customer_fk",
                source_schema="public",
                source_table="orders",
                source_column="customer_id",
                target_schema="public",
                target_table="customers",
                target_column="id",
            ),
            ForeignKeyConstraint(
                constraint_name="orders_region_fk",
                source_schema="public",
                source_table="orders",
                source_column="region_id",
                target_schema="ref",
                target_table="regions",
                target_column="id",
            ),
        ],
    )
    return CrawlResult(source_id="s1", kind=SourceKind.RELATIONAL_SQL, data=snapshot)


class TestRelationalProjection:
    """Tests for RelationalProjector."""

    def test_accounts(self):
        projection = RelationalProjector().project("s1", accounts_result().data)

        assert [n.id for n in projection.nodes] == [
            TABLE_ID,
            f"col_{TABLE_ID}_id",
            f"col_{TABLE_ID}_name",
        ]
        table = projection.nodes[0]
        assert table.props["rowCount"] == 5
        assert table.props["columnCount"] == 2
        id_column = projection.nodes[1]
        assert id_column.props["nullable"] is False
        assert id_column.props["nullFraction"] == 0.0
        assert id_column.props["min"] == 1
        name_column = projection.nodes[2]
        assert name_column.props["nullPercent"] == 20.0
        assert [e.type for e in projection.edges] == [
            EdgeType.CONTAINS,
            EdgeType.HAS_COLUMN,
            EdgeType.HAS_COLUMN,
        ]

    def test_unprofiled_columns_have_no_statistics(self):
        result = accounts_result()
        result.data.profiles = []

        projection = RelationalProjector().project("s1", result.data)

        assert "nullFraction" not in projection.nodes[1].props

    def test_foreign_keys(self):
        """Test that an edge is drawn only when both endpoints exist."""
        projection = RelationalProjector().project("s1", orders_result().data)

        fks = [e for e in projection.edges if e.type == EdgeType.FOREIGN_KEY]
        assert len(fks) == 1
        assert fks[0].id == "fk_col_tbl_s1_public_orders_customer_id_col_tbl_s1_public_customers_id"
        assert fks[0].props == {"constraintName": "orders_customer_fk"}
        assert projection.skipped_edges == 1

    def test_duplicate_ids_collapse(self):
        """Test that a repeated table yields one node per id."""
        result = accounts_result()
        result.data.tables.append(result.data.tables[0].model_copy())

        projection = RelationalProjector().project("s1", result.data)

        ids = [n.id for n in projection.nodes]
        assert len(ids) == len(set(ids)) == 3
        assert len(projection.edges) == 3


class TestDocumentProjection:
    """Tests for DocumentProjector through the materializer."""

    def test_collections_and_fields(self, graph_store):
        snapshot = DocumentSnapshot(
            database="app",
            collections=[
                Collection(
                    database="app",
                    name="users",
                    document_sample_size=2,
                    document_count=2,
                    fields=[
                        DocumentField(path="address.city", types=["string"], observed_count=2),
                        DocumentField(path="tags", types=["array"], nullable=True, observed_count=1),
                    ],
                )
            ],
            profiles=[
                CollectionProfile(
                    name="users",
                    sampled_documents=2,
                    fields=[FieldProfile(path="address.city", null_fraction=0.0, distinct_count=2, sample_count=2)],
                )
            ],
        )
        result = CrawlResult(source_id="m1", kind=SourceKind.DOCUMENT, data=snapshot)

        summary = GraphMaterializer(graph_store).materialize(MONGO_SOURCE, result)

        assert summary.nodes == 4
        collection = graph_store.get_node("coll_m1_app_users")
        assert collection.props["documentCount"] == 2
        assert collection.props["fieldCount"] == 2
        city = graph_store.get_node("fld_coll_m1_app_users_address_city")
        assert city.props["path"] == "address.city"
        assert city.props["distinctCount"] == 2
        tags = graph_store.get_node("fld_coll_m1_app_users_tags")
        assert tags.props["isArray"] is True
        assert tags.props["nullable"] is True
        assert len(graph_store.list_edges(edge_type=EdgeType.HAS_FIELD)) == 2


class TestGraphMaterializer:
    """Tests for GraphMaterializer."""

    def test_accounts(self, graph_store):
        summary = GraphMaterializer(graph_store).materialize(PG_SOURCE, accounts_result())

        assert summary.to_dict() == {
            "source_id": "s1",
            "nodes": 4,
            "edges": 3,
            "provenance": 1,
            "skipped_edges": 0,
        }
        source = graph_store.get_node("src_s1")
        assert source.type == NodeType.SOURCE
        assert source.props["name"] == "Accounts DB"
        assert source.props["vendor"] == "postgres"
        assert source.props["features"]["has_row_counts"] is True
        assert source.props["lastCrawledAt"].startswith("2024-05-01")
        assert len(graph_store.list_nodes(node_type=NodeType.COLUMN)) == 2
        assert graph_store.get_node(f"col_{TABLE_ID}_id").props["nullable"] is False
        assert len(graph_store.list_edges(edge_type=EdgeType.HAS_COLUMN)) == 2

        records = graph_store.list_provenance(owner_id="s1")
        assert [r.kind for r in records] == [PROFILE_STATS_KIND]
        assert records[0].meta["profiles"][0]["columns"][1]["null_fraction"] == 0.2

    def test_recrawl_is_idempotent(self, graph_store):
        """Test that crawling twice updates in place and appends provenance."""
        materializer = GraphMaterializer(graph_store)
        materializer.materialize(PG_SOURCE, accounts_result())
        created = graph_store.get_node(TABLE_ID).created_at

        materializer.materialize(PG_SOURCE, accounts_result())

        assert graph_store.count_nodes() == 4
        assert graph_store.count_edges() == 3
        assert graph_store.get_node(TABLE_ID).created_at == created
        assert len(graph_store.list_provenance(kind=PROFILE_STATS_KIND)) == 2

    def test_warnings_recorded(self, graph_store):
        result = accounts_result(
            warnings=[CrawlWarning(level=WarningLevel.INFO, feature="foreign_keys", message="unsupported")]
        )

        summary = GraphMaterializer(graph_store).materialize(PG_SOURCE, result)

        assert summary.provenance == 2
        warnings = graph_store.list_provenance(kind=CRAWL_WARNINGS_KIND)
        assert warnings[0].meta["warnings"][0]["level"] == "info"

    def test_skipped_foreign_key(self, graph_store):
        summary = GraphMaterializer(graph_store).materialize(PG_SOURCE, orders_result())

        assert summary.skipped_edges == 1
        assert len(graph_store.list_edges(edge_type=EdgeType.FOREIGN_KEY)) == 1

    def test_disconnected_not_written(self, graph_store):
        result = accounts_result(connected=False, data=RelationalSnapshot())

        assert GraphMaterializer(graph_store).materialize(PG_SOURCE, result) is None
        assert graph_store.count_nodes() == 0

    def test_atomic_failure(self, graph_store):
        """Test that a failed write leaves the prior graph untouched."""
        materializer = GraphMaterializer(graph_store)
        materializer.materialize(PG_SOURCE, accounts_result())
        before = graph_store.get_node(TABLE_ID)

        changed = accounts_result()
        changed.data.tables[0].row_count = 99
        error = OperationalError("INSERT INTO edges", {}, Exception("database is locked"))
        with patch.object(GraphWriter, "upsert_edge", side_effect=error):
            with pytest.raises(GraphStorageError) as exc_info:
                materializer.materialize(PG_SOURCE, changed)

        assert exc_info.value.source_id == "s1"
        assert graph_store.get_node(TABLE_ID).props["rowCount"] == before.props["rowCount"] == 5
        assert len(graph_store.list_provenance()) == 1
