"""Relational layout of the persisted metadata graph."""

from typing import Any

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    UniqueConstraint,
)

from metadata_graph.models.graph import NodeType

metadata = MetaData()

nodes = Table(
    "nodes",
    metadata,
    Column("id", String(1024), primary_key=True),
    Column("source_id", String(255), nullable=False),
    Column("type", String(32), nullable=False),
    Column("props", JSON, nullable=False),
    Column("owner_ids", JSON, nullable=True),
    Column("tags", JSON, nullable=True),
    Column("sensitivity", String(64), nullable=True),
    Column("status", String(32), nullable=False, default="active"),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("ix_nodes_type", "type"),
    Index("ix_nodes_source_id", "source_id"),
)

edges = Table(
    "edges",
    metadata,
    Column("id", String(2048), primary_key=True),
    Column("source_id", String(255), nullable=False),
    Column("src_id", String(1024), nullable=False),
    Column("dst_id", String(1024), nullable=False),
    Column("type", String(32), nullable=False),
    Column("props", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("src_id", "dst_id", "type", name="uq_edges_src_dst_type"),
    Index("ix_edges_src_id", "src_id"),
    Index("ix_edges_dst_id", "dst_id"),
    Index("ix_edges_source_id", "source_id"),
)

provenance = Table(
    "provenance",
    metadata,
    Column("id", String(512), primary_key=True),
    Column("owner_type", String(32), nullable=False),
    Column("owner_id", String(1024), nullable=False),
    Column("kind", String(64), nullable=False),
    Column("ref", String(1024), nullable=True),
    Column("meta", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_provenance_owner_id", "owner_id"),
    Index("ix_provenance_kind", "kind"),
)


class GraphSchema:
    """Property contract of graph nodes.

    Props keys are camelCase. Each node type lists the props every node of
    that type must carry.
    """

    NODE_PROPERTIES: dict[NodeType, list[str]] = {
        NodeType.SOURCE: ["name", "kind"],
        NodeType.TABLE: ["name", "schema", "kind"],
        NodeType.COLUMN: ["name", "table", "type", "nullable"],
        NodeType.COLLECTION: ["name", "database"],
        NodeType.FIELD: ["path", "collection", "types", "nullable"],
    }

    @classmethod
    def validate_node_properties(
        cls, node_type: NodeType, properties: dict[str, Any]
    ) -> tuple[bool, list[str]]:
        """Validate that node properties match the schema.

        Args:
            node_type: Type of node to validate.
            properties: Properties to validate.

        Returns:
            Tuple of (is_valid, list of missing required properties).
        """
        missing = [prop for prop in cls.NODE_PROPERTIES[node_type] if prop not in properties]
        return len(missing) == 0, missing
