"""Graph node, edge and provenance models with deterministic identity."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class NodeType(str, Enum):
    """Types of nodes in the metadata graph."""

    SOURCE = "source"
    TABLE = "table"
    COLUMN = "column"
    COLLECTION = "collection"
    FIELD = "field"


class EdgeType(str, Enum):
    """Types of edges in the metadata graph."""

    CONTAINS = "CONTAINS"  # source -> table/collection
    HAS_COLUMN = "HAS_COLUMN"  # table -> column
    HAS_FIELD = "HAS_FIELD"  # collection -> field
    FOREIGN_KEY = "FOREIGN_KEY"  # column -> column


class NodeStatus(str, Enum):
    """Lifecycle status of a node."""

    ACTIVE = "active"


class GraphNode(BaseModel):
    """A persisted graph node."""

    id: str = Field(..., description="Deterministic node identifier")
    type: NodeType = Field(..., description="Type of node")
    source_id: str = Field(..., description="Source whose id-space owns the node")
    props: dict[str, Any] = Field(default_factory=dict)
    owner_ids: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    sensitivity: Optional[str] = None
    status: NodeStatus = NodeStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GraphEdge(BaseModel):
    """A persisted, directed graph edge."""

    id: str = Field(..., description="Deterministic edge identifier")
    src_id: str
    dst_id: str
    type: EdgeType
    source_id: str
    props: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProvenanceRecord(BaseModel):
    """Append-only historical entry, e.g. the profile statistics of one crawl."""

    id: str = Field(..., description="Random identifier, never deduplicated")
    owner_type: str
    owner_id: str
    kind: str
    ref: Optional[str] = None
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ==================== Identity ====================


def source_node_id(source_id: str) -> str:
    return f"src_{source_id}"


def table_node_id(source_id: str, schema: Optional[str], name: str) -> str:
    return f"tbl_{source_id}_{schema or ''}_{name}"


def column_node_id(table_id: str, column_name: str) -> str:
    return f"col_{table_id}_{column_name}"


def collection_node_id(source_id: str, database: Optional[str], name: str) -> str:
    return f"coll_{source_id}_{database or ''}_{name}"


def normalize_field_path(path: str) -> str:
    """Replace path separators so a field path can be embedded in an id."""
    return path.replace(".", "_")


def field_node_id(collection_id: str, path: str) -> str:
    return f"fld_{collection_id}_{normalize_field_path(path)}"


def edge_id(src_id: str, dst_id: str, edge_type: EdgeType) -> str:
    """Deterministic edge id; the same triple always maps to the same row."""
    if edge_type == EdgeType.FOREIGN_KEY:
        return f"fk_{src_id}_{dst_id}"
    return f"edge_{edge_type.value.lower()}_{src_id}_{dst_id}"


def provenance_id(owner_id: str) -> str:
    return f"prov_{owner_id}_{uuid.uuid4()}"
