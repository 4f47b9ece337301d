"""Data models for the metadata graph."""

from metadata_graph.models.source import (
    CrawlOptions,
    DuckDbConnectionConfig,
    MongoConnectionConfig,
    MysqlConnectionConfig,
    PostgresConnectionConfig,
    Source,
    SourceKind,
    StoreFamily,
)
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
    Snapshot,
    Table,
    TableProfile,
)
from metadata_graph.models.crawl import (
    AvailableFeatures,
    ConnectivityResult,
    CrawlResult,
    CrawlWarning,
    WarningLevel,
)
from metadata_graph.models.graph import (
    EdgeType,
    GraphEdge,
    GraphNode,
    NodeStatus,
    NodeType,
    ProvenanceRecord,
)

__all__ = [
    # Sources
    "CrawlOptions",
    "DuckDbConnectionConfig",
    "MongoConnectionConfig",
    "MysqlConnectionConfig",
    "PostgresConnectionConfig",
    "Source",
    "SourceKind",
    "StoreFamily",
    # Snapshots
    "Collection",
    "CollectionProfile",
    "Column",
    "ColumnProfile",
    "DocumentField",
    "DocumentSnapshot",
    "FieldProfile",
    "ForeignKeyConstraint",
    "RelationalSnapshot",
    "Snapshot",
    "Table",
    "TableProfile",
    # Crawl envelope
    "AvailableFeatures",
    "ConnectivityResult",
    "CrawlResult",
    "CrawlWarning",
    "WarningLevel",
    # Graph
    "EdgeType",
    "GraphEdge",
    "GraphNode",
    "NodeStatus",
    "NodeType",
    "ProvenanceRecord",
]
