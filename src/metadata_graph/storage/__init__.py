"""Persisted metadata graph: tables, store and materializer."""

from metadata_graph.storage.graph_store import (
    DATABASE_URL_ENV,
    GraphStore,
    GraphStoreConfig,
    GraphWriter,
)
from metadata_graph.storage.materializer import (
    DocumentProjector,
    GraphMaterializer,
    GraphProjection,
    GraphProjector,
    MaterializationSummary,
    RelationalProjector,
)
from metadata_graph.storage.schema import GraphSchema, edges, metadata, nodes, provenance

__all__ = [
    # Store
    "DATABASE_URL_ENV",
    "GraphStore",
    "GraphStoreConfig",
    "GraphWriter",
    # Tables
    "GraphSchema",
    "metadata",
    "nodes",
    "edges",
    "provenance",
    # Materialization
    "GraphMaterializer",
    "GraphProjection",
    "GraphProjector",
    "RelationalProjector",
    "DocumentProjector",
    "MaterializationSummary",
]
