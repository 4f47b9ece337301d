"""Graph materializer: persists crawl results as nodes, edges and provenance."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from metadata_graph.core import get_logger
from metadata_graph.core.errors import GraphStorageError, UnsupportedSourceError
from metadata_graph.models.crawl import CrawlResult
from metadata_graph.models.graph import (
    EdgeType,
    GraphEdge,
    GraphNode,
    NodeType,
    ProvenanceRecord,
    collection_node_id,
    column_node_id,
    edge_id,
    field_node_id,
    provenance_id,
    source_node_id,
    table_node_id,
)
from metadata_graph.models.snapshot import (
    ColumnProfile,
    DocumentSnapshot,
    FieldProfile,
    RelationalSnapshot,
)
from metadata_graph.models.source import Source
from metadata_graph.storage.graph_store import GraphStore

logger = get_logger(__name__)

PROFILE_STATS_KIND = "profile_stats"
CRAWL_WARNINGS_KIND = "crawl_warnings"


@dataclass
class GraphProjection:
    """Nodes and edges derived from one snapshot, before any write."""

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    skipped_edges: int = 0

    def add_edge(self, src_id: str, dst_id: str, edge_type: EdgeType, source_id: str, props=None) -> None:
        self.edges.append(
            GraphEdge(
                id=edge_id(src_id, dst_id, edge_type),
                src_id=src_id,
                dst_id=dst_id,
                type=edge_type,
                source_id=source_id,
                props=props,
            )
        )

    def deduplicated(self) -> "GraphProjection":
        """Keep the last node/edge per id, preserving first-seen order."""
        nodes = {node.id: node for node in self.nodes}
        edges = {edge.id: edge for edge in self.edges}
        return GraphProjection(
            nodes=list(nodes.values()),
            edges=list(edges.values()),
            skipped_edges=self.skipped_edges,
        )


@dataclass
class MaterializationSummary:
    """Counts of rows written for one crawl result."""

    source_id: str
    nodes: int = 0
    edges: int = 0
    provenance: int = 0
    skipped_edges: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "nodes": self.nodes,
            "edges": self.edges,
            "provenance": self.provenance,
            "skipped_edges": self.skipped_edges,
        }


def _null_percent(null_fraction: Optional[float]) -> Optional[float]:
    return round(null_fraction * 100, 2) if null_fraction is not None else None


def _column_profile_props(profile: Optional[ColumnProfile]) -> dict[str, Any]:
    if profile is None or not profile.has_statistics:
        return {}
    return {
        "nullFraction": profile.null_fraction,
        "nullPercent": _null_percent(profile.null_fraction),
        "distinctCount": profile.distinct_count,
        "distinctFraction": profile.distinct_fraction,
        "sampleCount": profile.sample_count,
        "min": profile.min,
        "max": profile.max,
    }


def _field_profile_props(profile: Optional[FieldProfile]) -> dict[str, Any]:
    if profile is None or profile.null_fraction is None:
        return {}
    return {
        "nullFraction": profile.null_fraction,
        "nullPercent": _null_percent(profile.null_fraction),
        "distinctCount": profile.distinct_count,
        "sampleCount": profile.sample_count,
    }


class GraphProjector(ABC):
    """Turns one snapshot kind into graph nodes and edges."""

    kind: ClassVar[str]

    @abstractmethod
    def project(self, source_id: str, snapshot) -> GraphProjection:
        """Project a snapshot; the source node itself is not included."""
        pass


class RelationalProjector(GraphProjector):
    """Tables, columns and foreign keys."""

    kind = "relational"

    def project(self, source_id: str, snapshot: RelationalSnapshot) -> GraphProjection:
        projection = GraphProjection()
        root = source_node_id(source_id)
        profiles = {
            (p.schema_name, p.name): {c.column: c for c in p.columns} for p in snapshot.profiles
        }

        for table in snapshot.tables:
            table_id = table_node_id(source_id, table.schema_name, table.name)
            projection.nodes.append(
                GraphNode(
                    id=table_id,
                    type=NodeType.TABLE,
                    source_id=source_id,
                    props={
                        "name": table.name,
                        "schema": table.schema_name,
                        "kind": table.kind,
                        "comment": table.comment,
                        "rowCount": table.row_count,
                        "columnCount": len(table.columns),
                    },
                )
            )
            projection.add_edge(root, table_id, EdgeType.CONTAINS, source_id)

            column_profiles = profiles.get((table.schema_name, table.name), {})
            for column in table.columns:
                column_id = column_node_id(table_id, column.name)
                props = {
                    "name": column.name,
                    "table": table.name,
                    "schema": table.schema_name,
                    "type": column.type,
                    "nullable": column.nullable,
                    "defaultValue": column.default_value,
                    "comment": column.comment,
                    "characterMaximumLength": column.character_maximum_length,
                    "numericPrecision": column.numeric_precision,
                    "numericScale": column.numeric_scale,
                }
                props.update(_column_profile_props(column_profiles.get(column.name)))
                projection.nodes.append(
                    GraphNode(id=column_id, type=NodeType.COLUMN, source_id=source_id, props=props)
                )
                projection.add_edge(table_id, column_id, EdgeType.HAS_COLUMN, source_id)

        column_ids = {node.id for node in projection.nodes if node.type == NodeType.COLUMN}
        for fk in snapshot.foreign_keys:
            src = column_node_id(table_node_id(source_id, fk.source_schema, fk.source_table), fk.source_column)
            dst = column_node_id(table_node_id(source_id, fk.target_schema, fk.target_table), fk.target_column)
            if src not in column_ids or dst not in column_ids:
                logger.info(
                    "foreign_key_endpoint_missing",
                    source_id=source_id,
                    constraint_name=fk.constraint_name,
                    src_id=src,
                    dst_id=dst,
                )
                projection.skipped_edges += 1
                continue
            projection.add_edge(
                src,
                dst,
                EdgeType.FOREIGN_KEY,
                source_id,
                props={"constraintName": fk.constraint_name},
            )

        return projection.deduplicated()


class DocumentProjector(GraphProjector):
    """Collections and inferred fields."""

    kind = "document"

    def project(self, source_id: str, snapshot: DocumentSnapshot) -> GraphProjection:
        projection = GraphProjection()
        root = source_node_id(source_id)
        profiles = {p.name: {f.path: f for f in p.fields} for p in snapshot.profiles}

        for collection in snapshot.collections:
            database = collection.database or snapshot.database
            collection_id = collection_node_id(source_id, database, collection.name)
            projection.nodes.append(
                GraphNode(
                    id=collection_id,
                    type=NodeType.COLLECTION,
                    source_id=source_id,
                    props={
                        "name": collection.name,
                        "database": database,
                        "documentCount": collection.document_count,
                        "sampleSize": collection.document_sample_size,
                        "fieldCount": len(collection.fields),
                    },
                )
            )
            projection.add_edge(root, collection_id, EdgeType.CONTAINS, source_id)

            field_profiles = profiles.get(collection.name, {})
            for doc_field in collection.fields:
                field_id = field_node_id(collection_id, doc_field.path)
                props = {
                    "path": doc_field.path,
                    "collection": collection.name,
                    "types": doc_field.types,
                    "nullable": doc_field.nullable,
                    "observedCount": doc_field.observed_count,
                    "isArray": doc_field.is_array,
                }
                props.update(_field_profile_props(field_profiles.get(doc_field.path)))
                projection.nodes.append(
                    GraphNode(id=field_id, type=NodeType.FIELD, source_id=source_id, props=props)
                )
                projection.add_edge(collection_id, field_id, EdgeType.HAS_FIELD, source_id)

        return projection.deduplicated()


class GraphMaterializer:
    """Writes a crawl result into a graph store in one transaction."""

    def __init__(
        self,
        store: GraphStore,
        projectors: Optional[list[GraphProjector]] = None,
        log=None,
    ):
        self.store = store
        projectors = projectors or [RelationalProjector(), DocumentProjector()]
        self._projectors = {p.kind: p for p in projectors}
        self._log = log or logger

    def project(self, source: Source, result: CrawlResult) -> GraphProjection:
        """Project a result's snapshot, source node first."""
        projector = self._projectors.get(result.data.kind)
        if projector is None:
            raise UnsupportedSourceError(
                f"No graph projector for {result.data.kind} snapshots",
                kind=result.data.kind,
            )
        projection = projector.project(source.id, result.data)
        source_node = GraphNode(
            id=source_node_id(source.id),
            type=NodeType.SOURCE,
            source_id=source.id,
            props={
                "name": source.name or source.id,
                "kind": source.kind.value,
                "vendor": source.kind.vendor,
                "lastCrawledAt": (result.finished_at or result.started_at).isoformat(),
                "features": result.available_features.model_dump(),
            },
        )
        projection.nodes.insert(0, source_node)
        return projection

    def _provenance(self, source: Source, result: CrawlResult) -> list[ProvenanceRecord]:
        ref = f"crawl:{result.started_at.isoformat()}"
        records = []
        if result.data.profiles:
            records.append(
                ProvenanceRecord(
                    id=provenance_id(source.id),
                    owner_type="source",
                    owner_id=source.id,
                    kind=PROFILE_STATS_KIND,
                    ref=ref,
                    meta={
                        "snapshotKind": result.data.kind,
                        "profiles": [p.model_dump(mode="json") for p in result.data.profiles],
                    },
                )
            )
        if result.warnings:
            records.append(
                ProvenanceRecord(
                    id=provenance_id(source.id),
                    owner_type="source",
                    owner_id=source.id,
                    kind=CRAWL_WARNINGS_KIND,
                    ref=ref,
                    meta={
                        "warnings": [w.model_dump(mode="json") for w in result.warnings],
                        "features": result.available_features.model_dump(),
                    },
                )
            )
        return records

    def materialize(self, source: Source, result: CrawlResult) -> Optional[MaterializationSummary]:
        """Persist a crawl result.

        Nodes and edges are upserted by deterministic id and provenance
        records are appended, all in one transaction. A result whose source
        could not be reached is not written.

        Args:
            source: The crawled source
            result: Its crawl result

        Returns:
            Counts of written rows, or None when nothing was written

        Raises:
            GraphStorageError: If the transaction failed; nothing is persisted.
        """
        if not result.connected:
            self._log.warning("materialize_skipped_disconnected", source_id=source.id)
            return None

        projection = self.project(source, result)
        records = self._provenance(source, result)

        try:
            with self.store.transaction() as writer:
                for node in projection.nodes:
                    writer.upsert_node(node)
                for edge in projection.edges:
                    writer.upsert_edge(edge)
                for record in records:
                    writer.append_provenance(record)
        except GraphStorageError as e:
            e.source_id = source.id
            e.details["source_id"] = source.id
            self._log.error("materialize_failed", source_id=source.id, error=str(e))
            raise

        summary = MaterializationSummary(
            source_id=source.id,
            nodes=len(projection.nodes),
            edges=len(projection.edges),
            provenance=len(records),
            skipped_edges=projection.skipped_edges,
        )
        self._log.info("graph_materialized", **summary.to_dict())
        return summary
