"""SQLAlchemy-backed store for the metadata graph."""

import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional

from sqlalchemy import Engine, create_engine, func, make_url, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from metadata_graph.core import get_logger
from metadata_graph.core.errors import GraphStorageError
from metadata_graph.models.graph import EdgeType, GraphEdge, GraphNode, NodeType, ProvenanceRecord
from metadata_graph.storage.schema import GraphSchema, edges, metadata, nodes, provenance

logger = get_logger(__name__)

DATABASE_URL_ENV = "METADATA_GRAPH_DATABASE_URL"
DEFAULT_DATABASE_URL = "sqlite:///metadata_graph.db"

_UPSERT_INSERTS: dict[str, Callable[..., Any]] = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


@dataclass
class GraphStoreConfig:
    """Configuration for the graph database connection."""

    database_url: str = field(
        default_factory=lambda: os.environ.get(DATABASE_URL_ENV, DEFAULT_DATABASE_URL)
    )
    echo: bool = False


class GraphWriter:
    """Writes graph rows on one connection inside an open transaction."""

    def __init__(self, connection: Connection):
        self._conn = connection
        dialect = connection.dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise GraphStorageError(
                f"Graph store does not support the {dialect} dialect",
                operation="upsert",
            )
        self._insert = insert

    def upsert_node(self, node: GraphNode) -> None:
        """Insert a node or replace its crawled state.

        ``created_at`` and curated fields (owners, tags, sensitivity) of an
        existing node are kept.
        """
        valid, missing = GraphSchema.validate_node_properties(node.type, node.props)
        if not valid:
            raise GraphStorageError(
                f"Node {node.id} is missing properties {missing}",
                operation="upsert_node",
                source_id=node.source_id,
            )

        now = datetime.now(timezone.utc)
        stmt = self._insert(nodes).values(
            id=node.id,
            source_id=node.source_id,
            type=node.type.value,
            props=node.props,
            owner_ids=node.owner_ids,
            tags=node.tags,
            sensitivity=node.sensitivity,
            status=node.status.value,
            created_at=node.created_at or now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[nodes.c.id],
            set_={
                "source_id": stmt.excluded.source_id,
                "type": stmt.excluded.type,
                "props": stmt.excluded.props,
                "status": stmt.excluded.status,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self._conn.execute(stmt)

    def upsert_edge(self, edge: GraphEdge) -> None:
        """Insert an edge or replace its props; ``created_at`` is kept."""
        now = datetime.now(timezone.utc)
        stmt = self._insert(edges).values(
            id=edge.id,
            source_id=edge.source_id,
            src_id=edge.src_id,
            dst_id=edge.dst_id,
            type=edge.type.value,
            props=edge.props,
            created_at=edge.created_at or now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[edges.c.id],
            set_={
                "source_id": stmt.excluded.source_id,
                "props": stmt.excluded.props,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self._conn.execute(stmt)

    def append_provenance(self, record: ProvenanceRecord) -> None:
        """Append a provenance record; records are never deduplicated."""
        self._conn.execute(
            provenance.insert().values(
                id=record.id,
                owner_type=record.owner_type,
                owner_id=record.owner_id,
                kind=record.kind,
                ref=record.ref,
                meta=record.meta,
                created_at=record.created_at,
            )
        )


class GraphStore:
    """Persisted node/edge/provenance store.

    The store is constructed explicitly and passed to its users; every write
    goes through ``transaction()`` so a write-set commits or rolls back as a
    whole.
    """

    def __init__(self, engine: Engine):
        self._engine = engine

    @classmethod
    def from_config(cls, config: Optional[GraphStoreConfig] = None) -> "GraphStore":
        config = config or GraphStoreConfig()
        url = make_url(config.database_url)
        options: dict[str, Any] = {}
        if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
            # Each in-memory connection is its own database; share one across threads.
            options = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
        engine = create_engine(url, echo=config.echo, **options)
        logger.debug("graph_store_created", dialect=engine.dialect.name)
        return cls(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def initialize_schema(self) -> None:
        """Create the graph tables and indexes if they do not exist."""
        try:
            metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise GraphStorageError(
                f"Failed to initialize graph schema: {e}",
                operation="initialize_schema",
            ) from e

    @contextmanager
    def transaction(self) -> Iterator[GraphWriter]:
        """Open a transaction and yield a writer bound to it.

        The transaction commits when the block exits normally and rolls back
        on any exception.

        Raises:
            GraphStorageError: If the database rejected a write or the commit.
        """
        try:
            with self._engine.begin() as conn:
                yield GraphWriter(conn)
        except SQLAlchemyError as e:
            logger.error("graph_transaction_failed", error=str(e))
            raise GraphStorageError(
                f"Graph transaction failed: {e}",
                operation="transaction",
            ) from e

    def dispose(self) -> None:
        self._engine.dispose()

    # ==================== Reads ====================

    def _fetch(self, stmt) -> list[dict[str, Any]]:
        try:
            with self._engine.connect() as conn:
                return [dict(row._mapping) for row in conn.execute(stmt)]
        except SQLAlchemyError as e:
            raise GraphStorageError(f"Graph read failed: {e}", operation="read") from e

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        rows = self._fetch(select(nodes).where(nodes.c.id == node_id))
        return GraphNode.model_validate(rows[0]) if rows else None

    def list_nodes(
        self,
        source_id: Optional[str] = None,
        node_type: Optional[NodeType] = None,
    ) -> list[GraphNode]:
        """List nodes ordered by id, optionally filtered by source and type."""
        stmt = select(nodes).order_by(nodes.c.id)
        if source_id:
            stmt = stmt.where(nodes.c.source_id == source_id)
        if node_type:
            stmt = stmt.where(nodes.c.type == node_type.value)
        return [GraphNode.model_validate(row) for row in self._fetch(stmt)]

    def list_edges(
        self,
        source_id: Optional[str] = None,
        edge_type: Optional[EdgeType] = None,
    ) -> list[GraphEdge]:
        """List edges ordered by id, optionally filtered by source and type."""
        stmt = select(edges).order_by(edges.c.id)
        if source_id:
            stmt = stmt.where(edges.c.source_id == source_id)
        if edge_type:
            stmt = stmt.where(edges.c.type == edge_type.value)
        return [GraphEdge.model_validate(row) for row in self._fetch(stmt)]

    def list_provenance(
        self,
        owner_id: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> list[ProvenanceRecord]:
        """List provenance records oldest first."""
        stmt = select(provenance).order_by(provenance.c.created_at, provenance.c.id)
        if owner_id:
            stmt = stmt.where(provenance.c.owner_id == owner_id)
        if kind:
            stmt = stmt.where(provenance.c.kind == kind)
        return [ProvenanceRecord.model_validate(row) for row in self._fetch(stmt)]

    def count_nodes(self, source_id: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(nodes)
        if source_id:
            stmt = stmt.where(nodes.c.source_id == source_id)
        return self._scalar(stmt)

    def count_edges(self, source_id: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(edges)
        if source_id:
            stmt = stmt.where(edges.c.source_id == source_id)
        return self._scalar(stmt)

    def _scalar(self, stmt) -> int:
        try:
            with self._engine.connect() as conn:
                return int(conn.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            raise GraphStorageError(f"Graph read failed: {e}", operation="read") from e
