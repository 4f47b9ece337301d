"""Store adapters and the factory that builds them from a source."""

from pydantic import BaseModel, ValidationError

from metadata_graph.adapters.base import (
    DocumentAdapter,
    RelationalAdapter,
    SourceAdapter,
    ensure_read_only,
    ensure_read_only_pipeline,
)
from metadata_graph.adapters.dialects import (
    DuckDbDialect,
    MysqlDialect,
    PostgresDialect,
    RowCountStrategy,
    SqlDialect,
)
from metadata_graph.adapters.duckdb_adapter import DuckDbAdapter
from metadata_graph.adapters.mongo import MongoAdapter
from metadata_graph.adapters.mysql import MysqlAdapter
from metadata_graph.adapters.postgres import PostgresAdapter
from metadata_graph.core import get_logger
from metadata_graph.core.errors import ConfigurationError, UnsupportedSourceError
from metadata_graph.models.source import (
    DuckDbConnectionConfig,
    MongoConnectionConfig,
    MysqlConnectionConfig,
    PostgresConnectionConfig,
    Source,
    SourceKind,
)

logger = get_logger(__name__)

ADAPTER_REGISTRY: dict[SourceKind, tuple[type[SourceAdapter], type[BaseModel]]] = {
    SourceKind.RELATIONAL_SQL: (PostgresAdapter, PostgresConnectionConfig),
    SourceKind.RELATIONAL_SQL_VARIANT: (MysqlAdapter, MysqlConnectionConfig),
    SourceKind.DOCUMENT: (MongoAdapter, MongoConnectionConfig),
    SourceKind.EMBEDDED_ANALYTICAL: (DuckDbAdapter, DuckDbConnectionConfig),
}


def create_adapter(source: Source) -> SourceAdapter:
    """Build the adapter for a source; no connection is opened yet.

    Args:
        source: Registered source

    Returns:
        Adapter bound to the source's validated connection settings

    Raises:
        UnsupportedSourceError: If no adapter exists for the source kind
        ConfigurationError: If the connection settings are invalid
    """
    entry = ADAPTER_REGISTRY.get(source.kind)
    if entry is None:
        raise UnsupportedSourceError(
            f"No adapter for source kind {source.kind}",
            kind=str(source.kind),
        )

    adapter_cls, config_cls = entry
    try:
        config = config_cls.model_validate(source.connection)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise ConfigurationError(
            f"Invalid connection settings for source {source.id}: {first['msg']}",
            source_id=source.id,
            field=field,
        ) from e

    logger.debug("adapter_created", source_id=source.id, kind=source.kind.value)
    return adapter_cls(source.id, config)


__all__ = [
    # Contract
    "SourceAdapter",
    "RelationalAdapter",
    "DocumentAdapter",
    "ensure_read_only",
    "ensure_read_only_pipeline",
    # Dialects
    "SqlDialect",
    "PostgresDialect",
    "MysqlDialect",
    "DuckDbDialect",
    "RowCountStrategy",
    # Bindings
    "PostgresAdapter",
    "MysqlAdapter",
    "MongoAdapter",
    "DuckDbAdapter",
    # Factory
    "ADAPTER_REGISTRY",
    "create_adapter",
]
