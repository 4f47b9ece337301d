"""PostgreSQL adapter (asyncpg driver)."""

from typing import Any

from metadata_graph.adapters.dialects import PostgresDialect
from metadata_graph.adapters.sql import SqlAlchemyAdapter, build_ssl_context
from metadata_graph.models.source import PostgresConnectionConfig, SourceKind


class PostgresAdapter(SqlAlchemyAdapter):
    """Read-only adapter for PostgreSQL."""

    kind = SourceKind.RELATIONAL_SQL
    drivername = "postgresql+asyncpg"
    dialect = PostgresDialect()

    def __init__(self, source_id: str, config: PostgresConnectionConfig):
        super().__init__(source_id, config)

    def connect_args(self) -> dict[str, Any]:
        args: dict[str, Any] = {
            "timeout": self.config.connect_timeout_seconds,
            # Server-side read-only sessions
            "server_settings": {
                "default_transaction_read_only": "on",
                "application_name": "metadata-graph",
            },
        }
        context = build_ssl_context(self.config.ssl)
        if context is not None:
            args["ssl"] = context
        return args
