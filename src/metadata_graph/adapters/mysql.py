"""MySQL adapter (aiomysql driver)."""

from typing import Any

from metadata_graph.adapters.dialects import MysqlDialect
from metadata_graph.adapters.sql import SqlAlchemyAdapter, build_ssl_context
from metadata_graph.models.source import MysqlConnectionConfig, SourceKind


class MysqlAdapter(SqlAlchemyAdapter):
    """Read-only adapter for MySQL."""

    kind = SourceKind.RELATIONAL_SQL_VARIANT
    drivername = "mysql+aiomysql"
    dialect = MysqlDialect()

    def __init__(self, source_id: str, config: MysqlConnectionConfig):
        super().__init__(source_id, config)

    def connect_args(self) -> dict[str, Any]:
        args: dict[str, Any] = {
            "connect_timeout": self.config.connect_timeout_seconds,
            "init_command": "SET SESSION TRANSACTION READ ONLY",
        }
        context = build_ssl_context(self.config.ssl)
        if context is not None:
            args["ssl"] = context
        return args
