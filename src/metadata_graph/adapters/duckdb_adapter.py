"""DuckDB adapter for embedded analytical database files."""

import asyncio
import re
import threading
from typing import Any, Optional

import duckdb

from metadata_graph.adapters.base import RelationalAdapter, Row
from metadata_graph.adapters.dialects import DuckDbDialect
from metadata_graph.core import get_logger
from metadata_graph.models.source import DuckDbConnectionConfig, SourceKind

logger = get_logger(__name__)

_NAMED_PARAM = re.compile(r"(?<![:\w\\]):(\w+)(?!:)")


def to_duckdb_placeholders(statement: str) -> str:
    """Rewrite ``:name`` placeholders into DuckDB's ``$name`` form."""
    return _NAMED_PARAM.sub(r"$\1", statement)


class DuckDbAdapter(RelationalAdapter):
    """Read-only adapter over a DuckDB database file.

    DuckDB is synchronous; every statement runs on its own cursor in a worker
    thread so the event loop is never blocked.
    """

    kind = SourceKind.EMBEDDED_ANALYTICAL
    dialect = DuckDbDialect()

    def __init__(self, source_id: str, config: DuckDbConnectionConfig):
        super().__init__(source_id)
        self.config = config
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.Lock()

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        with self._lock:
            if self._connection is None:
                logger.debug(
                    "opening_database_file",
                    source_id=self.source_id,
                    file_path=self.config.file_path,
                    read_only=self.config.read_only,
                )
                self._connection = duckdb.connect(
                    database=self.config.file_path,
                    read_only=self.config.read_only,
                )
            return self._connection

    def _run(self, statement: str, params: dict[str, Any]) -> list[Row]:
        names = set(_NAMED_PARAM.findall(statement))
        bound = {key: value for key, value in params.items() if key in names}
        cursor = self._get_connection().cursor()
        try:
            if bound:
                cursor.execute(to_duckdb_placeholders(statement), bound)
            else:
                cursor.execute(statement)
            columns = [desc[0] for desc in cursor.description or []]
            return [dict(zip(columns, values)) for values in cursor.fetchall()]
        finally:
            cursor.close()

    async def _execute(self, statement: str, params: dict[str, Any]) -> list[Row]:
        return await asyncio.to_thread(self._run, statement, params)

    async def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.debug("database_file_closed", source_id=self.source_id)
