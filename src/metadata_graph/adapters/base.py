"""Source adapter contract shared by every store binding.

Relational adapters expose ``query``; document adapters expose
``list_collections`` and ``aggregate``. All adapters connect lazily on first
use, keep one connection/pool for their lifetime and release it in ``close``.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

from metadata_graph.adapters.dialects import SqlDialect
from metadata_graph.core import get_logger
from metadata_graph.core.errors import ReadOnlyViolationError
from metadata_graph.models.source import SourceKind

logger = get_logger(__name__)

Row = dict[str, Any]

_TOKENS = re.compile(
    r"(?P<literal>'(?:[^']|'')*')"
    r'|(?P<identifier>"(?:[^"]|"")*"|`(?:[^`]|``)*`)'
    r"|(?P<comment>--[^\n]*|/\*.*?\*/)",
    re.DOTALL,
)
_PLACEHOLDERS = {"literal": "''", "identifier": '""', "comment": " "}

_READ_ONLY_PREFIX = re.compile(
    r"^\s*(WITH\s+[\s\S]+?\)\s*)?\s*(SELECT|EXPLAIN|SHOW|DESCRIBE|DESC)\b",
    re.IGNORECASE,
)
_WRITE_KEYWORDS = re.compile(
    r"\b(INSERT|UPDATE|DELETE|MERGE|UPSERT|CREATE|DROP|ALTER|TRUNCATE|GRANT|REVOKE"
    r"|COPY|CALL|EXECUTE|ATTACH|DETACH|PRAGMA|VACUUM|INSTALL|LOAD|SET)\b",
    re.IGNORECASE,
)
_SECOND_STATEMENT = re.compile(r";\s*\S")


def _strip_literals(statement: str) -> str:
    # One left-to-right pass: comment markers inside quotes are not comments.
    return _TOKENS.sub(lambda m: _PLACEHOLDERS[m.lastgroup], statement)


def _read_only_violation(statement: str) -> Optional[str]:
    normalized = _strip_literals(statement).strip()
    if not _READ_ONLY_PREFIX.match(normalized):
        return "Query must be read-only (SELECT/EXPLAIN/SHOW/DESCRIBE)"
    keyword = _WRITE_KEYWORDS.search(normalized)
    if keyword:
        return f"Query contains data-modifying keyword {keyword.group(1).upper()}"
    if _SECOND_STATEMENT.search(normalized):
        return "Only a single statement may be executed"
    return None


def ensure_read_only(statement: str) -> None:
    """Reject any statement that is not a single read-only query.

    Raises:
        ReadOnlyViolationError: If the statement is not an allowed read verb,
            carries a data-modifying keyword, or chains several statements.
    """
    reason = _read_only_violation(statement)
    if reason:
        logger.warning("read_only_violation", reason=reason, statement=statement[:100])
        raise ReadOnlyViolationError(reason, statement=statement)


_WRITE_STAGES = frozenset({"$out", "$merge"})


def ensure_read_only_pipeline(pipeline: list[dict[str, Any]]) -> None:
    """Reject aggregation pipelines with stages that write to the database.

    Raises:
        ReadOnlyViolationError: If any stage is ``$out`` or ``$merge``.
    """
    for stage in pipeline:
        written = _WRITE_STAGES.intersection(stage)
        if written:
            raise ReadOnlyViolationError(
                f"Aggregation stage {sorted(written)[0]} writes to the database",
                statement=str(pipeline),
            )


class SourceAdapter(ABC):
    """Abstract base class for store adapters."""

    kind: ClassVar[SourceKind]

    def __init__(self, source_id: str):
        self.source_id = source_id

    @abstractmethod
    async def health_check(self) -> bool:
        """Open the connection if needed and verify the store answers."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the connection or pool held by this adapter."""
        pass

    async def __aenter__(self) -> "SourceAdapter":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class RelationalAdapter(SourceAdapter):
    """Adapter for SQL stores; every statement passes the read-only guard."""

    dialect: SqlDialect

    async def query(self, statement: str, params: Optional[dict[str, Any]] = None) -> list[Row]:
        """Execute a read-only statement and return rows as dictionaries.

        Args:
            statement: SQL using ``:name`` placeholders
            params: Values for the placeholders

        Returns:
            List of rows keyed by column label
        """
        ensure_read_only(statement)
        return await self._execute(statement, params or {})

    @abstractmethod
    async def _execute(self, statement: str, params: dict[str, Any]) -> list[Row]:
        """Run an already validated statement on a checked-out connection."""
        pass

    async def health_check(self) -> bool:
        rows = await self.query("SELECT 1 AS ok")
        return len(rows) == 1


class DocumentAdapter(SourceAdapter):
    """Adapter for document stores; pipelines pass the read-only guard."""

    database: str

    @abstractmethod
    async def list_collections(self) -> list[str]:
        """Return the collection names of the configured database."""
        pass

    async def aggregate(self, collection: str, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Run an aggregation pipeline against one collection.

        Args:
            collection: Collection name
            pipeline: Aggregation stages

        Returns:
            All result documents
        """
        ensure_read_only_pipeline(pipeline)
        return await self._aggregate(collection, pipeline)

    @abstractmethod
    async def _aggregate(self, collection: str, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Run an already validated pipeline."""
        pass
