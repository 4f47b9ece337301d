"""Schema crawler: structural snapshots of relational and document stores."""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, field_validator

from metadata_graph.adapters.base import DocumentAdapter, RelationalAdapter
from metadata_graph.core import get_logger
from metadata_graph.core.errors import ReadOnlyViolationError
from metadata_graph.crawling.degradation import WarningCollector, parse_catalog_row
from metadata_graph.crawling.documents import iter_paths, value_type_name
from metadata_graph.models.crawl import WarningLevel
from metadata_graph.models.snapshot import Collection, Column, DocumentField, Table

logger = get_logger(__name__)

SCHEMA_FEATURE = "schema"


# ==================== Catalog rows ====================


class TableRow(BaseModel):
    """One row of the tables catalog query."""

    table_schema: Optional[str] = None
    table_name: str
    table_type: str = "BASE TABLE"
    table_comment: Optional[str] = None

    @property
    def kind(self) -> str:
        return "VIEW" if "VIEW" in self.table_type.upper() else "BASE TABLE"


class ColumnRow(BaseModel):
    """One row of the columns catalog query."""

    table_schema: Optional[str] = None
    table_name: str
    column_name: str
    data_type: str
    is_nullable: Union[bool, str]
    column_default: Optional[str] = None
    column_comment: Optional[str] = None
    character_maximum_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None

    @field_validator("column_default", mode="before")
    @classmethod
    def _stringify_default(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @property
    def nullable(self) -> bool:
        if isinstance(self.is_nullable, bool):
            return self.is_nullable
        return self.is_nullable.strip().upper() in ("YES", "Y", "TRUE")


# ==================== Relational ====================


async def crawl_relational_schema(
    adapter: RelationalAdapter,
    collector: WarningCollector,
) -> list[Table]:
    """List tables and their ordered columns.

    Runs the tables and columns catalog queries and joins them locally on
    ``(schema, table)``. Columns whose table is missing from the tables
    listing are skipped.

    Args:
        adapter: Relational adapter
        collector: Receives a warning when the catalog cannot be read

    Returns:
        Tables in catalog order; empty when the catalog is unreadable
    """
    dialect = adapter.dialect
    try:
        table_rows = await adapter.query(dialect.tables_query)
        column_rows = await adapter.query(dialect.columns_query)
    except ReadOnlyViolationError:
        raise
    except Exception as e:
        collector.add_from_error(
            e,
            SCHEMA_FEATURE,
            "Failed to read the table catalog",
            level=WarningLevel.ERROR,
        )
        return []

    tables: dict[tuple[Optional[str], str], Table] = {}
    for raw in table_rows:
        row = parse_catalog_row(TableRow, raw, "tables")
        if row is None:
            continue
        tables[(row.table_schema, row.table_name)] = Table(
            schema_name=row.table_schema,
            name=row.table_name,
            kind=row.kind,
            comment=row.table_comment,
        )

    skipped = 0
    for raw in column_rows:
        row = parse_catalog_row(ColumnRow, raw, "columns")
        if row is None:
            continue
        table = tables.get((row.table_schema, row.table_name))
        if table is None:
            skipped += 1
            continue
        table.columns.append(
            Column(
                name=row.column_name,
                type=row.data_type,
                nullable=row.nullable,
                default_value=row.column_default,
                comment=row.column_comment,
                character_maximum_length=row.character_maximum_length,
                numeric_precision=row.numeric_precision,
                numeric_scale=row.numeric_scale,
            )
        )

    if skipped:
        logger.info("orphan_columns_skipped", source_id=adapter.source_id, count=skipped)

    logger.info(
        "relational_schema_crawled",
        source_id=adapter.source_id,
        tables=len(tables),
        columns=sum(len(t.columns) for t in tables.values()),
    )
    return list(tables.values())


# ==================== Document ====================


@dataclass
class _PathStats:
    types: set[str] = field(default_factory=set)
    has_null: bool = False
    documents: int = 0


def infer_fields(documents: list[dict[str, Any]]) -> list[DocumentField]:
    """Merge every field path of a document sample.

    A path is nullable when a null was observed or when it is missing from
    at least one sampled document. Fields are sorted by path.
    """
    stats: dict[str, _PathStats] = {}
    for document in documents:
        seen: set[str] = set()
        for path, value in iter_paths(document):
            entry = stats.setdefault(path, _PathStats())
            entry.types.add(value_type_name(value))
            if value is None:
                entry.has_null = True
            seen.add(path)
        for path in seen:
            stats[path].documents += 1

    total = len(documents)
    return [
        DocumentField(
            path=path,
            types=sorted(entry.types),
            nullable=entry.has_null or entry.documents < total,
            observed_count=entry.documents,
        )
        for path, entry in sorted(stats.items())
    ]


async def sample_collection(
    adapter: DocumentAdapter,
    collector: WarningCollector,
    name: str,
    sample_size: int,
) -> Collection:
    """Infer one collection's fields from a random sample.

    A failed sample yields a warning and a collection without fields.
    """
    try:
        documents = await adapter.aggregate(name, [{"$sample": {"size": sample_size}}])
    except ReadOnlyViolationError:
        raise
    except Exception as e:
        collector.add_from_error(e, SCHEMA_FEATURE, f"Failed to sample collection {name}")
        return Collection(database=adapter.database, name=name)

    return Collection(
        database=adapter.database,
        name=name,
        document_sample_size=len(documents),
        fields=infer_fields(documents),
    )


async def crawl_document_schema(
    adapter: DocumentAdapter,
    collector: WarningCollector,
    sample_size: int,
) -> list[Collection]:
    """List collections and infer their fields.

    Args:
        adapter: Document adapter
        collector: Receives warnings for unreadable collections
        sample_size: Documents sampled per collection

    Returns:
        One collection per listed name, in listing order
    """
    try:
        names = await adapter.list_collections()
    except ReadOnlyViolationError:
        raise
    except Exception as e:
        collector.add_from_error(
            e,
            SCHEMA_FEATURE,
            "Failed to list collections",
            level=WarningLevel.ERROR,
        )
        return []

    collections = []
    for name in names:
        collections.append(await sample_collection(adapter, collector, name, sample_size))

    logger.info(
        "document_schema_crawled",
        source_id=adapter.source_id,
        collections=len(collections),
        fields=sum(len(c.fields) for c in collections),
    )
    return collections
