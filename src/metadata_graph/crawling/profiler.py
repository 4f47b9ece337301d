"""Column and field profiler over bounded samples."""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Optional

from metadata_graph.adapters.base import DocumentAdapter, RelationalAdapter
from metadata_graph.core import get_logger
from metadata_graph.core.errors import ReadOnlyViolationError
from metadata_graph.crawling.degradation import WarningCollector
from metadata_graph.crawling.documents import is_element_path, iter_paths, value_signature
from metadata_graph.models.snapshot import (
    Collection,
    CollectionProfile,
    Column,
    ColumnProfile,
    FieldProfile,
    ScalarValue,
    Table,
    TableProfile,
)

logger = get_logger(__name__)

PROFILING_FEATURE = "profiling"


def to_scalar(value: Any) -> ScalarValue:
    """Normalise a driver value into a JSON-safe scalar."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return None
    return str(value)


# ==================== Relational ====================


async def profile_column(
    adapter: RelationalAdapter,
    collector: WarningCollector,
    table: Table,
    column: Column,
    sample_size: int,
) -> ColumnProfile:
    """Profile one column with a single bounded query.

    A failed query yields a warning and a profile whose statistics are all
    None. An empty sample also yields None statistics.
    """
    statement = adapter.dialect.profile_query(table.schema_name, table.name, column.name, sample_size)
    try:
        rows = await adapter.query(statement)
    except ReadOnlyViolationError:
        raise
    except Exception as e:
        collector.add_from_error(
            e,
            PROFILING_FEATURE,
            f"Failed to profile column {table.key}.{column.name}",
        )
        return ColumnProfile(column=column.name)

    if not rows:
        return ColumnProfile(column=column.name)

    row = rows[0]
    sampled = int(row.get("sampled_rows") or 0)
    if sampled == 0:
        return ColumnProfile(column=column.name, sample_count=0)

    null_count = int(row.get("null_count") or 0)
    distinct_count = int(row.get("distinct_count") or 0)
    return ColumnProfile(
        column=column.name,
        null_fraction=null_count / sampled,
        distinct_count=distinct_count,
        distinct_fraction=distinct_count / sampled,
        sample_count=sampled,
        min=to_scalar(row.get("min_value")),
        max=to_scalar(row.get("max_value")),
    )


async def profile_table(
    adapter: RelationalAdapter,
    collector: WarningCollector,
    table: Table,
    sample_size: int,
) -> TableProfile:
    """Profile every column of a table independently."""
    columns = []
    for column in table.columns:
        columns.append(await profile_column(adapter, collector, table, column, sample_size))

    return TableProfile(
        schema_name=table.schema_name,
        name=table.name,
        sampled_rows=max((c.sample_count for c in columns), default=0),
        columns=columns,
    )


async def profile_tables(
    adapter: RelationalAdapter,
    collector: WarningCollector,
    tables: list[Table],
    sample_size: int,
) -> list[TableProfile]:
    profiles = []
    for table in tables:
        profiles.append(await profile_table(adapter, collector, table, sample_size))
    logger.info("tables_profiled", source_id=adapter.source_id, tables=len(profiles))
    return profiles


# ==================== Document ====================


@dataclass
class _FieldAccumulator:
    documents: int = 0
    values: int = 0
    nulls: int = 0
    signatures: set[str] = field(default_factory=set)


def profile_documents(
    documents: list[dict[str, Any]], paths: Optional[list[str]] = None
) -> list[FieldProfile]:
    """Compute field statistics from a document sample.

    For a plain path the population is the sampled documents, so a document
    missing the path counts as null. For a path under an array segment the
    population is the observed elements. Distinct signatures exclude nulls.

    Args:
        documents: Sampled documents
        paths: Field paths to report, in output order. Defaults to every
            path observed in the sample, sorted.

    Returns:
        One profile per reported path
    """
    stats: dict[str, _FieldAccumulator] = {}
    for document in documents:
        seen: set[str] = set()
        for path, value in iter_paths(document):
            entry = stats.setdefault(path, _FieldAccumulator())
            entry.values += 1
            if value is None:
                entry.nulls += 1
            else:
                entry.signatures.add(value_signature(value))
            seen.add(path)
        for path in seen:
            stats[path].documents += 1

    total = len(documents)
    if paths is None:
        paths = sorted(stats)
    profiles = []
    for path in paths:
        entry = stats.get(path, _FieldAccumulator())
        if is_element_path(path):
            population = entry.values
            nulls = entry.nulls
        else:
            population = total
            nulls = entry.nulls + (total - entry.documents)
        profiles.append(
            FieldProfile(
                path=path,
                null_fraction=nulls / population if population else None,
                distinct_count=len(entry.signatures) if population else None,
                sample_count=population,
            )
        )
    return profiles


async def profile_collection(
    adapter: DocumentAdapter,
    collector: WarningCollector,
    collection: Collection,
    sample_size: int,
) -> CollectionProfile:
    """Profile the fields observed in a fresh sample of a collection.

    Only paths present in this sample are reported, so a field the schema
    sample saw but this one missed has no statistics rather than an all-null
    profile. A failed sample yields a warning and a profile without fields.
    """
    pipeline = [
        {"$sample": {"size": sample_size}},
        {"$project": {"document": "$$ROOT"}},
    ]
    try:
        rows = await adapter.aggregate(collection.name, pipeline)
    except ReadOnlyViolationError:
        raise
    except Exception as e:
        collector.add_from_error(
            e,
            PROFILING_FEATURE,
            f"Failed to profile collection {collection.name}",
        )
        return CollectionProfile(name=collection.name)

    documents = [row.get("document", row) for row in rows]
    return CollectionProfile(
        name=collection.name,
        sampled_documents=len(documents),
        fields=profile_documents(documents),
    )


async def profile_collections(
    adapter: DocumentAdapter,
    collector: WarningCollector,
    collections: list[Collection],
    sample_size: int,
) -> list[CollectionProfile]:
    profiles = []
    for collection in collections:
        profiles.append(await profile_collection(adapter, collector, collection, sample_size))
    logger.info("collections_profiled", source_id=adapter.source_id, collections=len(profiles))
    return profiles
