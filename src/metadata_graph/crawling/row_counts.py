"""Row and document counter: best-effort cardinality per table or collection."""

from typing import Any, Optional

from metadata_graph.adapters.base import DocumentAdapter, RelationalAdapter
from metadata_graph.adapters.dialects import RowCountStrategy
from metadata_graph.core import get_logger
from metadata_graph.core.errors import ReadOnlyViolationError
from metadata_graph.crawling.degradation import WarningCollector
from metadata_graph.models.snapshot import Collection, Table

logger = get_logger(__name__)

ROW_COUNT_FEATURE = "row_counts"


def _count_attempts(adapter: RelationalAdapter, table: Table) -> list[tuple[str, str, dict[str, Any]]]:
    dialect = adapter.dialect
    if dialect.row_count_strategy == RowCountStrategy.ESTIMATE:
        params = {"schema": table.schema_name, "table": table.name}
        return [(tier, statement, params) for tier, statement in dialect.row_estimate_queries]
    return [("count", dialect.exact_count_query(table.schema_name, table.name), {})]


async def count_table_rows(
    adapter: RelationalAdapter,
    collector: WarningCollector,
    table: Table,
) -> Optional[int]:
    """Count a table's rows with the dialect's strategy.

    Estimate tiers are tried in order until one yields a non-negative value.
    When every attempt fails the count is None and a warning is recorded;
    when attempts succeed without a usable value the count is simply None.
    """
    last_error: Optional[Exception] = None
    for tier, statement, params in _count_attempts(adapter, table):
        try:
            rows = await adapter.query(statement, params)
        except ReadOnlyViolationError:
            raise
        except Exception as e:
            logger.debug(
                "row_count_tier_failed",
                source_id=adapter.source_id,
                table=table.key,
                tier=tier,
                error=str(e),
            )
            last_error = e
            continue

        value = rows[0].get("row_count") if rows else None
        # reltuples is -1 for tables that were never analyzed
        if value is not None and int(value) >= 0:
            return int(value)
        last_error = None

    if last_error is not None:
        collector.add_from_error(
            last_error,
            ROW_COUNT_FEATURE,
            f"Failed to count rows of {table.key}",
        )
    return None


async def count_tables(
    adapter: RelationalAdapter,
    collector: WarningCollector,
    tables: list[Table],
) -> None:
    """Set ``row_count`` on every table; failures never stop the loop."""
    for table in tables:
        table.row_count = await count_table_rows(adapter, collector, table)
    logger.info(
        "rows_counted",
        source_id=adapter.source_id,
        strategy=adapter.dialect.row_count_strategy.value,
        counted=sum(1 for t in tables if t.row_count is not None),
        tables=len(tables),
    )


async def count_collection_documents(
    adapter: DocumentAdapter,
    collector: WarningCollector,
    collection: Collection,
) -> Optional[int]:
    """Count documents with a ``$count`` aggregation.

    An empty collection produces no ``$count`` output and counts as 0.
    """
    try:
        rows = await adapter.aggregate(collection.name, [{"$count": "count"}])
    except ReadOnlyViolationError:
        raise
    except Exception as e:
        collector.add_from_error(
            e,
            ROW_COUNT_FEATURE,
            f"Failed to count documents of {collection.name}",
        )
        return None

    if not rows:
        return 0
    return int(rows[0].get("count", 0))


async def count_collections(
    adapter: DocumentAdapter,
    collector: WarningCollector,
    collections: list[Collection],
) -> None:
    for collection in collections:
        collection.document_count = await count_collection_documents(adapter, collector, collection)
