"""Relationship discoverer: tiered foreign-key discovery."""

from typing import Optional

from pydantic import BaseModel

from metadata_graph.adapters.base import RelationalAdapter
from metadata_graph.core import get_logger
from metadata_graph.core.errors import ErrorCategorizer, ReadOnlyViolationError
from metadata_graph.crawling.degradation import WarningCollector, parse_catalog_row
from metadata_graph.models.crawl import WarningLevel
from metadata_graph.models.snapshot import ForeignKeyConstraint

logger = get_logger(__name__)

RELATIONSHIPS_FEATURE = "foreign_keys"


class ForeignKeyRow(BaseModel):
    """One row of a foreign-key catalog query."""

    constraint_name: str
    table_schema: str
    table_name: str
    column_name: str
    foreign_table_schema: Optional[str] = None
    foreign_table_name: Optional[str] = None
    foreign_column_name: Optional[str] = None

    def to_constraint(self) -> Optional[ForeignKeyConstraint]:
        if not (self.foreign_table_schema and self.foreign_table_name and self.foreign_column_name):
            return None
        return ForeignKeyConstraint(
            constraint_name=self.constraint_name,
            source_schema=self.table_schema,
            source_table=self.table_name,
            source_column=self.column_name,
            target_schema=self.foreign_table_schema,
            target_table=self.foreign_table_name,
            target_column=self.foreign_column_name,
        )


async def discover_foreign_keys(
    adapter: RelationalAdapter,
    collector: WarningCollector,
) -> list[ForeignKeyConstraint]:
    """Discover foreign keys, trying the dialect's catalog queries in order.

    The first query that succeeds is used. When every query fails, the
    outcome is an ``info`` warning (feature unsupported or not accessible),
    or an ``error`` warning when the failure was a connection or timeout
    problem, and no relationships are returned. Malformed rows and rows with
    an incomplete target are skipped one by one.

    Args:
        adapter: Relational adapter
        collector: Receives the degradation warning

    Returns:
        Discovered constraints, possibly empty
    """
    last_error: Optional[Exception] = None
    for tier, statement in adapter.dialect.foreign_key_queries:
        try:
            rows = await adapter.query(statement)
        except ReadOnlyViolationError:
            raise
        except Exception as e:
            logger.debug(
                "foreign_key_tier_failed",
                source_id=adapter.source_id,
                tier=tier,
                error=str(e),
            )
            last_error = e
            continue
        return _parse_rows(adapter.source_id, tier, rows)

    if last_error is not None:
        if ErrorCategorizer.is_connectivity_error(last_error):
            collector.add_from_error(
                last_error,
                RELATIONSHIPS_FEATURE,
                "Foreign key catalog could not be read",
                level=WarningLevel.ERROR,
            )
        else:
            collector.add_from_error(
                last_error,
                RELATIONSHIPS_FEATURE,
                "Foreign key discovery unsupported or not accessible",
                level=WarningLevel.INFO,
            )
    return []


def _parse_rows(source_id: str, tier: str, rows: list[dict]) -> list[ForeignKeyConstraint]:
    constraints = []
    for raw in rows:
        row = parse_catalog_row(ForeignKeyRow, raw, "foreign_keys")
        if row is None:
            continue
        constraint = row.to_constraint()
        if constraint is None:
            logger.info(
                "incomplete_foreign_key_skipped",
                source_id=source_id,
                constraint_name=row.constraint_name,
                table=row.table_name,
                column=row.column_name,
            )
            continue
        constraints.append(constraint)

    logger.info(
        "foreign_keys_discovered",
        source_id=source_id,
        tier=tier,
        count=len(constraints),
    )
    return constraints
