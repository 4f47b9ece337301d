"""
Pytest configuration and shared fixtures for the metadata graph tests.
"""
import logging
from typing import Any, Callable, Optional, Union

import pytest
import structlog
from hypothesis import settings, Verbosity

from metadata_graph.adapters.base import DocumentAdapter, RelationalAdapter
from metadata_graph.adapters.dialects import PostgresDialect, SqlDialect
from metadata_graph.storage.graph_store import GraphStore, GraphStoreConfig

# Configure Hypothesis settings for all property-based tests
settings.register_profile(
    "default",
    max_examples=100,
    deadline=5000,
    suppress_health_check=[],
    verbosity=Verbosity.normal,
)

settings.register_profile(
    "ci",
    max_examples=200,
    deadline=10000,
    suppress_health_check=[],
    verbosity=Verbosity.quiet,
)

settings.register_profile(
    "debug",
    max_examples=10,
    deadline=None,
    suppress_health_check=[],
    verbosity=Verbosity.verbose,
)

settings.load_profile("default")


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    """Drop log output below CRITICAL so stdout stays parseable in CLI tests."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()


Rows = list[dict[str, Any]]
Outcome = Union[Rows, Exception]


def _resolve(outcome: Outcome) -> Rows:
    if isinstance(outcome, Exception):
        raise outcome
    return outcome


class FakeCatalog:
    """Routes catalog and probe statements of one dialect to canned rows.

    Any value may be an exception instance, which is raised instead.
    """

    def __init__(
        self,
        dialect: SqlDialect,
        tables: Outcome = (),
        columns: Outcome = (),
        foreign_keys: Optional[dict[str, Outcome]] = None,
        row_counts: Optional[dict[str, Outcome]] = None,
        profiles: Optional[dict[tuple[Optional[str], str, str], Outcome]] = None,
    ):
        self.dialect = dialect
        self.tables = tables if isinstance(tables, Exception) else list(tables)
        self.columns = columns if isinstance(columns, Exception) else list(columns)
        self.foreign_keys = foreign_keys or {}
        self.row_counts = row_counts or {}
        self.profiles = profiles or {}

    def __call__(self, statement: str, params: dict[str, Any]) -> Rows:
        dialect = self.dialect
        if statement == dialect.tables_query:
            return _resolve(self.tables)
        if statement == dialect.columns_query:
            return _resolve(self.columns)

        for tier, query in dialect.foreign_key_queries:
            if statement == query:
                return _resolve(self.foreign_keys.get(tier, []))

        for tier, query in dialect.row_estimate_queries:
            if statement == query:
                return _resolve(self.row_counts.get(f"{tier}:{params['table']}", []))

        if "COUNT(*) AS row_count" in statement:
            for key, outcome in self.row_counts.items():
                if key.startswith("count:") and dialect.quote_identifier(key[6:]) in statement:
                    return _resolve(outcome)
            return []

        if "AS sampled_rows" in statement:
            for (schema, table, column), outcome in self.profiles.items():
                if (
                    f"FROM {dialect.quote_table(schema, table)}" in statement
                    and f"MIN({dialect.quote_identifier(column)})" in statement
                ):
                    return _resolve(outcome)
            return []

        raise AssertionError(f"Unexpected statement: {statement}")


class FakeRelationalAdapter(RelationalAdapter):
    """In-process relational adapter answering through a handler."""

    def __init__(
        self,
        handler: Callable[[str, dict[str, Any]], Rows],
        dialect: Optional[SqlDialect] = None,
        source_id: str = "src-1",
        health_error: Optional[Exception] = None,
    ):
        super().__init__(source_id)
        self.handler = handler
        self.dialect = dialect or PostgresDialect()
        self.health_error = health_error
        self.statements: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    async def _execute(self, statement: str, params: dict[str, Any]) -> Rows:
        self.statements.append((statement, params))
        return self.handler(statement, params)

    async def health_check(self) -> bool:
        if self.health_error is not None:
            raise self.health_error
        return True

    async def close(self) -> None:
        self.closed = True


class FakeDocumentAdapter(DocumentAdapter):
    """In-process document adapter over dictionaries of documents.

    Understands ``$sample``, ``$project`` with ``$$ROOT`` and ``$count``.
    ``failures`` maps ``(collection, stage)`` to the exception to raise.
    """

    def __init__(
        self,
        collections: dict[str, list[dict[str, Any]]],
        database: str = "appdb",
        source_id: str = "mongo-1",
        failures: Optional[dict[tuple[str, str], Exception]] = None,
        list_error: Optional[Exception] = None,
        health_error: Optional[Exception] = None,
    ):
        super().__init__(source_id)
        self.collections = collections
        self.database = database
        self.failures = failures or {}
        self.list_error = list_error
        self.health_error = health_error
        self.pipelines: list[tuple[str, list[dict[str, Any]]]] = []
        self.closed = False

    async def health_check(self) -> bool:
        if self.health_error is not None:
            raise self.health_error
        return True

    async def list_collections(self) -> list[str]:
        if self.list_error is not None:
            raise self.list_error
        return sorted(self.collections)

    async def _aggregate(self, collection: str, pipeline: list[dict[str, Any]]) -> Rows:
        self.pipelines.append((collection, pipeline))
        documents = list(self.collections.get(collection, []))
        for stage in pipeline:
            name, argument = next(iter(stage.items()))
            failure = self.failures.get((collection, name))
            if failure is not None:
                raise failure
            if name == "$sample":
                documents = documents[: argument["size"]]
            elif name == "$project":
                documents = [{"document": doc} for doc in documents]
            elif name == "$count":
                documents = [{argument: len(documents)}] if documents else []
        return documents

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def graph_store():
    """Provide a fresh in-memory graph store with its tables created."""
    store = GraphStore.from_config(GraphStoreConfig(database_url="sqlite://"))
    store.initialize_schema()
    yield store
    store.dispose()


def accounts_catalog(dialect: Optional[SqlDialect] = None, **overrides) -> FakeCatalog:
    """Catalog of a single ``public.accounts(id INTEGER NOT NULL, name VARCHAR NULL)`` table."""
    dialect = dialect or PostgresDialect()
    options = dict(
        tables=[
            {
                "table_schema": "public",
                "table_name": "accounts",
                "table_type": "BASE TABLE",
                "table_comment": None,
            }
        ],
        columns=[
            {
                "table_schema": "public",
                "table_name": "accounts",
                "column_name": "id",
                "data_type": "integer",
                "is_nullable": "NO",
                "column_default": None,
                "column_comment": None,
                "character_maximum_length": None,
                "numeric_precision": 32,
                "numeric_scale": 0,
            },
            {
                "table_schema": "public",
                "table_name": "accounts",
                "column_name": "name",
                "data_type": "character varying",
                "is_nullable": "YES",
                "column_default": None,
                "column_comment": None,
                "character_maximum_length": 255,
                "numeric_precision": None,
                "numeric_scale": None,
            },
        ],
        foreign_keys={"key_column_usage": []},
        row_counts={"pg_stat_user_tables:accounts": [{"row_count": 5}]},
        profiles={
            ("public", "accounts", "id"): [
                {"sampled_rows": 5, "null_count": 0, "distinct_count": 5, "min_value": 1, "max_value": 5}
            ],
            ("public", "accounts", "name"): [
                {"sampled_rows": 5, "null_count": 1, "distinct_count": 4, "min_value": "Ann", "max_value": "Zoe"}
            ],
        },
    )
    options.update(overrides)
    return FakeCatalog(dialect, **options)
