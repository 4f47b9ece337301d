"""SQL dialects: identifier quoting and catalog queries per relational engine.

Dialects hold no connection state. Statements use ``:name`` placeholders and
label every selected column explicitly so rows look the same on every engine.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import ClassVar, Optional


class RowCountStrategy(str, Enum):
    """How a dialect obtains table cardinality."""

    ESTIMATE = "estimate"  # planner/catalog statistics, cheap but approximate
    EXACT = "exact"  # COUNT(*), exact but scans the table


class SqlDialect(ABC):
    """Catalog SQL and quoting rules for one relational engine."""

    name: ClassVar[str]
    supports_comments: ClassVar[bool] = False
    row_count_strategy: ClassVar[RowCountStrategy] = RowCountStrategy.EXACT

    @abstractmethod
    def quote_identifier(self, identifier: str) -> str:
        """Quote a single identifier, escaping embedded quote characters."""
        pass

    def quote_table(self, schema: Optional[str], table: str) -> str:
        if schema:
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table)

    @property
    @abstractmethod
    def tables_query(self) -> str:
        """Rows: table_schema, table_name, table_type, table_comment."""
        pass

    @property
    @abstractmethod
    def columns_query(self) -> str:
        """Rows: table_schema, table_name, column_name, data_type, is_nullable,
        column_default, column_comment, character_maximum_length,
        numeric_precision, numeric_scale; ordered by ordinal position."""
        pass

    @property
    @abstractmethod
    def foreign_key_queries(self) -> list[tuple[str, str]]:
        """Named foreign-key queries, most precise first.

        Rows: constraint_name, table_schema, table_name, column_name,
        foreign_table_schema, foreign_table_name, foreign_column_name.
        """
        pass

    @property
    def row_estimate_queries(self) -> list[tuple[str, str]]:
        """Named estimate queries taking ``:schema`` and ``:table``; row: row_count."""
        return []

    def exact_count_query(self, schema: Optional[str], table: str) -> str:
        return f"SELECT COUNT(*) AS row_count FROM {self.quote_table(schema, table)}"

    def profile_query(self, schema: Optional[str], table: str, column: str, sample_size: int) -> str:
        """Bounded-sample statistics for one column.

        The sample is the first ``sample_size`` rows the engine returns; it is
        not random. Row: sampled_rows, null_count, distinct_count, min_value,
        max_value.
        """
        col = self.quote_identifier(column)
        return (
            f"SELECT COUNT(*) AS sampled_rows, "
            f"SUM(CASE WHEN {col} IS NULL THEN 1 ELSE 0 END) AS null_count, "
            f"COUNT(DISTINCT {col}) AS distinct_count, "
            f"MIN({col}) AS min_value, "
            f"MAX({col}) AS max_value "
            f"FROM (SELECT {col} FROM {self.quote_table(schema, table)} "
            f"LIMIT {int(sample_size)}) AS sampled"
        )


class PostgresDialect(SqlDialect):
    """PostgreSQL catalog access through information_schema and pg_catalog."""

    name = "postgres"
    supports_comments = True
    row_count_strategy = RowCountStrategy.ESTIMATE

    def quote_identifier(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    @property
    def tables_query(self) -> str:
        return """
            SELECT t.table_schema AS table_schema,
                   t.table_name AS table_name,
                   t.table_type AS table_type,
                   obj_description(pc.oid, 'pg_class') AS table_comment
            FROM information_schema.tables t
            LEFT JOIN pg_catalog.pg_namespace pn ON pn.nspname = t.table_schema
            LEFT JOIN pg_catalog.pg_class pc
                   ON pc.relname = t.table_name AND pc.relnamespace = pn.oid
            WHERE t.table_schema NOT IN ('pg_catalog', 'information_schema')
              AND t.table_schema NOT LIKE 'pg_toast%'
            ORDER BY t.table_schema, t.table_name
        """

    @property
    def columns_query(self) -> str:
        return """
            SELECT c.table_schema AS table_schema,
                   c.table_name AS table_name,
                   c.column_name AS column_name,
                   c.data_type AS data_type,
                   c.is_nullable AS is_nullable,
                   c.column_default AS column_default,
                   col_description(pc.oid, CAST(c.ordinal_position AS integer)) AS column_comment,
                   c.character_maximum_length AS character_maximum_length,
                   c.numeric_precision AS numeric_precision,
                   c.numeric_scale AS numeric_scale
            FROM information_schema.columns c
            LEFT JOIN pg_catalog.pg_namespace pn ON pn.nspname = c.table_schema
            LEFT JOIN pg_catalog.pg_class pc
                   ON pc.relname = c.table_name AND pc.relnamespace = pn.oid
            WHERE c.table_schema NOT IN ('pg_catalog', 'information_schema')
              AND c.table_schema NOT LIKE 'pg_toast%'
            ORDER BY c.table_schema, c.table_name, c.ordinal_position
        """

    @property
    def foreign_key_queries(self) -> list[tuple[str, str]]:
        # constraint_column_usage carries no column position, so a composite
        # key comes back as a cross product there; pair by position first.
        constraint_catalog = """
            SELECT tc.constraint_name AS constraint_name,
                   kcu.table_schema AS table_schema,
                   kcu.table_name AS table_name,
                   kcu.column_name AS column_name,
                   ccu.table_schema AS foreign_table_schema,
                   ccu.table_name AS foreign_table_name,
                   ccu.column_name AS foreign_column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
              ON tc.constraint_name = kcu.constraint_name
             AND tc.table_schema = kcu.table_schema
            JOIN information_schema.constraint_column_usage ccu
              ON ccu.constraint_name = tc.constraint_name
             AND ccu.constraint_schema = tc.constraint_schema
            WHERE tc.constraint_type = 'FOREIGN KEY'
            ORDER BY kcu.table_schema, kcu.table_name, kcu.ordinal_position
        """
        key_usage = """
            SELECT kcu.constraint_name AS constraint_name,
                   kcu.table_schema AS table_schema,
                   kcu.table_name AS table_name,
                   kcu.column_name AS column_name,
                   ukcu.table_schema AS foreign_table_schema,
                   ukcu.table_name AS foreign_table_name,
                   ukcu.column_name AS foreign_column_name
            FROM information_schema.key_column_usage kcu
            JOIN information_schema.referential_constraints rc
              ON rc.constraint_schema = kcu.constraint_schema
             AND rc.constraint_name = kcu.constraint_name
            LEFT JOIN information_schema.key_column_usage ukcu
              ON ukcu.constraint_schema = rc.unique_constraint_schema
             AND ukcu.constraint_name = rc.unique_constraint_name
             AND ukcu.ordinal_position = kcu.position_in_unique_constraint
            ORDER BY kcu.table_schema, kcu.table_name, kcu.ordinal_position
        """
        return [("key_column_usage", key_usage), ("constraint_catalog", constraint_catalog)]

    @property
    def row_estimate_queries(self) -> list[tuple[str, str]]:
        live_tuples = """
            SELECT n_live_tup AS row_count
            FROM pg_stat_user_tables
            WHERE schemaname = :schema AND relname = :table
        """
        reltuples = """
            SELECT CAST(pc.reltuples AS bigint) AS row_count
            FROM pg_catalog.pg_class pc
            JOIN pg_catalog.pg_namespace pn ON pn.oid = pc.relnamespace
            WHERE pn.nspname = :schema AND pc.relname = :table
        """
        return [("pg_stat_user_tables", live_tuples), ("pg_class", reltuples)]


class MysqlDialect(SqlDialect):
    """MySQL catalog access; a schema is a database."""

    name = "mysql"
    supports_comments = True
    row_count_strategy = RowCountStrategy.ESTIMATE

    _SYSTEM_SCHEMAS = "('mysql', 'information_schema', 'performance_schema', 'sys')"

    def quote_identifier(self, identifier: str) -> str:
        return "`" + identifier.replace("`", "``") + "`"

    @property
    def tables_query(self) -> str:
        return f"""
            SELECT TABLE_SCHEMA AS table_schema,
                   TABLE_NAME AS table_name,
                   TABLE_TYPE AS table_type,
                   NULLIF(TABLE_COMMENT, '') AS table_comment
            FROM information_schema.tables
            WHERE TABLE_SCHEMA NOT IN {self._SYSTEM_SCHEMAS}
            ORDER BY TABLE_SCHEMA, TABLE_NAME
        """

    @property
    def columns_query(self) -> str:
        return f"""
            SELECT TABLE_SCHEMA AS table_schema,
                   TABLE_NAME AS table_name,
                   COLUMN_NAME AS column_name,
                   COLUMN_TYPE AS data_type,
                   IS_NULLABLE AS is_nullable,
                   COLUMN_DEFAULT AS column_default,
                   NULLIF(COLUMN_COMMENT, '') AS column_comment,
                   CHARACTER_MAXIMUM_LENGTH AS character_maximum_length,
                   NUMERIC_PRECISION AS numeric_precision,
                   NUMERIC_SCALE AS numeric_scale
            FROM information_schema.columns
            WHERE TABLE_SCHEMA NOT IN {self._SYSTEM_SCHEMAS}
            ORDER BY TABLE_SCHEMA, TABLE_NAME, ORDINAL_POSITION
        """

    @property
    def foreign_key_queries(self) -> list[tuple[str, str]]:
        key_usage = f"""
            SELECT CONSTRAINT_NAME AS constraint_name,
                   TABLE_SCHEMA AS table_schema,
                   TABLE_NAME AS table_name,
                   COLUMN_NAME AS column_name,
                   REFERENCED_TABLE_SCHEMA AS foreign_table_schema,
                   REFERENCED_TABLE_NAME AS foreign_table_name,
                   REFERENCED_COLUMN_NAME AS foreign_column_name
            FROM information_schema.key_column_usage
            WHERE REFERENCED_TABLE_NAME IS NOT NULL
              AND TABLE_SCHEMA NOT IN {self._SYSTEM_SCHEMAS}
            ORDER BY TABLE_SCHEMA, TABLE_NAME, ORDINAL_POSITION
        """
        return [("key_column_usage", key_usage)]

    @property
    def row_estimate_queries(self) -> list[tuple[str, str]]:
        table_rows = """
            SELECT TABLE_ROWS AS row_count
            FROM information_schema.tables
            WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :table
        """
        return [("information_schema.tables", table_rows)]


class DuckDbDialect(SqlDialect):
    """DuckDB catalog access for the attached database file."""

    name = "duckdb"
    supports_comments = False
    row_count_strategy = RowCountStrategy.EXACT

    def quote_identifier(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    @property
    def tables_query(self) -> str:
        return """
            SELECT table_schema AS table_schema,
                   table_name AS table_name,
                   table_type AS table_type,
                   NULL AS table_comment
            FROM information_schema.tables
            WHERE table_catalog = current_database()
              AND table_schema NOT IN ('information_schema', 'pg_catalog')
            ORDER BY table_schema, table_name
        """

    @property
    def columns_query(self) -> str:
        return """
            SELECT table_schema AS table_schema,
                   table_name AS table_name,
                   column_name AS column_name,
                   data_type AS data_type,
                   is_nullable AS is_nullable,
                   column_default AS column_default,
                   NULL AS column_comment,
                   character_maximum_length AS character_maximum_length,
                   numeric_precision AS numeric_precision,
                   numeric_scale AS numeric_scale
            FROM information_schema.columns
            WHERE table_catalog = current_database()
              AND table_schema NOT IN ('information_schema', 'pg_catalog')
            ORDER BY table_schema, table_name, ordinal_position
        """

    @property
    def foreign_key_queries(self) -> list[tuple[str, str]]:
        key_usage = """
            SELECT rc.constraint_name AS constraint_name,
                   kcu.table_schema AS table_schema,
                   kcu.table_name AS table_name,
                   kcu.column_name AS column_name,
                   ukcu.table_schema AS foreign_table_schema,
                   ukcu.table_name AS foreign_table_name,
                   ukcu.column_name AS foreign_column_name
            FROM information_schema.referential_constraints rc
            JOIN information_schema.key_column_usage kcu
              ON kcu.constraint_schema = rc.constraint_schema
             AND kcu.constraint_name = rc.constraint_name
            LEFT JOIN information_schema.key_column_usage ukcu
              ON ukcu.constraint_schema = rc.unique_constraint_schema
             AND ukcu.constraint_name = rc.unique_constraint_name
             AND ukcu.ordinal_position = kcu.position_in_unique_constraint
            ORDER BY kcu.table_schema, kcu.table_name, kcu.ordinal_position
        """
        return [("referential_constraints", key_usage)]
