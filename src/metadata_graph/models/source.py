"""Source and connection configuration models."""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator


class StoreFamily(str, Enum):
    """Structural family of a store; selects the crawl and projection strategy."""

    RELATIONAL = "relational"
    DOCUMENT = "document"


class SourceKind(str, Enum):
    """Kinds of data stores that can be crawled."""

    RELATIONAL_SQL = "relational-sql"  # PostgreSQL
    RELATIONAL_SQL_VARIANT = "relational-sql-variant"  # MySQL
    DOCUMENT = "document"  # MongoDB
    EMBEDDED_ANALYTICAL = "embedded-analytical"  # DuckDB

    @classmethod
    def _missing_(cls, value: object) -> Optional["SourceKind"]:
        if isinstance(value, str):
            return _VENDOR_ALIASES.get(value.lower())
        return None

    @property
    def family(self) -> StoreFamily:
        if self is SourceKind.DOCUMENT:
            return StoreFamily.DOCUMENT
        return StoreFamily.RELATIONAL

    @property
    def vendor(self) -> str:
        return _VENDOR_NAMES[self]


_VENDOR_NAMES = {
    SourceKind.RELATIONAL_SQL: "postgres",
    SourceKind.RELATIONAL_SQL_VARIANT: "mysql",
    SourceKind.DOCUMENT: "mongo",
    SourceKind.EMBEDDED_ANALYTICAL: "duckdb",
}

_VENDOR_ALIASES = {
    "postgres": SourceKind.RELATIONAL_SQL,
    "postgresql": SourceKind.RELATIONAL_SQL,
    "mysql": SourceKind.RELATIONAL_SQL_VARIANT,
    "mongo": SourceKind.DOCUMENT,
    "mongodb": SourceKind.DOCUMENT,
    "duckdb": SourceKind.EMBEDDED_ANALYTICAL,
}


class SqlConnectionConfig(BaseModel):
    """Connection settings shared by the networked SQL engines."""

    host: str = Field(..., min_length=1, description="Server host name")
    port: int = Field(..., ge=1, le=65535, description="Server port")
    database: str = Field(..., min_length=1, description="Database name")
    user: str = Field(..., min_length=1, description="Login user")
    password: str = Field(..., min_length=1, description="Login password")
    ssl: Union[bool, dict[str, Any]] = Field(default=False, description="TLS settings")
    connect_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Connection establishment timeout"
    )


class PostgresConnectionConfig(SqlConnectionConfig):
    """Connection settings for PostgreSQL."""

    port: int = Field(default=5432, ge=1, le=65535)


class MysqlConnectionConfig(SqlConnectionConfig):
    """Connection settings for MySQL."""

    port: int = Field(default=3306, ge=1, le=65535)


class MongoConnectionConfig(BaseModel):
    """Connection settings for MongoDB."""

    uri: str = Field(..., min_length=1, description="MongoDB connection URI")
    database: str = Field(..., min_length=1, description="Database to crawl")
    replica_set: Optional[str] = Field(None, description="Replica set name")
    connect_timeout_ms: int = Field(default=5_000, gt=0)
    max_time_ms: int = Field(default=5_000, gt=0, description="Per-aggregation time limit")


class DuckDbConnectionConfig(BaseModel):
    """Connection settings for a DuckDB database file."""

    file_path: str = Field(..., min_length=1, description="Path to the database file")
    read_only: bool = Field(default=True, description="Open the file read-only")


class Source(BaseModel):
    """A user-registered connection to a data store."""

    id: str = Field(..., min_length=1, description="Stable source identifier")
    kind: SourceKind = Field(..., description="Kind of store")
    name: Optional[str] = Field(None, description="Display name")
    connection: dict[str, Any] = Field(
        default_factory=dict, description="Store-specific connection settings"
    )

    @field_validator("kind", mode="before")
    @classmethod
    def _resolve_vendor_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            return SourceKind(value)
        return value


class CrawlOptions(BaseModel):
    """Options for a single crawl; ``sample_size`` overrides every default."""

    sample_size: Optional[int] = Field(None, gt=0, description="Rows/documents to sample")
    document_schema_sample_size: int = Field(default=200, gt=0)
    document_profile_sample_size: int = Field(default=500, gt=0)
    relational_profile_sample_size: int = Field(default=1_000, gt=0)

    def schema_sample_size(self) -> int:
        return self.sample_size or self.document_schema_sample_size

    def document_profile_size(self) -> int:
        return self.sample_size or self.document_profile_sample_size

    def relational_profile_size(self) -> int:
        return self.sample_size or self.relational_profile_sample_size
