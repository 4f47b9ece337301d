"""Structural snapshot and profile models produced by a crawl.

A snapshot is ephemeral: it lives for one crawl and only its graph
projection is persisted.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

# Min/max values are normalised to JSON-safe scalars before they reach a model.
ScalarValue = Optional[Union[bool, int, float, str]]


class Column(BaseModel):
    """A column of a relational table or view."""

    name: str = Field(..., description="Column name")
    type: str = Field(..., description="Vendor data type")
    nullable: bool = Field(..., description="Whether the column accepts NULL")
    default_value: Optional[str] = Field(None, description="Column default expression")
    comment: Optional[str] = Field(None, description="Catalog comment")
    character_maximum_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None


class Table(BaseModel):
    """A relational table or view with its ordered columns."""

    schema_name: Optional[str] = Field(None, description="Schema (or database for MySQL)")
    name: str = Field(..., description="Table name")
    kind: Literal["BASE TABLE", "VIEW"] = Field(default="BASE TABLE")
    comment: Optional[str] = Field(None, description="Catalog comment")
    columns: list[Column] = Field(default_factory=list)
    row_count: Optional[int] = Field(None, description="Best-effort row count")

    @property
    def key(self) -> str:
        return f"{self.schema_name}.{self.name}" if self.schema_name else self.name


class ForeignKeyConstraint(BaseModel):
    """A discovered (not authoritative) column-level reference."""

    constraint_name: str
    source_schema: str
    source_table: str
    source_column: str
    target_schema: str
    target_table: str
    target_column: str


class ColumnProfile(BaseModel):
    """Bounded-sample statistics for one column."""

    column: str
    null_fraction: Optional[float] = None
    distinct_count: Optional[int] = None
    distinct_fraction: Optional[float] = None
    sample_count: int = 0
    min: ScalarValue = None
    max: ScalarValue = None

    @property
    def has_statistics(self) -> bool:
        return self.null_fraction is not None


class TableProfile(BaseModel):
    """Column profiles for one table."""

    schema_name: Optional[str] = None
    name: str
    sampled_rows: int = 0
    columns: list[ColumnProfile] = Field(default_factory=list)


class DocumentField(BaseModel):
    """A field path observed in a document collection."""

    path: str = Field(..., description="Dot path; '[]' marks array elements")
    types: list[str] = Field(default_factory=list, description="Sorted observed value types")
    nullable: bool = Field(default=False)
    observed_count: int = Field(default=0, description="Sampled documents containing the path")

    @property
    def is_array(self) -> bool:
        return "array" in self.types


class Collection(BaseModel):
    """A document collection with the fields inferred from a sample."""

    database: Optional[str] = None
    name: str
    document_sample_size: int = 0
    fields: list[DocumentField] = Field(default_factory=list)
    document_count: Optional[int] = Field(None, description="Best-effort document count")


class FieldProfile(BaseModel):
    """Bounded-sample statistics for one document field path."""

    path: str
    null_fraction: Optional[float] = None
    distinct_count: Optional[int] = None
    sample_count: int = 0


class CollectionProfile(BaseModel):
    """Field profiles for one collection."""

    name: str
    sampled_documents: int = 0
    fields: list[FieldProfile] = Field(default_factory=list)


class RelationalSnapshot(BaseModel):
    """Structural snapshot of a relational store."""

    kind: Literal["relational"] = "relational"
    tables: list[Table] = Field(default_factory=list)
    foreign_keys: list[ForeignKeyConstraint] = Field(default_factory=list)
    profiles: list[TableProfile] = Field(default_factory=list)


class DocumentSnapshot(BaseModel):
    """Structural snapshot of a document store."""

    kind: Literal["document"] = "document"
    database: Optional[str] = None
    collections: list[Collection] = Field(default_factory=list)
    profiles: list[CollectionProfile] = Field(default_factory=list)


Snapshot = Annotated[
    Union[RelationalSnapshot, DocumentSnapshot],
    Field(discriminator="kind"),
]
