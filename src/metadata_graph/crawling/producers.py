"""Snapshot producers: one crawl strategy per store family."""

from abc import ABC, abstractmethod
from typing import ClassVar, Union

from metadata_graph.adapters.base import DocumentAdapter, RelationalAdapter, SourceAdapter
from metadata_graph.core.errors import UnsupportedSourceError
from metadata_graph.crawling.degradation import WarningCollector
from metadata_graph.crawling.profiler import profile_collections, profile_tables
from metadata_graph.crawling.relationships import discover_foreign_keys
from metadata_graph.crawling.row_counts import count_collections, count_tables
from metadata_graph.crawling.schema import crawl_document_schema, crawl_relational_schema
from metadata_graph.models.crawl import AvailableFeatures
from metadata_graph.models.snapshot import DocumentSnapshot, RelationalSnapshot
from metadata_graph.models.source import CrawlOptions, StoreFamily

AnySnapshot = Union[RelationalSnapshot, DocumentSnapshot]


class SnapshotProducer(ABC):
    """Runs every probe for one store family against an adapter.

    Structural discovery runs first; the remaining probes run one after
    another and each degrades on its own through the warning collector.
    """

    family: ClassVar[StoreFamily]

    @abstractmethod
    def empty_snapshot(self, adapter: SourceAdapter) -> AnySnapshot:
        """Snapshot reported when the source cannot be reached."""
        pass

    @abstractmethod
    async def produce(
        self,
        adapter: SourceAdapter,
        collector: WarningCollector,
        options: CrawlOptions,
    ) -> AnySnapshot:
        """Crawl the source into a snapshot."""
        pass

    @abstractmethod
    def features(
        self,
        adapter: SourceAdapter,
        snapshot: AnySnapshot,
        collector: WarningCollector,
    ) -> AvailableFeatures:
        """Derive the capability summary from the probe outcomes."""
        pass


class RelationalSnapshotProducer(SnapshotProducer):
    """Tables, foreign keys, row counts and column profiles."""

    family = StoreFamily.RELATIONAL

    def empty_snapshot(self, adapter: SourceAdapter) -> RelationalSnapshot:
        return RelationalSnapshot()

    async def produce(
        self,
        adapter: RelationalAdapter,
        collector: WarningCollector,
        options: CrawlOptions,
    ) -> RelationalSnapshot:
        tables = await crawl_relational_schema(adapter, collector)
        foreign_keys = await discover_foreign_keys(adapter, collector)
        await count_tables(adapter, collector, tables)
        profiles = await profile_tables(adapter, collector, tables, options.relational_profile_size())
        return RelationalSnapshot(tables=tables, foreign_keys=foreign_keys, profiles=profiles)

    def features(
        self,
        adapter: RelationalAdapter,
        snapshot: RelationalSnapshot,
        collector: WarningCollector,
    ) -> AvailableFeatures:
        return collector.features(
            has_row_counts=any(t.row_count is not None for t in snapshot.tables),
            has_statistics=any(
                c.has_statistics for profile in snapshot.profiles for c in profile.columns
            ),
            has_comments=adapter.dialect.supports_comments and bool(snapshot.tables),
        )


class DocumentSnapshotProducer(SnapshotProducer):
    """Collections, inferred fields, document counts and field profiles."""

    family = StoreFamily.DOCUMENT

    def empty_snapshot(self, adapter: DocumentAdapter) -> DocumentSnapshot:
        return DocumentSnapshot(database=adapter.database)

    async def produce(
        self,
        adapter: DocumentAdapter,
        collector: WarningCollector,
        options: CrawlOptions,
    ) -> DocumentSnapshot:
        collections = await crawl_document_schema(adapter, collector, options.schema_sample_size())
        await count_collections(adapter, collector, collections)
        profiles = await profile_collections(
            adapter, collector, collections, options.document_profile_size()
        )
        return DocumentSnapshot(database=adapter.database, collections=collections, profiles=profiles)

    def features(
        self,
        adapter: DocumentAdapter,
        snapshot: DocumentSnapshot,
        collector: WarningCollector,
    ) -> AvailableFeatures:
        return collector.features(
            has_row_counts=any(c.document_count is not None for c in snapshot.collections),
            has_statistics=any(
                f.null_fraction is not None for profile in snapshot.profiles for f in profile.fields
            ),
            has_comments=False,
        )


_ADAPTER_TYPES: dict[StoreFamily, type[SourceAdapter]] = {
    StoreFamily.RELATIONAL: RelationalAdapter,
    StoreFamily.DOCUMENT: DocumentAdapter,
}

PRODUCERS: dict[StoreFamily, SnapshotProducer] = {
    StoreFamily.RELATIONAL: RelationalSnapshotProducer(),
    StoreFamily.DOCUMENT: DocumentSnapshotProducer(),
}


def producer_for(family: StoreFamily, adapter: SourceAdapter) -> SnapshotProducer:
    """Look up the producer for a store family and check the adapter fits it.

    Raises:
        UnsupportedSourceError: If no producer exists or the adapter does not
            implement the family's capability surface.
    """
    producer = PRODUCERS.get(family)
    if producer is None or not isinstance(adapter, _ADAPTER_TYPES[family]):
        raise UnsupportedSourceError(
            f"No snapshot producer for {family.value} with {type(adapter).__name__}",
            kind=family.value,
        )
    return producer
