"""Crawl pipeline: probes, producers, result envelope and audit trail."""

from metadata_graph.crawling.audit import AuditEvent, AuditEventType, AuditLogger
from metadata_graph.crawling.degradation import WarningCollector, parse_catalog_row
from metadata_graph.crawling.producers import (
    PRODUCERS,
    DocumentSnapshotProducer,
    RelationalSnapshotProducer,
    SnapshotProducer,
    producer_for,
)
from metadata_graph.crawling.profiler import profile_documents, profile_table, profile_collection
from metadata_graph.crawling.relationships import discover_foreign_keys
from metadata_graph.crawling.row_counts import count_collection_documents, count_table_rows
from metadata_graph.crawling.schema import (
    crawl_document_schema,
    crawl_relational_schema,
    infer_fields,
)
from metadata_graph.crawling.service import CrawlService, crawl

__all__ = [
    # Service
    "CrawlService",
    "crawl",
    # Producers
    "SnapshotProducer",
    "RelationalSnapshotProducer",
    "DocumentSnapshotProducer",
    "PRODUCERS",
    "producer_for",
    # Probes
    "crawl_relational_schema",
    "crawl_document_schema",
    "infer_fields",
    "profile_table",
    "profile_collection",
    "profile_documents",
    "discover_foreign_keys",
    "count_table_rows",
    "count_collection_documents",
    # Degradation
    "WarningCollector",
    "parse_catalog_row",
    # Audit
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
]
