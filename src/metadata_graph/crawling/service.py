"""Crawl service: runs the probes for a source and builds the result envelope."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from metadata_graph.adapters import create_adapter
from metadata_graph.adapters.base import SourceAdapter
from metadata_graph.core import get_logger
from metadata_graph.core.errors import (
    GraphStorageError,
    MetadataGraphError,
    ReadOnlyViolationError,
    SourceConnectionError,
)
from metadata_graph.crawling.audit import AuditEventType, AuditLogger
from metadata_graph.crawling.degradation import WarningCollector
from metadata_graph.crawling.producers import producer_for
from metadata_graph.models.crawl import ConnectivityResult, CrawlResult, WarningLevel
from metadata_graph.models.source import CrawlOptions, Source
from metadata_graph.storage.materializer import GraphMaterializer, MaterializationSummary

logger = get_logger(__name__)

CONNECTION_FEATURE = "connection"

AdapterFactory = Callable[[Source], SourceAdapter]


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class CrawlService:
    """Crawls sources into best-effort results.

    A result is always returned once an adapter exists. Only an unreachable
    source yields ``connected=False``; every other failure is a warning.
    Read-only violations are programming errors and are re-raised.
    """

    def __init__(
        self,
        adapter_factory: AdapterFactory = create_adapter,
        audit_logger: Optional[AuditLogger] = None,
        log=None,
    ):
        self._adapter_factory = adapter_factory
        self.audit = audit_logger or AuditLogger()
        self._log = log or logger

    async def _close(self, adapter: SourceAdapter) -> None:
        try:
            await adapter.close()
        except Exception as e:
            self._log.warning("adapter_close_failed", source_id=adapter.source_id, error=str(e))

    async def crawl(self, source: Source, options: Optional[CrawlOptions] = None) -> CrawlResult:
        """Crawl one source.

        Args:
            source: Source to crawl
            options: Sample sizes; defaults apply when omitted

        Returns:
            The crawl result with snapshot, warnings and available features

        Raises:
            ConfigurationError: If the connection settings are invalid
            UnsupportedSourceError: If the source kind has no adapter
            ReadOnlyViolationError: If a probe issued a write-like statement
        """
        options = options or CrawlOptions()
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        kind = source.kind.value

        self.audit.record(AuditEventType.CRAWL_STARTED, source.id, kind)
        self._log.info("crawl_started", source_id=source.id, kind=kind)

        collector = WarningCollector(source.id, self._log)
        adapter: Optional[SourceAdapter] = None
        try:
            adapter = self._adapter_factory(source)
            producer = producer_for(source.kind.family, adapter)

            try:
                if not await adapter.health_check():
                    raise SourceConnectionError(
                        "Health check did not succeed",
                        source_id=source.id,
                        kind=kind,
                    )
            except ReadOnlyViolationError:
                raise
            except Exception as e:
                collector.add_from_error(
                    e,
                    CONNECTION_FEATURE,
                    "Could not connect to source",
                    level=WarningLevel.ERROR,
                )
                self.audit.record(
                    AuditEventType.CRAWL_FAILED,
                    source.id,
                    kind,
                    status="failure",
                    duration_ms=_elapsed_ms(start),
                    error_message=str(e),
                )
                return CrawlResult(
                    source_id=source.id,
                    kind=source.kind,
                    connected=False,
                    data=producer.empty_snapshot(adapter),
                    warnings=collector.warnings,
                    available_features=collector.features(
                        has_row_counts=False,
                        has_statistics=False,
                        has_comments=False,
                    ),
                    started_at=started_at,
                    finished_at=datetime.now(timezone.utc),
                )

            snapshot = await producer.produce(adapter, collector, options)
            result = CrawlResult(
                source_id=source.id,
                kind=source.kind,
                connected=True,
                data=snapshot,
                warnings=collector.warnings,
                available_features=producer.features(adapter, snapshot, collector),
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
            )
        except MetadataGraphError as e:
            self.audit.record(
                AuditEventType.CRAWL_FAILED,
                source.id,
                kind,
                status="failure",
                duration_ms=_elapsed_ms(start),
                error_message=str(e),
            )
            raise
        finally:
            if adapter is not None:
                await self._close(adapter)

        self.audit.record(
            AuditEventType.CRAWL_COMPLETED,
            source.id,
            kind,
            duration_ms=_elapsed_ms(start),
            metadata={
                "warnings": result.warnings_summary(),
                "features": result.available_features.model_dump(),
            },
        )
        self._log.info(
            "crawl_completed",
            source_id=source.id,
            kind=kind,
            warnings=len(result.warnings),
            duration_ms=_elapsed_ms(start),
        )
        return result

    async def check_connectivity(self, source: Source) -> ConnectivityResult:
        """Open a connection to the source and run its health check."""
        kind = source.kind.value
        try:
            adapter = self._adapter_factory(source)
        except MetadataGraphError as e:
            self.audit.record(
                AuditEventType.CONNECTIVITY_FAILED,
                source.id,
                kind,
                status="failure",
                error_message=str(e),
            )
            return ConnectivityResult(source_id=source.id, status="error", message=str(e))

        try:
            healthy = await adapter.health_check()
            message = None if healthy else "Health check did not succeed"
        except Exception as e:
            healthy = False
            message = str(e)
        finally:
            await self._close(adapter)

        if healthy:
            self.audit.record(AuditEventType.CONNECTIVITY_SUCCESS, source.id, kind)
            return ConnectivityResult(source_id=source.id, status="connected")

        self.audit.record(
            AuditEventType.CONNECTIVITY_FAILED,
            source.id,
            kind,
            status="failure",
            error_message=message,
        )
        return ConnectivityResult(source_id=source.id, status="error", message=message)

    async def crawl_and_materialize(
        self,
        source: Source,
        materializer: GraphMaterializer,
        options: Optional[CrawlOptions] = None,
    ) -> tuple[CrawlResult, Optional[MaterializationSummary]]:
        """Crawl a source and persist the result into the graph.

        Nothing is written when the source could not be reached.

        Returns:
            The crawl result and the materialization summary (None when
            nothing was written)

        Raises:
            GraphStorageError: If the graph transaction failed; the prior
                graph state is left intact.
        """
        result = await self.crawl(source, options)
        if not result.connected:
            return result, None

        start = time.monotonic()
        try:
            summary = await asyncio.to_thread(materializer.materialize, source, result)
        except GraphStorageError as e:
            self.audit.record(
                AuditEventType.MATERIALIZE_FAILED,
                source.id,
                source.kind.value,
                status="failure",
                duration_ms=_elapsed_ms(start),
                error_message=str(e),
            )
            raise

        self.audit.record(
            AuditEventType.MATERIALIZE_COMPLETED,
            source.id,
            source.kind.value,
            duration_ms=_elapsed_ms(start),
            metadata=summary.to_dict() if summary else {},
        )
        return result, summary


async def crawl(source: Source, options: Optional[CrawlOptions] = None) -> CrawlResult:
    """Crawl a source with the default adapter factory."""
    return await CrawlService().crawl(source, options)
