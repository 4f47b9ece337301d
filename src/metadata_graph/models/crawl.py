"""Crawl result envelope models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

from metadata_graph.models.snapshot import Snapshot
from metadata_graph.models.source import SourceKind


class WarningLevel(str, Enum):
    """Severity of a crawl warning."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class CrawlWarning(BaseModel):
    """Explains one gap in a crawl result."""

    level: WarningLevel = Field(..., description="Severity")
    feature: str = Field(..., description="Probe or catalog feature that degraded")
    message: str = Field(..., description="What went wrong")
    suggestion: Optional[str] = Field(None, description="Remediation hint")


class AvailableFeatures(BaseModel):
    """Capability summary derived from which probes succeeded."""

    has_row_counts: bool = False
    has_statistics: bool = False
    has_comments: bool = False
    has_permission_errors: bool = False


class CrawlResult(BaseModel):
    """Best-effort outcome of crawling one source.

    A result is always returned; gaps are described by ``warnings``.
    ``connected`` is False only when the initial connection failed, in which
    case ``data`` is an empty snapshot and the result must not be materialized.
    """

    source_id: str
    kind: SourceKind
    connected: bool = True
    data: Snapshot
    warnings: list[CrawlWarning] = Field(default_factory=list)
    available_features: AvailableFeatures = Field(default_factory=AvailableFeatures)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def warnings_at(self, level: WarningLevel) -> list[CrawlWarning]:
        return [w for w in self.warnings if w.level == level]

    def warnings_summary(self) -> dict:
        return {
            "count": len(self.warnings),
            "error_count": len(self.warnings_at(WarningLevel.ERROR)),
            "features": sorted({w.feature for w in self.warnings}),
        }


class ConnectivityResult(BaseModel):
    """Outcome of a connectivity check."""

    source_id: str
    status: Literal["connected", "error"]
    message: Optional[str] = None
