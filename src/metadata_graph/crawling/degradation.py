"""Warning collection for probes that degrade instead of failing."""

from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from metadata_graph.core import get_logger
from metadata_graph.core.errors import ErrorCategorizer, ErrorCategory
from metadata_graph.models.crawl import AvailableFeatures, CrawlWarning, WarningLevel

logger = get_logger(__name__)

RowModel = TypeVar("RowModel", bound=BaseModel)


def parse_catalog_row(model: type[RowModel], row: dict[str, Any], catalog: str) -> Optional[RowModel]:
    """Validate one catalog row; a malformed row is logged and skipped.

    Args:
        model: Expected row shape
        row: Raw row from the adapter
        catalog: Catalog name used in the log entry

    Returns:
        The parsed row, or None when the row does not match the shape
    """
    try:
        return model.model_validate(row)
    except ValidationError as e:
        logger.warning(
            "malformed_catalog_row",
            catalog=catalog,
            errors=e.error_count(),
            row=row,
        )
        return None


class WarningCollector:
    """Single channel through which probes report degraded outcomes.

    Every warning is kept for the crawl result and also emitted on the
    structured log at the matching level, bound with the source id.
    """

    def __init__(self, source_id: str, log=None):
        self.source_id = source_id
        self._log = (log or logger).bind(source_id=source_id)
        self._warnings: list[CrawlWarning] = []
        self.permission_denied = False

    @property
    def warnings(self) -> list[CrawlWarning]:
        return list(self._warnings)

    def __len__(self) -> int:
        return len(self._warnings)

    def add(
        self,
        level: WarningLevel,
        feature: str,
        message: str,
        suggestion: Optional[str] = None,
    ) -> CrawlWarning:
        """Record a warning and log it.

        Args:
            level: Severity
            feature: Probe or catalog feature that degraded
            message: What went wrong
            suggestion: Remediation hint

        Returns:
            The recorded warning
        """
        warning = CrawlWarning(level=level, feature=feature, message=message, suggestion=suggestion)
        self._warnings.append(warning)
        getattr(self._log, level.value)(
            "crawl_warning",
            feature=feature,
            message=message,
            suggestion=suggestion,
        )
        return warning

    def add_from_error(
        self,
        error: BaseException,
        feature: str,
        message: Optional[str] = None,
        level: WarningLevel = WarningLevel.WARNING,
        suggestion: Optional[str] = None,
    ) -> CrawlWarning:
        """Record a warning describing a caught probe failure.

        The error is categorized to pick a default suggestion and to track
        permission failures.
        """
        category = ErrorCategorizer.categorize(error)
        if category == ErrorCategory.PERMISSION:
            self.permission_denied = True
        text = f"{message}: {error}" if message else str(error)
        return self.add(
            level,
            feature,
            text,
            suggestion or ErrorCategorizer.SUGGESTIONS[category],
        )

    def features(
        self,
        has_row_counts: bool,
        has_statistics: bool,
        has_comments: bool,
    ) -> AvailableFeatures:
        """Summarize which capabilities the crawl could use."""
        return AvailableFeatures(
            has_row_counts=has_row_counts,
            has_statistics=has_statistics,
            has_comments=has_comments,
            has_permission_errors=self.permission_denied,
        )
