"""Audit trail for crawl, connectivity and materialization operations."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from metadata_graph.core import get_logger

logger = get_logger(__name__)


class AuditEventType(str, Enum):
    """Types of audit events."""

    # Crawl events
    CRAWL_STARTED = "metadata.crawl.started"
    CRAWL_COMPLETED = "metadata.crawl.completed"
    CRAWL_FAILED = "metadata.crawl.failed"

    # Connectivity events
    CONNECTIVITY_SUCCESS = "connectivity.check.success"
    CONNECTIVITY_FAILED = "connectivity.check.failed"

    # Graph events
    MATERIALIZE_COMPLETED = "graph.materialize.completed"
    MATERIALIZE_FAILED = "graph.materialize.failed"


@dataclass
class AuditEvent:
    """An audit log event."""

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_type: AuditEventType = AuditEventType.CRAWL_STARTED
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source_id: Optional[str] = None
    source_kind: Optional[str] = None
    status: str = "success"
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/storage."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "source_id": self.source_id,
            "source_kind": self.source_kind,
            "status": self.status,
            "duration_ms": self.duration_ms,
            "error_message": self.error_message,
            "metadata": self.metadata,
        }


class AuditLogger:
    """Records audit events in memory and on the structured log."""

    def __init__(self, max_events: int = 10_000):
        self._events: list[AuditEvent] = []
        self._max_events = max_events

    def log(self, event: AuditEvent) -> None:
        """Log an audit event.

        Args:
            event: The audit event to log.
        """
        self._events.append(event)
        if len(self._events) > self._max_events:
            self._events = self._events[-self._max_events:]

        log = logger.error if event.status == "failure" else logger.info
        log(
            "audit_event",
            event_type=event.event_type.value,
            source_id=event.source_id,
            source_kind=event.source_kind,
            status=event.status,
            duration_ms=event.duration_ms,
            error_message=event.error_message,
        )

    def record(
        self,
        event_type: AuditEventType,
        source_id: str,
        source_kind: Optional[str] = None,
        status: str = "success",
        duration_ms: Optional[int] = None,
        error_message: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuditEvent:
        """Build and log an event.

        Returns:
            The logged audit event.
        """
        event = AuditEvent(
            event_type=event_type,
            source_id=source_id,
            source_kind=source_kind,
            status=status,
            duration_ms=duration_ms,
            error_message=error_message,
            metadata=metadata or {},
        )
        self.log(event)
        return event

    def get_events(
        self,
        event_type: Optional[AuditEventType] = None,
        source_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get audit events with optional filtering.

        Args:
            event_type: Filter by event type.
            source_id: Filter by source.
            limit: Maximum events to return.

        Returns:
            List of matching audit events, oldest first.
        """
        events = self._events

        if event_type:
            events = [e for e in events if e.event_type == event_type]

        if source_id:
            events = [e for e in events if e.source_id == source_id]

        return events[-limit:]
