"""Custom exception classes and error categorization for metadata crawling."""

import asyncio
from enum import Enum
from typing import Optional


class MetadataGraphError(Exception):
    """Base exception for all metadata graph errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class ConfigurationError(MetadataGraphError):
    """Invalid source or store configuration."""

    def __init__(
        self,
        message: str,
        source_id: Optional[str] = None,
        field: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="CONFIGURATION", **kwargs)
        self.source_id = source_id
        self.field = field
        self.details.update({
            "source_id": source_id,
            "field": field,
        })


class SourceConnectionError(MetadataGraphError):
    """A connection to the underlying store could not be opened."""

    def __init__(
        self,
        message: str,
        source_id: Optional[str] = None,
        kind: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="SOURCE_CONNECTION", **kwargs)
        self.source_id = source_id
        self.kind = kind
        self.details.update({
            "source_id": source_id,
            "kind": kind,
        })


class ReadOnlyViolationError(MetadataGraphError):
    """A write-like statement was submitted to a read-only adapter."""

    def __init__(self, message: str, statement: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="READ_ONLY_VIOLATION", **kwargs)
        self.statement = statement
        self.details.update({
            "statement": statement[:100] if statement else None,
        })


class UnsupportedSourceError(MetadataGraphError):
    """No adapter or producer exists for the requested store kind."""

    def __init__(self, message: str, kind: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="UNSUPPORTED_SOURCE", **kwargs)
        self.kind = kind
        self.details.update({"kind": kind})


class GraphStorageError(MetadataGraphError):
    """Error during graph store operations."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        source_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="GRAPH_STORAGE", **kwargs)
        self.operation = operation
        self.source_id = source_id
        self.details.update({
            "operation": operation,
            "source_id": source_id,
        })


class ErrorCategory(str, Enum):
    """Categories used to classify probe failures."""

    PERMISSION = "permission"
    UNSUPPORTED = "unsupported"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    MALFORMED = "malformed"
    UNKNOWN = "unknown"


class ErrorCategorizer:
    """Classifies driver exceptions raised while probing a store."""

    EXCEPTION_CATEGORIES = {
        PermissionError: ErrorCategory.PERMISSION,
        asyncio.TimeoutError: ErrorCategory.TIMEOUT,
        TimeoutError: ErrorCategory.TIMEOUT,
        ConnectionError: ErrorCategory.CONNECTION,
        SourceConnectionError: ErrorCategory.CONNECTION,
    }

    # Checked in order; permission wins over "does not exist" because several
    # vendors report missing privileges as an unknown relation.
    MESSAGE_KEYWORDS = {
        ErrorCategory.PERMISSION: [
            "permission denied",
            "access denied",
            "not authorized",
            "unauthorized",
            "insufficient privilege",
            "requires authentication",
            "42501",
            "command denied",
        ],
        ErrorCategory.TIMEOUT: ["timeout", "timed out", "maxtimems", "exceeded time limit"],
        ErrorCategory.CONNECTION: [
            "connection refused",
            "connection reset",
            "could not connect",
            "server closed the connection",
            "serverselectiontimeout",
            "network",
        ],
        ErrorCategory.UNSUPPORTED: [
            "does not exist",
            "not supported",
            "unsupported",
            "no function matches",
            "not implemented",
            "unknown table",
            "catalog error",
        ],
        ErrorCategory.MALFORMED: ["validation error", "malformed", "invalid input syntax"],
    }

    SUGGESTIONS = {
        ErrorCategory.PERMISSION: "Grant SELECT on the catalog views and the affected objects.",
        ErrorCategory.UNSUPPORTED: "This store version does not expose the required catalog feature.",
        ErrorCategory.TIMEOUT: "Increase the client timeout or reduce the sample size.",
        ErrorCategory.CONNECTION: "Check network connectivity and credentials for this source.",
        ErrorCategory.MALFORMED: "The catalog returned unexpected data; check the store version.",
        ErrorCategory.UNKNOWN: "Inspect the store logs for details.",
    }

    @classmethod
    def categorize(cls, error: BaseException) -> ErrorCategory:
        """Categorize an exception.

        Args:
            error: The exception to categorize.

        Returns:
            ErrorCategory for the exception.
        """
        for exc_type, category in cls.EXCEPTION_CATEGORIES.items():
            if isinstance(error, exc_type):
                return category

        error_msg = str(error).lower()
        for category, keywords in cls.MESSAGE_KEYWORDS.items():
            if any(kw in error_msg for kw in keywords):
                return category

        return ErrorCategory.UNKNOWN

    @classmethod
    def is_connectivity_error(cls, error: BaseException) -> bool:
        return cls.categorize(error) in (ErrorCategory.CONNECTION, ErrorCategory.TIMEOUT)
