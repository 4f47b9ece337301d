"""Core utilities for the metadata graph."""

from metadata_graph.core.logging import get_logger, configure_logging
from metadata_graph.core.errors import (
    MetadataGraphError,
    ConfigurationError,
    SourceConnectionError,
    ReadOnlyViolationError,
    UnsupportedSourceError,
    GraphStorageError,
    ErrorCategory,
    ErrorCategorizer,
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    # Errors
    "MetadataGraphError",
    "ConfigurationError",
    "SourceConnectionError",
    "ReadOnlyViolationError",
    "UnsupportedSourceError",
    "GraphStorageError",
    # Categorization
    "ErrorCategory",
    "ErrorCategorizer",
]
