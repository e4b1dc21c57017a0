"""Shared utilities: errors, logging, validation and concurrency helpers."""

from kbcore.utils.errors import (
    BackendError,
    ChunkError,
    ConfigurationError,
    KBCoreError,
    NotFoundError,
    ParseError,
    UnsupportedFilterError,
    UnsupportedOperationError,
    ValidationError,
)
from kbcore.utils.logging import configure_logging

__all__ = [
    "BackendError",
    "ChunkError",
    "ConfigurationError",
    "KBCoreError",
    "NotFoundError",
    "ParseError",
    "UnsupportedFilterError",
    "UnsupportedOperationError",
    "ValidationError",
    "configure_logging",
]
