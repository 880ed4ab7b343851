"""Custom exceptions for the invoice workflow application.

This module contains all custom exception classes used throughout
the template matching, extraction workflow and auto-processing system.
"""

from .exceptions import (
    PDFProcessingError,
    DataExtractionError,
    EmbeddingError,
    DatabaseError,
    ValidationError,
    JobNotFoundError,
    AuthorizationError,
    InvalidTransitionError,
    StorageError,
    NotificationError,
)

__all__ = [
    "PDFProcessingError",
    "DataExtractionError",
    "EmbeddingError",
    "DatabaseError",
    "ValidationError",
    "JobNotFoundError",
    "AuthorizationError",
    "InvalidTransitionError",
    "StorageError",
    "NotificationError",
]
