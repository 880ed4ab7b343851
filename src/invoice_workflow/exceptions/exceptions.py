"""Custom exceptions for the invoice workflow application.

This module contains all custom exception classes used throughout
the template matching, extraction workflow and auto-processing system.
"""

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


class PDFProcessingError(Exception):
    """Exception raised during document file processing operations.

    This exception is raised when there are issues with PDF file reading,
    parsing, or text extraction.
    """
    pass


class DataExtractionError(Exception):
    """Exception raised during data extraction operations.

    This exception is raised when the extraction oracle cannot be reached,
    keeps failing after its retry budget, or returns unusable output.
    """
    pass


class EmbeddingError(Exception):
    """Exception raised when a template embedding cannot be computed.

    Covers an unreachable embedding backend as well as vectors of
    unexpected dimensionality, which are never silently accepted.
    """
    pass


class DatabaseError(Exception):
    """Exception raised during database operations.

    This exception is raised when there are issues with database
    connectivity, queries, or data persistence.
    """
    pass


class ValidationError(Exception):
    """Exception raised during data validation.

    This exception is raised when input data fails validation checks
    such as file format, size, field definitions or settings values.
    """
    pass


class JobNotFoundError(Exception):
    """Exception raised when a job lookup returns nothing."""
    pass


class AuthorizationError(Exception):
    """Exception raised when a caller mutates a job they do not own."""
    pass


class InvalidTransitionError(Exception):
    """Exception raised for a workflow step or job status change that is not allowed."""
    pass


class StorageError(Exception):
    """Exception raised by the blob storage backend."""
    pass


class NotificationError(Exception):
    """Exception raised when a notification cannot be delivered."""
    pass
