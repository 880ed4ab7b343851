"""Storage module for the invoice workflow application."""

from .blob_storage import BlobStorage

__all__ = ["BlobStorage"]
