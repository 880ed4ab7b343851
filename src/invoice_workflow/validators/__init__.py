"""Validators module for the invoice workflow application.

This module contains validation classes for job documents.
"""

from .validators import DocumentValidator

__all__ = ["DocumentValidator"]
