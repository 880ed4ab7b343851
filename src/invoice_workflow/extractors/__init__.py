"""Extractors module for the invoice workflow application.

This module contains document text extraction, document loading and the
OpenAI-backed extraction oracle.
"""

from .document_loader import DocumentLoader, LoadedDocument
from .extraction_oracle import ExtractionOracle, build_extraction_schema
from .text_extractor import TextExtractor

__all__ = [
    "TextExtractor",
    "DocumentLoader",
    "LoadedDocument",
    "ExtractionOracle",
    "build_extraction_schema",
]
