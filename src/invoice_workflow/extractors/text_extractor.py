"""Text extractor for the invoice workflow application.

This module contains the TextExtractor class for extracting text content
from PDF files using the pdfplumber library.
"""

import io
import logging
from typing import List, Optional

import pdfplumber

from ..exceptions import PDFProcessingError

__all__ = ["TextExtractor"]

logger = logging.getLogger(__name__)


class TextExtractor:
    """Extracts text content from PDF files.

    Handles multi-page documents and keeps going when individual pages
    fail, so partially readable invoices still yield text.
    """

    @staticmethod
    def extract_text(pdf_bytes: bytes) -> str:
        """Extract text content from PDF file.

        Args:
            pdf_bytes: Raw PDF file content as bytes

        Returns:
            Extracted text content as a single string with page breaks

        Raises:
            PDFProcessingError: If PDF cannot be opened or contains no text
        """
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                if not pdf.pages:
                    raise PDFProcessingError("PDF contains no pages")

                text_parts: List[str] = []
                for i, page in enumerate(pdf.pages):
                    try:
                        page_text: Optional[str] = page.extract_text()
                        if page_text:
                            text_parts.append(f"--- Page {i + 1} ---\n{page_text}")
                    except Exception as e:
                        logger.warning("Failed to process page %d: %s", i + 1, e)
                        continue

                if not text_parts:
                    raise PDFProcessingError("Failed to extract text from any page")

                return "\n".join(text_parts)

        except PDFProcessingError:
            raise
        except Exception as e:
            raise PDFProcessingError(f"PDF reading error: {str(e)}")
