"""Document loader for the invoice workflow application.

Fetches job documents by URL and turns them into content parts for the
extraction model: PDFs become extracted text, scanned images are passed
through as base64 data URLs.
"""

import base64
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import requests

from ..config import Config
from ..exceptions import DataExtractionError, PDFProcessingError
from ..validators import DocumentValidator
from .text_extractor import TextExtractor

__all__ = ["DocumentLoader", "LoadedDocument"]

logger = logging.getLogger(__name__)


@dataclass
class LoadedDocument:
    """A fetched and validated document.

    Attributes:
        name: File name derived from the URL (or content type)
        content_type: MIME type of the document
        content: Raw bytes
        text: Extracted text for PDFs, None for images
    """
    name: str
    content_type: str
    content: bytes
    text: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.text is None

    def to_content_part(self, index: int) -> Dict[str, Any]:
        """Render the document as an OpenAI chat message content part."""
        if self.is_image:
            encoded = base64.b64encode(self.content).decode("ascii")
            return {
                "type": "image_url",
                "image_url": {"url": f"data:{self.content_type};base64,{encoded}"},
            }
        return {
            "type": "text",
            "text": f"Document {index} ({self.name}):\n{self.text[:Config.MAX_DOCUMENT_CHARS]}",
        }


class DocumentLoader:
    """Downloads, validates and converts job documents.

    Supports ``http(s)://`` URLs (fetched with requests) and ``file://``
    URLs such as those produced by local blob storage.
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: int = Config.DOWNLOAD_TIMEOUT) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    def load(self, file_urls: List[str]) -> List[LoadedDocument]:
        """Load every URL in order.

        Raises:
            DataExtractionError: If no URLs are given or a download fails
            ValidationError: If a document fails validation
            PDFProcessingError: If a PDF yields no text
        """
        if not file_urls:
            raise DataExtractionError("No files provided for extraction")
        return [self.load_one(url) for url in file_urls]

    def load_one(self, url: str) -> LoadedDocument:
        content, content_type = self._fetch(url)
        name = self._file_name(url, content_type)
        DocumentValidator.validate_document(content, name)

        if DocumentValidator.is_image(name):
            content_type = mimetypes.guess_type(name)[0] or content_type
            logger.debug("Loaded image %s (%d bytes)", name, len(content))
            return LoadedDocument(name=name, content_type=content_type, content=content)

        try:
            text = TextExtractor.extract_text(content)
        except PDFProcessingError as e:
            raise PDFProcessingError(f"{name}: {str(e)}")
        logger.debug("Loaded PDF %s (%d chars)", name, len(text))
        return LoadedDocument(name=name, content_type="application/pdf", content=content, text=text)

    def _fetch(self, url: str) -> Tuple[bytes, str]:
        parsed = urlparse(url)
        if parsed.scheme == "file":
            path = url2pathname(unquote(parsed.path))
            try:
                with open(path, "rb") as fh:
                    content = fh.read()
            except OSError as e:
                raise DataExtractionError(f"Failed to read {url}: {str(e)}")
            return content, mimetypes.guess_type(path)[0] or "application/pdf"

        if parsed.scheme in ("http", "https"):
            try:
                response = self.session.get(url, timeout=self.timeout)
                response.raise_for_status()
            except requests.RequestException as e:
                raise DataExtractionError(f"Failed to fetch {url}: {str(e)}")
            content_type = response.headers.get("content-type") or "application/pdf"
            return response.content, content_type.split(";")[0].strip()

        raise DataExtractionError(f"Unsupported file URL: {url}")

    @staticmethod
    def _file_name(url: str, content_type: str) -> str:
        name = PurePosixPath(unquote(urlparse(url).path)).name or "document"
        if PurePosixPath(name).suffix.lower() in Config.ALLOWED_EXTENSIONS:
            return name
        extension = mimetypes.guess_extension(content_type) or ".pdf"
        return f"{name}{extension}"
