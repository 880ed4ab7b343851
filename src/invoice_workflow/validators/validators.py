"""Validators module for the invoice workflow application.

This module contains validation classes for job documents including
file size checks, format validation, and extension verification.
"""

from pathlib import Path
from typing import Dict

from ..config import Config
from ..exceptions import ValidationError

__all__ = ["DocumentValidator"]

# extension -> leading bytes of a well-formed file
_MAGIC_NUMBERS: Dict[str, tuple] = {
    ".pdf": (b"%PDF",),
    ".png": (b"\x89PNG",),
    ".jpg": (b"\xff\xd8\xff",),
    ".jpeg": (b"\xff\xd8\xff",),
    ".gif": (b"GIF87a", b"GIF89a"),
    ".bmp": (b"BM",),
    ".webp": (b"RIFF",),
}


class DocumentValidator:
    """Validates job documents (PDFs and scanned images) before extraction.

    All validation methods raise ValidationError with a message naming
    the offending file.
    """

    @staticmethod
    def validate_document(content: bytes, filename: str) -> None:
        """Perform comprehensive document validation.

        Args:
            content: Raw file content as bytes
            filename: Original filename for error reporting

        Raises:
            ValidationError: If any validation check fails
        """
        DocumentValidator._validate_file_extension(filename)
        DocumentValidator._validate_file_size(content, filename)
        DocumentValidator._validate_format(content, filename)

    @staticmethod
    def is_image(filename: str) -> bool:
        return Path(filename).suffix.lower() in Config.IMAGE_EXTENSIONS

    @staticmethod
    def _validate_file_size(content: bytes, filename: str) -> None:
        """Validate file size within acceptable limits.

        Raises:
            ValidationError: If file size is outside acceptable range
        """
        if len(content) > Config.MAX_FILE_SIZE:
            raise ValidationError(
                f"File {filename} is too large. Maximum size: {Config.MAX_FILE_SIZE // (1024*1024)}MB"
            )

        if len(content) < Config.MIN_FILE_SIZE:
            raise ValidationError(f"File {filename} is too small or corrupted")

    @staticmethod
    def _validate_format(content: bytes, filename: str) -> None:
        """Check the magic number matches the file extension.

        Raises:
            ValidationError: If the content does not look like its extension
        """
        suffix = Path(filename).suffix.lower()
        if not content.startswith(_MAGIC_NUMBERS[suffix]):
            raise ValidationError(f"File {filename} is not a valid {suffix[1:].upper()} file")
        if suffix == ".webp" and content[8:12] != b"WEBP":
            raise ValidationError(f"File {filename} is not a valid WEBP file")

    @staticmethod
    def _validate_file_extension(filename: str) -> None:
        """Validate that the filename has a supported extension.

        Raises:
            ValidationError: If the extension is not supported
        """
        suffix = Path(filename).suffix.lower()
        if suffix not in Config.ALLOWED_EXTENSIONS:
            raise ValidationError(
                f"Invalid file extension. Expected one of {', '.join(Config.ALLOWED_EXTENSIONS)}, "
                f"got: {suffix or 'none'}"
            )
