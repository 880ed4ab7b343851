"""Local object storage for job documents and generated CSV files.

Mirrors the two-step upload flow of hosted storage: a caller asks for an
upload URL, posts the blob to it and gets back a storage id, which can
later be resolved to a retrievable ``file://`` URL.
"""

import logging
import mimetypes
import threading
import uuid
from pathlib import Path
from typing import Optional, Set, Union

from ..config import Config
from ..exceptions import StorageError

__all__ = ["BlobStorage"]

logger = logging.getLogger(__name__)

UPLOAD_SCHEME = "upload://"


class BlobStorage:
    """Filesystem-backed blob store.

    Attributes:
        root: Directory holding stored blobs
    """

    def __init__(self, root: Union[str, Path] = Config.STORAGE_DIR) -> None:
        self.root: Path = Path(root)
        self._pending: Set[str] = set()
        self._lock = threading.Lock()

    def generate_upload_url(self) -> str:
        """Return a single-use URL that ``upload`` accepts."""
        token = uuid.uuid4().hex
        with self._lock:
            self._pending.add(token)
        return f"{UPLOAD_SCHEME}{token}"

    def upload(self, upload_url: str, content: bytes,
               content_type: str = "application/octet-stream") -> str:
        """Store ``content`` against a previously issued upload URL.

        Returns:
            Storage id of the new blob

        Raises:
            StorageError: If the URL is unknown or already used, or the write fails
        """
        token = upload_url[len(UPLOAD_SCHEME):] if upload_url.startswith(UPLOAD_SCHEME) else ""
        with self._lock:
            if token not in self._pending:
                raise StorageError(f"Unknown or expired upload URL: {upload_url}")
            self._pending.discard(token)

        suffix = mimetypes.guess_extension(content_type.split(";")[0].strip()) or ""
        storage_id = f"{token}{suffix}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / storage_id).write_bytes(content)
        except OSError as e:
            raise StorageError(f"Failed to write blob {storage_id}: {str(e)}")
        logger.debug("Stored blob %s (%d bytes, %s)", storage_id, len(content), content_type)
        return storage_id

    def store(self, content: bytes, content_type: str = "application/octet-stream") -> str:
        """Upload in one call; returns the storage id."""
        return self.upload(self.generate_upload_url(), content, content_type)

    def get_url(self, storage_id: str) -> Optional[str]:
        """Resolve a storage id to a ``file://`` URL, or None if it does not exist."""
        path = self._path(storage_id)
        if not path.is_file():
            return None
        return path.resolve().as_uri()

    def read(self, storage_id: str) -> bytes:
        path = self._path(storage_id)
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read blob {storage_id}: {str(e)}")

    def _path(self, storage_id: str) -> Path:
        if not storage_id or "/" in storage_id or "\\" in storage_id or storage_id.startswith("."):
            raise StorageError(f"Invalid storage id: {storage_id!r}")
        return self.root / storage_id
