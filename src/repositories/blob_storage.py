"""
Local Blob Storage for uploaded files.
Writes upload streams to uniquely named files under the upload directory.
"""
import logging
import os
import re
import time
import uuid
from pathlib import Path
from typing import BinaryIO, Optional, Tuple
from src.core import config
from src.core.exceptions import BlobStorageException

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class LocalBlobStorage:
    """Repository for blob files on local disk."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or config.settings.upload_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def generate_name(self, filename: str) -> str:
        """
        Generate a collision-resistant blob name.

        Format: {epoch_ms}-{random_hex}-{sanitized_filename}
        """
        base = _UNSAFE_CHARS.sub("_", os.path.basename(filename or "")) or "upload"
        return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}-{base}"

    def open_for_write(self, name: str) -> Tuple[str, BinaryIO]:
        """
        Open a new blob for binary writing.

        Returns:
            Tuple of (blob path, writable handle)

        Raises:
            BlobStorageException: If the blob cannot be opened
        """
        path = self.root / name
        try:
            handle = path.open("xb")
        except OSError as e:
            raise BlobStorageException(f"Failed to open blob for write: {str(e)}") from e
        return str(path), handle

    def exists(self, path: str) -> bool:
        return bool(path) and Path(path).is_file()

    def delete(self, path: str) -> bool:
        """Delete a blob. Returns False when it was already gone."""
        try:
            Path(path).unlink()
        except FileNotFoundError:
            logger.info("Blob already missing: %s", path)
            return False
        return True

    def stat(self, path: str) -> int:
        """
        Return blob size in bytes.

        Raises:
            BlobStorageException: If the blob cannot be read
        """
        try:
            return Path(path).stat().st_size
        except OSError as e:
            raise BlobStorageException(f"Failed to stat blob: {str(e)}") from e
