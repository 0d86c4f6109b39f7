"""
Blob Storage

Stores run artifacts (currently the page screenshot) and returns a URL
for them. The pipeline treats uploads as best-effort.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class BlobStorage(ABC):
    """Abstract base class for blob storage backends."""

    @abstractmethod
    async def upload_blob(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Save bytes under ``key``. Returns a URL for the stored blob."""
        pass

    @abstractmethod
    async def load_blob(self, key: str) -> Optional[bytes]:
        """Load bytes by key."""
        pass


class FileBlobStorage(BlobStorage):
    """
    File system blob storage.

    Blobs are written under ``base_path``; URLs are built from
    ``public_url`` when set, otherwise ``file://`` paths are returned.
    """

    def __init__(self, base_path: Optional[str] = None, public_url: Optional[str] = None):
        """
        Initialize file storage.

        Args:
            base_path: Root directory for storage.
                      Defaults to ~/.siterefresh/blobs/
            public_url: Base URL the directory is served from
        """
        if base_path is None:
            base_path = os.getenv(
                "SITEREFRESH_STORAGE_PATH",
                str(Path.home() / ".siterefresh" / "blobs")
            )

        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_url = public_url.rstrip("/") if public_url else None

        logger.info(f"FileBlobStorage initialized at {self.base_path}")

    def _get_path(self, key: str) -> Path:
        """Get full path for a key."""
        safe_key = key.replace("..", "").lstrip("/")
        return self.base_path / safe_key

    def _write(self, path: Path, data: bytes):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def upload_blob(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        path = self._get_path(key)
        await asyncio.to_thread(self._write, path, data)
        logger.debug(f"Saved {len(data)} bytes ({content_type}) to {path}")

        relative = path.relative_to(self.base_path).as_posix()
        if self.public_url:
            return f"{self.public_url}/{relative}"
        return path.resolve().as_uri()

    async def load_blob(self, key: str) -> Optional[bytes]:
        path = self._get_path(key)
        if not path.exists():
            return None
        return await asyncio.to_thread(path.read_bytes)
