"""Local disk attachment storage."""

import asyncio
import logging
import uuid
from pathlib import Path, PurePosixPath

from core.errors import StorageFailureError
from core.interfaces import StoredObject

logger = logging.getLogger(__name__)


class LocalStorage:
    """Attachment storage on the local filesystem.

    Files are written under ``base_path`` with a generated name and exposed
    as ``{public_prefix}/{generated name}``. Blocking I/O runs in a worker
    thread.
    """

    def __init__(self, base_path: str = "./uploads/documents", public_prefix: str = "/uploads/documents"):
        """
        Initialize local storage.

        Args:
            base_path: Base directory for file storage
            public_prefix: URL prefix recorded on the application
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_prefix = public_prefix.rstrip("/")

    def _path_for(self, url: str) -> Path:
        # Only the final component is honoured so a url cannot escape base_path
        return self.base_path / PurePosixPath(url).name

    async def store(self, data: bytes, name: str, content_type: str) -> StoredObject:
        """
        Save bytes under a generated, collision-free filename.

        Args:
            data: File contents
            name: Original filename, used for its extension
            content_type: MIME type

        Returns:
            Reference to the stored object
        """
        filename = f"{uuid.uuid4()}{PurePosixPath(name).suffix.lower()}"
        file_path = self.base_path / filename
        try:
            await asyncio.to_thread(file_path.write_bytes, data)
        except OSError as exc:
            logger.error(f"Failed to store {name} at {file_path}: {exc}")
            raise StorageFailureError(f"Failed to store {name}") from exc

        logger.info(f"Saved file to {file_path}")
        return StoredObject(
            url=f"{self.public_prefix}/{filename}",
            name=name,
            content_type=content_type,
            size=len(data),
        )

    async def delete(self, url: str) -> bool:
        """
        Delete a stored file.

        Args:
            url: Reference returned by ``store``

        Returns:
            True if deleted, False if it was already gone
        """
        file_path = self._path_for(url)
        try:
            await asyncio.to_thread(file_path.unlink)
        except FileNotFoundError:
            logger.debug(f"File already absent: {file_path}")
            return False
        except OSError as exc:
            raise StorageFailureError(f"Failed to delete {url}", url=url) from exc

        logger.info(f"Deleted file: {file_path}")
        return True

    async def exists(self, url: str) -> bool:
        return await asyncio.to_thread(self._path_for(url).exists)
