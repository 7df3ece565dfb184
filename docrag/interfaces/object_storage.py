"""Abstract base class for durable raw-file storage.

Keys are slash-separated paths namespaced per category, e.g.
``<category_id>/1718000000000-ab12cd.pdf``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: LocalObjectStorage
# Located in: docrag/providers/storage/
class IObjectStorage(ABC):
    """Contract for the bucket that holds uploaded document bytes."""

    @abstractmethod
    async def upload(self, path: str, data: bytes) -> None:
        """Store *data* under *path*, replacing any existing object.

        Raises
        ------
        docrag.utils.errors.StorageError
            If the write fails.
        """

    @abstractmethod
    async def download(self, path: str) -> bytes:
        """Return the bytes stored under *path*.

        Raises
        ------
        docrag.utils.errors.DownloadError
            If the object is missing or unreadable.
        """

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the object at *path*.  Deleting a missing object is a no-op.

        Raises
        ------
        docrag.utils.errors.StorageError
            If the delete fails.
        """

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Return ``True`` if an object is stored under *path*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this storage backend."""
