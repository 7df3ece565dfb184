"""Filesystem-backed object storage.

Objects live under ``<storage_root>/<bucket>/<key>``.  Blocking file I/O is
pushed to a worker thread with ``asyncio.to_thread`` so large uploads do not
stall the event loop.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from docrag.interfaces.object_storage import IObjectStorage
from docrag.utils.errors import DownloadError, StorageError

logger = structlog.get_logger(logger_name=__name__)


class LocalObjectStorage(IObjectStorage):
    """Object storage rooted at a local directory."""

    def __init__(self, root: str | Path, bucket: str = "documents") -> None:
        self._bucket_root = (Path(root) / bucket).resolve()

    @property
    def bucket_root(self) -> Path:
        return self._bucket_root

    async def upload(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as exc:
            raise StorageError(
                message=f"Could not write {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("object_uploaded", path=path, size=len(data))

    async def download(self, path: str) -> bytes:
        try:
            target = self._resolve(path)
        except StorageError as exc:
            raise DownloadError(message=exc.message, provider_name=self.get_provider_name()) from exc
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError as exc:
            raise DownloadError(
                message=f"Object not found: {path}",
                provider_name=self.get_provider_name(),
            ) from exc
        except OSError as exc:
            raise DownloadError(
                message=f"Could not read {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(target.unlink, missing_ok=True)
        except OSError as exc:
            raise StorageError(
                message=f"Could not delete {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("object_deleted", path=path)

    async def exists(self, path: str) -> bool:
        target = self._resolve(path)
        return await asyncio.to_thread(target.is_file)

    def get_provider_name(self) -> str:
        return "local_storage"

    # ------------------------------------------------------------------

    def _resolve(self, path: str) -> Path:
        """Map a storage key to a file under the bucket root."""
        key = path.strip().lstrip("/")
        if not key:
            raise StorageError(message="Empty storage key", provider_name=self.get_provider_name())
        target = (self._bucket_root / key).resolve()
        if not target.is_relative_to(self._bucket_root):
            raise StorageError(
                message=f"Storage key escapes bucket: {path}",
                provider_name=self.get_provider_name(),
            )
        return target

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
