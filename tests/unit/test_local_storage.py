"""Unit tests for LocalObjectStorage."""

from __future__ import annotations

from pathlib import Path

import pytest

from docrag.providers.storage.local_storage import LocalObjectStorage
from docrag.utils.errors import DownloadError, StorageError


@pytest.fixture()
def store(tmp_path: Path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_path, bucket="documents")


class TestLocalObjectStorage:
    async def test_upload_download_roundtrip(self, store: LocalObjectStorage, tmp_path: Path) -> None:
        await store.upload("cat-1/report.pdf", b"%PDF-1.7 bytes")

        assert (tmp_path / "documents" / "cat-1" / "report.pdf").is_file()
        assert await store.download("cat-1/report.pdf") == b"%PDF-1.7 bytes"
        assert await store.exists("cat-1/report.pdf") is True

    async def test_leading_slash_is_ignored(self, store: LocalObjectStorage) -> None:
        await store.upload("/cat-1/a.txt", b"x")
        assert await store.download("cat-1/a.txt") == b"x"

    async def test_download_missing_object(self, store: LocalObjectStorage) -> None:
        with pytest.raises(DownloadError, match="Object not found"):
            await store.download("cat-1/missing.txt")

    async def test_delete_is_idempotent(self, store: LocalObjectStorage) -> None:
        await store.upload("cat-1/a.txt", b"x")
        await store.delete("cat-1/a.txt")
        assert await store.exists("cat-1/a.txt") is False
        await store.delete("cat-1/a.txt")

    async def test_key_escaping_bucket_rejected(self, store: LocalObjectStorage) -> None:
        with pytest.raises(StorageError, match="escapes bucket"):
            await store.upload("../outside.txt", b"x")
        with pytest.raises(DownloadError):
            await store.download("../../etc/passwd")

    async def test_empty_key_rejected(self, store: LocalObjectStorage) -> None:
        with pytest.raises(StorageError, match="Empty storage key"):
            await store.upload("  ", b"x")

    def test_provider_name(self, store: LocalObjectStorage) -> None:
        assert store.get_provider_name() == "local_storage"
