"""Unit tests for IngestionService -- the document lifecycle manager.

Runs against a real SQLite repository / chunk store and local storage in
``tmp_path``. The embedding service is the deterministic word-hash provider
from conftest, or the real OpenAI adapter over a mocked SDK client where the
retry loop itself matters.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import openai
import pytest

from docrag.config.settings import Settings
from docrag.models.document import Category, DocumentStatus, FormatFamily
from docrag.models.rag import DocumentChunk
from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from docrag.providers.storage.local_storage import LocalObjectStorage
from docrag.providers.store.sqlite_chunk_store import SQLiteChunkStore
from docrag.providers.store.sqlite_document_repository import SQLiteDocumentRepository
from docrag.services.ingestion.chunker import TextChunker
from docrag.services.ingestion.extractors import delimited
from docrag.services.ingestion.extractors.extractor import DocumentExtractor
from docrag.services.ingestion.ingestion_service import IngestionService
from docrag.utils.errors import NotFoundError, PersistenceError
from tests.conftest import WordHashEmbeddingProvider, store_document, word_vector

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_OPENAI_CLIENT_PATH = "docrag.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI"

_CHUNKER = TextChunker(
    chunk_size=120, overlap=10, min_chunk_length=10, lookback_floor=10, tabular_chunk_size=60
)


def _csv(rows: list[str]) -> bytes:
    return ("id,value\n" + "\n".join(rows)).encode("utf-8")


def _rows(count: int, poison_at: int | None = None) -> list[str]:
    return [
        f"row{i:02d},{'POISON' if i == poison_at else 'plain'}" for i in range(count)
    ]


def _expected_segments(data: bytes) -> list[str]:
    return _CHUNKER.chunk(delimited.extract_csv(data), FormatFamily.CSV)


class FailingBatchChunkStore(SQLiteChunkStore):
    """Chunk store whose batch insert always fails; single inserts work."""

    async def insert_chunks(self, chunks: list[DocumentChunk]) -> int:
        raise PersistenceError(message="batch rejected")


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


def _service(
    settings: Settings,
    repository: SQLiteDocumentRepository,
    storage: LocalObjectStorage,
    chunk_store: SQLiteChunkStore,
    embedding_provider: WordHashEmbeddingProvider,
    sleep: AsyncMock,
    **overrides,
) -> IngestionService:
    kwargs = {"batch_size": 3, "batch_delay": 0.0, "min_success_ratio": 0.0}
    kwargs.update(overrides)
    return IngestionService(
        repository=repository,
        storage=storage,
        extractor=DocumentExtractor(settings),
        chunker=_CHUNKER,
        embedding_provider=embedding_provider,
        chunk_store=chunk_store,
        sleep=sleep,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Successful runs
# ---------------------------------------------------------------------------


class TestProcessDocument:
    async def test_processes_csv_into_contiguous_chunks(
        self, settings, repository, storage, chunk_store, embedding_provider, sleep, category
    ) -> None:
        data = _csv(_rows(12))
        await store_document(repository, storage, data, name="table.csv", file_type="text/csv")
        expected = _expected_segments(data)
        assert len(expected) > 2

        service = _service(settings, repository, storage, chunk_store, embedding_provider, sleep)
        result = await service.process_document("doc-1")

        assert result.success is True
        assert result.status is DocumentStatus.PROCESSED
        assert result.chunks_processed == result.total_chunks == len(expected)
        assert result.error is None

        document = await repository.get_document("doc-1")
        assert document.status is DocumentStatus.PROCESSED
        assert document.chunk_count == len(expected)
        assert document.processed_at is not None

        chunks = await chunk_store.list_chunks("doc-1")
        assert [c.content for c in chunks] == expected
        assert [c.chunk_index for c in chunks] == list(range(len(expected)))
        assert chunks[0].metadata == {"length": len(expected[0]), "position": 0, "batch": 0}
        assert all(len(c.embedding) == embedding_provider.get_dimension() for c in chunks)

    async def test_failed_embedding_skips_chunk_and_keeps_indices_contiguous(
        self, settings, repository, storage, chunk_store, sleep, category
    ) -> None:
        data = _csv(_rows(12, poison_at=4))
        await store_document(repository, storage, data, file_type="text/csv")
        expected = _expected_segments(data)
        poisoned = [i for i, s in enumerate(expected) if "POISON" in s]
        assert len(poisoned) == 1

        provider = WordHashEmbeddingProvider(fail_on=("POISON",))
        service = _service(settings, repository, storage, chunk_store, provider, sleep)
        result = await service.process_document("doc-1")

        assert result.success is True
        assert result.status is DocumentStatus.PROCESSED
        assert result.total_chunks == len(expected)
        assert result.chunks_processed == len(expected) - 1

        chunks = await chunk_store.list_chunks("doc-1")
        assert [c.chunk_index for c in chunks] == list(range(len(expected) - 1))
        assert poisoned[0] not in [c.metadata["position"] for c in chunks]
        assert all("POISON" not in c.content for c in chunks)
        assert (await repository.get_document("doc-1")).chunk_count == len(expected) - 1

    async def test_embedding_recovering_on_third_attempt_still_stores_chunk(
        self, settings, repository, storage, chunk_store, sleep, category
    ) -> None:
        data = _csv(_rows(12, poison_at=4))
        await store_document(repository, storage, data, file_type="text/csv")
        expected = _expected_segments(data)

        attempts: dict[str, int] = {}

        async def _create(*, input: str, **_kwargs) -> MagicMock:  # noqa: A002
            attempts[input] = attempts.get(input, 0) + 1
            if "POISON" in input and attempts[input] <= 2:
                raise openai.APIError(message="Rate limit", request=MagicMock(), body=None)
            response = MagicMock()
            response.data = [MagicMock(embedding=word_vector(input))]
            return response

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(side_effect=_create)
        retry_sleep = AsyncMock()

        with patch(_OPENAI_CLIENT_PATH, return_value=mock_client):
            provider = OpenAIEmbeddingProvider(settings, sleep=retry_sleep)
            service = _service(settings, repository, storage, chunk_store, provider, sleep)
            result = await service.process_document("doc-1")

        assert result.success is True
        assert result.chunks_processed == result.total_chunks == len(expected)
        poisoned = next(s for s in expected if "POISON" in s)
        assert attempts[poisoned] == 3
        assert [c.args[0] for c in retry_sleep.await_args_list] == [2.0, 4.0]

        chunks = await chunk_store.list_chunks("doc-1")
        assert [c.content for c in chunks] == expected
        assert [c.chunk_index for c in chunks] == list(range(len(expected)))

    async def test_min_success_ratio_enforced(
        self, settings, repository, storage, chunk_store, sleep, category
    ) -> None:
        data = _csv(_rows(12, poison_at=4))
        await store_document(repository, storage, data, file_type="text/csv")

        provider = WordHashEmbeddingProvider(fail_on=("POISON",))
        service = _service(
            settings, repository, storage, chunk_store, provider, sleep, min_success_ratio=0.99
        )
        result = await service.process_document("doc-1")

        assert result.success is False
        assert result.status is DocumentStatus.ERROR
        assert "minimum ratio" in result.error
        assert result.chunks_processed == result.total_chunks - 1
        assert (await repository.get_document("doc-1")).status is DocumentStatus.ERROR

    async def test_every_embedding_failing_ends_in_error(
        self, settings, repository, storage, chunk_store, sleep, category
    ) -> None:
        data = _csv(_rows(6))
        await store_document(repository, storage, data, file_type="text/csv")

        provider = WordHashEmbeddingProvider(fail_on=("id",))
        service = _service(settings, repository, storage, chunk_store, provider, sleep)
        result = await service.process_document("doc-1")

        assert result.success is False
        assert result.status is DocumentStatus.ERROR
        assert result.chunks_processed == 0
        assert "No chunks stored" in result.error
        assert (await repository.get_document("doc-1")).chunk_count == 0

    async def test_batch_insert_failure_falls_back_to_single_inserts(
        self, settings, repository, storage, embedding_provider, sleep, category
    ) -> None:
        chunk_store = FailingBatchChunkStore(settings.database_path)
        await chunk_store.initialize()
        data = _csv(_rows(12))
        await store_document(repository, storage, data, file_type="text/csv")

        service = _service(settings, repository, storage, chunk_store, embedding_provider, sleep)
        result = await service.process_document("doc-1")

        assert result.success is True
        assert result.chunks_processed == result.total_chunks
        assert await chunk_store.count_chunks("doc-1") == result.total_chunks

    async def test_pause_between_batches(
        self, settings, repository, storage, chunk_store, embedding_provider, sleep, category
    ) -> None:
        data = _csv(_rows(12))
        await store_document(repository, storage, data, file_type="text/csv")
        segments = len(_expected_segments(data))

        service = _service(
            settings,
            repository,
            storage,
            chunk_store,
            embedding_provider,
            sleep,
            batch_size=1,
            batch_delay=0.5,
        )
        await service.process_document("doc-1")

        assert sleep.await_count == segments - 1
        assert all(c.args[0] == 0.5 for c in sleep.await_args_list)


# ---------------------------------------------------------------------------
# Fatal failures
# ---------------------------------------------------------------------------


class TestFatalFailures:
    async def test_too_little_text(
        self, settings, repository, storage, chunk_store, embedding_provider, sleep, category
    ) -> None:
        await store_document(repository, storage, b"hello")

        service = _service(settings, repository, storage, chunk_store, embedding_provider, sleep)
        result = await service.process_document("doc-1")

        assert result.success is False
        assert result.status is DocumentStatus.ERROR
        assert result.chunks_processed == 0
        assert "insufficient text" in result.error
        document = await repository.get_document("doc-1")
        assert document.status is DocumentStatus.ERROR
        assert document.chunk_count == 0
        assert embedding_provider.calls == []

    async def test_missing_object_in_storage(
        self, settings, repository, storage, chunk_store, embedding_provider, sleep, category
    ) -> None:
        document = await store_document(repository, storage, b"Some perfectly fine text body.")
        await storage.delete(document.file_path)

        service = _service(settings, repository, storage, chunk_store, embedding_provider, sleep)
        result = await service.process_document("doc-1")

        assert result.success is False
        assert result.status is DocumentStatus.ERROR
        assert "Object not found" in result.error
        assert (await repository.get_document("doc-1")).status is DocumentStatus.ERROR

    async def test_unknown_document_raises_without_writes(
        self, settings, repository, storage, chunk_store, embedding_provider, sleep, category
    ) -> None:
        service = _service(settings, repository, storage, chunk_store, embedding_provider, sleep)
        with pytest.raises(NotFoundError):
            await service.process_document("ghost")
        with pytest.raises(NotFoundError):
            await service.reprocess_document("ghost")
        assert await repository.list_documents() == []


# ---------------------------------------------------------------------------
# Reprocessing
# ---------------------------------------------------------------------------


class TestReprocess:
    async def test_reprocess_replaces_previous_chunks(
        self, settings, repository, storage, chunk_store, embedding_provider, sleep, category
    ) -> None:
        document = await store_document(
            repository, storage, _csv(_rows(12)), file_type="text/csv"
        )
        service = _service(settings, repository, storage, chunk_store, embedding_provider, sleep)
        first = await service.process_document("doc-1")

        new_data = _csv(["fresh01,new", "fresh02,new"])
        await storage.upload(document.file_path, new_data)
        second = await service.reprocess_document("doc-1")

        assert second.success is True
        assert second.total_chunks < first.total_chunks
        chunks = await chunk_store.list_chunks("doc-1")
        assert [c.content for c in chunks] == _expected_segments(new_data)
        assert all("row" not in c.content for c in chunks)
        assert (await repository.get_document("doc-1")).chunk_count == len(chunks)

    async def test_fatal_reprocess_keeps_previous_chunks(
        self, settings, repository, storage, chunk_store, embedding_provider, sleep, category
    ) -> None:
        document = await store_document(
            repository, storage, _csv(_rows(12)), file_type="text/csv"
        )
        service = _service(settings, repository, storage, chunk_store, embedding_provider, sleep)
        first = await service.process_document("doc-1")

        await storage.delete(document.file_path)
        second = await service.reprocess_document("doc-1")

        assert second.success is False
        after = await repository.get_document("doc-1")
        assert after.status is DocumentStatus.ERROR
        assert after.chunk_count == first.chunks_processed
        assert await chunk_store.count_chunks("doc-1") == first.chunks_processed


@pytest.fixture
async def second_category(repository: SQLiteDocumentRepository) -> Category:
    return await repository.create_category(Category(id="cat-2", name="Other"))


async def test_documents_are_processed_independently(
    settings, repository, storage, chunk_store, embedding_provider, sleep, category, second_category
) -> None:
    await store_document(repository, storage, _csv(_rows(6)), document_id="a", file_type="text/csv")
    await store_document(
        repository,
        storage,
        _csv(_rows(6)),
        document_id="b",
        category_id="cat-2",
        file_type="text/csv",
    )
    service = _service(settings, repository, storage, chunk_store, embedding_provider, sleep)

    await service.process_document("a")

    assert await chunk_store.count_chunks("a") > 0
    assert await chunk_store.count_chunks("b") == 0
    assert (await repository.get_document("b")).status is DocumentStatus.PENDING
