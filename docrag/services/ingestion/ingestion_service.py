"""Document lifecycle manager: the ingestion pipeline for one document.

Pipeline stages: **fetch -> download -> extract -> chunk -> clear -> embed + store**.

:class:`IngestionService` coordinates five collaborators (document
repository, object storage, extractor, chunker, embedding provider, chunk
store) without any of them knowing about each other.  All of them are
injected, so tests swap in fakes and production swaps providers in
``docrag/main.py``.

Status transitions::

    pending --> processing --> processed   (at least one chunk stored)
                          \\-> error       (fatal step failed, or nothing stored)

``processing`` is persisted before any work starts, so a crash mid-run
leaves the document visibly ``processing``.  Every path that returns from
:meth:`IngestionService.process_document` after that point has written a
terminal status.

Failure classes:

* fatal (run ends in ``error``): download, extraction, empty chunk set,
  and anything unexpected
* per-chunk (chunk skipped, run continues): embedding after retries,
  persistence after the single-insert fallback
* ignored: failure to clear the previous chunk set (new rows overwrite by
  ``(document_id, chunk_index)``)
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Awaitable, Callable

import structlog

from docrag.models.document import DocumentStatus
from docrag.models.rag import DocumentChunk, ProcessingResult
from docrag.utils.concurrency import batched, gather_settled
from docrag.utils.errors import (
    DocRagError,
    EmptyChunkSetError,
    NotFoundError,
    PersistenceError,
)

if TYPE_CHECKING:
    from docrag.interfaces.chunk_store import IChunkStore
    from docrag.interfaces.document_repository import IDocumentRepository
    from docrag.interfaces.embedding_provider import IEmbeddingProvider
    from docrag.interfaces.object_storage import IObjectStorage
    from docrag.services.ingestion.chunker import TextChunker
    from docrag.services.ingestion.extractors.extractor import DocumentExtractor

logger = structlog.get_logger(logger_name=__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class IngestionService:
    """Runs the ingestion pipeline for one document at a time.

    Parameters
    ----------
    repository:
        Document rows and status transitions.
    storage:
        Raw uploaded bytes.
    extractor:
        Format-dispatching text extractor.
    chunker:
        Format-aware segmenter.
    embedding_provider:
        Turns each segment into a vector (retries internally).
    chunk_store:
        Persists chunk rows.
    batch_size:
        Segments embedded concurrently per batch.
    batch_delay:
        Seconds to pause between batches.
    min_success_ratio:
        Fraction of produced chunks that must be stored for the run to end
        in ``processed``.  ``0.0`` means a single stored chunk is enough.
    sleep:
        Coroutine used for the inter-batch pause.
    """

    def __init__(
        self,
        repository: IDocumentRepository,
        storage: IObjectStorage,
        extractor: DocumentExtractor,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        chunk_store: IChunkStore,
        batch_size: int = 10,
        batch_delay: float = 0.1,
        min_success_ratio: float = 0.0,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._repository = repository
        self._storage = storage
        self._extractor = extractor
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._chunk_store = chunk_store
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._min_success_ratio = min_success_ratio
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_document(self, document_id: str) -> ProcessingResult:
        """Run the full pipeline for *document_id* and record the outcome.

        Returns
        -------
        ProcessingResult
            ``success`` is ``True`` only when the document ended in
            ``processed``.  Fatal failures are reported here, not raised.

        Raises
        ------
        NotFoundError
            If the document does not exist.  Nothing is written in that case.
        """
        document = await self._repository.get_document(document_id)
        if document is None:
            raise NotFoundError(message=f"Document not found: {document_id}")

        log = logger.bind(document_id=document_id)
        start = time.perf_counter()
        total_chunks = 0

        try:
            await self._repository.mark_status(document_id, DocumentStatus.PROCESSING)
            log.info("document_processing_started", name=document.name, file_type=document.file_type)

            data = await self._storage.download(document.file_path)
            extraction = await self._extractor.extract(data, document.file_type, document.name)

            segments = self._chunker.chunk(extraction.text, extraction.format_family)
            total_chunks = len(segments)
            if not segments:
                raise EmptyChunkSetError(message="No chunks produced")
            log.info(
                "document_chunked",
                format=extraction.format_family.value,
                chars=len(extraction.text),
                chunks=total_chunks,
            )

            try:
                removed = await self._chunk_store.delete_chunks(document_id)
                log.debug("previous_chunks_cleared", removed=removed)
            except PersistenceError as exc:
                log.warning("previous_chunks_clear_failed", error=str(exc))

            stored = await self._embed_and_store(document_id, segments, log)
            result = await self._finish(document_id, stored, total_chunks, log)
        except Exception as exc:  # noqa: BLE001 -- a run must never end in "processing"
            result = await self._fail(document_id, exc, total_chunks, log)

        log.info(
            "document_processing_finished",
            status=result.status.value,
            chunks_processed=result.chunks_processed,
            total_chunks=result.total_chunks,
            duration_s=round(time.perf_counter() - start, 2),
        )
        return result

    async def reprocess_document(self, document_id: str) -> ProcessingResult:
        """Reset *document_id* to ``pending`` and run the pipeline again.

        The previous chunk set is replaced by the new run's chunks.

        Raises
        ------
        NotFoundError
            If the document does not exist.
        """
        await self._repository.mark_status(document_id, DocumentStatus.PENDING)
        logger.info("document_reprocess_requested", document_id=document_id)
        return await self.process_document(document_id)

    # ------------------------------------------------------------------
    # Embedding + persistence
    # ------------------------------------------------------------------

    async def _embed_and_store(
        self,
        document_id: str,
        segments: list[str],
        log: structlog.BoundLogger,
    ) -> int:
        """Embed and persist every segment in paced batches.

        Stored ``chunk_index`` values come from a running counter of
        successful inserts, so they stay contiguous when chunks are skipped.
        The chunker ordinal is kept in ``metadata["position"]``.
        """
        stored = 0
        numbered = list(enumerate(segments))

        for batch_number, batch in batched(numbered, self._batch_size):
            if batch_number > 0 and self._batch_delay > 0:
                await self._sleep(self._batch_delay)

            results = await gather_settled(
                [self._embedding_provider.embed_single(text) for _, text in batch]
            )

            embedded: list[tuple[int, str, list[float]]] = []
            for (position, text), result in zip(batch, results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    log.warning(
                        "chunk_embedding_skipped",
                        position=position,
                        error_type=type(result).__name__,
                        error=str(result),
                    )
                    continue
                embedded.append((position, text, result))

            stored += await self._persist_batch(document_id, embedded, stored, batch_number, log)

        return stored

    async def _persist_batch(
        self,
        document_id: str,
        embedded: list[tuple[int, str, list[float]]],
        next_index: int,
        batch_number: int,
        log: structlog.BoundLogger,
    ) -> int:
        """Insert one batch; fall back to one-by-one inserts if the batch fails."""
        if not embedded:
            return 0

        chunks = [
            DocumentChunk(
                document_id=document_id,
                chunk_index=next_index + offset,
                content=text,
                embedding=vector,
                metadata={"length": len(text), "position": position, "batch": batch_number},
            )
            for offset, (position, text, vector) in enumerate(embedded)
        ]

        try:
            return await self._chunk_store.insert_chunks(chunks)
        except PersistenceError as exc:
            log.warning(
                "chunk_batch_insert_failed",
                batch=batch_number,
                size=len(chunks),
                error=str(exc),
            )

        persisted = 0
        for chunk in chunks:
            candidate = chunk.model_copy(update={"chunk_index": next_index + persisted})
            try:
                await self._chunk_store.insert_chunk(candidate)
            except PersistenceError as exc:
                log.warning(
                    "chunk_insert_skipped",
                    position=chunk.metadata["position"],
                    error=str(exc),
                )
                continue
            persisted += 1
        return persisted

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    async def _finish(
        self,
        document_id: str,
        stored: int,
        total_chunks: int,
        log: structlog.BoundLogger,
    ) -> ProcessingResult:
        ratio = stored / total_chunks if total_chunks else 0.0
        error: str | None = None

        if stored == 0:
            error = f"No chunks stored out of {total_chunks} produced"
        elif ratio < self._min_success_ratio:
            error = (
                f"Only {stored} of {total_chunks} chunks stored "
                f"(minimum ratio {self._min_success_ratio:.2f})"
            )
        elif stored < total_chunks:
            log.warning("document_processed_partially", stored=stored, total_chunks=total_chunks)

        status = DocumentStatus.ERROR if error else DocumentStatus.PROCESSED
        await self._repository.mark_status(
            document_id, status, chunk_count=stored, processed=True
        )
        return ProcessingResult(
            success=error is None,
            document_id=document_id,
            chunks_processed=stored,
            total_chunks=total_chunks,
            status=status,
            error=error,
        )

    async def _fail(
        self,
        document_id: str,
        exc: Exception,
        total_chunks: int,
        log: structlog.BoundLogger,
    ) -> ProcessingResult:
        """Force the document into ``error`` after a fatal failure."""
        summary = exc.message if isinstance(exc, DocRagError) else str(exc) or type(exc).__name__
        log.error(
            "document_processing_failed",
            error_type=type(exc).__name__,
            error=summary,
            exc_info=not isinstance(exc, DocRagError),
        )

        chunk_count: int | None = None
        try:
            chunk_count = await self._chunk_store.count_chunks(document_id)
        except Exception as count_exc:  # noqa: BLE001
            log.warning("chunk_count_unavailable", error=str(count_exc))

        try:
            await self._repository.mark_status(
                document_id, DocumentStatus.ERROR, chunk_count=chunk_count, processed=True
            )
        except DocRagError as status_exc:
            log.error("document_error_status_not_saved", error=str(status_exc))

        return ProcessingResult(
            success=False,
            document_id=document_id,
            chunks_processed=0,
            total_chunks=total_chunks,
            status=DocumentStatus.ERROR,
            error=summary,
        )
