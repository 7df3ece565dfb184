"""Abstract base class for chunk persistence and similarity search.

The store owns nearest-neighbour search; callers never compute similarity
themselves.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docrag.models.rag import DocumentChunk, SearchMatch


# Concrete implementations: SQLiteChunkStore
# Located in: docrag/providers/store/
class IChunkStore(ABC):
    """Contract for per-document chunk sets and category-scoped search.

    ``(document_id, chunk_index)`` is unique.  Inserting an existing key
    overwrites the stored row, so a run that could not delete the previous
    chunk set still converges on the new one.
    """

    @abstractmethod
    async def delete_chunks(self, document_id: str) -> int:
        """Delete every chunk of *document_id*.  Return the number removed.

        Idempotent: deleting an empty set returns 0.
        """

    @abstractmethod
    async def insert_chunks(self, chunks: list[DocumentChunk]) -> int:
        """Insert *chunks* in one transaction; all or nothing.

        Raises
        ------
        docrag.utils.errors.PersistenceError
            If the transaction fails.  Nothing is written in that case.
        """

    @abstractmethod
    async def insert_chunk(self, chunk: DocumentChunk) -> None:
        """Insert a single chunk.

        Raises
        ------
        docrag.utils.errors.PersistenceError
            If the write fails.
        """

    @abstractmethod
    async def replace_chunks(self, document_id: str, chunks: list[DocumentChunk]) -> int:
        """Atomically delete the old chunk set and insert *chunks*.

        Either the old set survives untouched or the new set fully replaces
        it.  Returns the number of chunks inserted.
        """

    @abstractmethod
    async def count_chunks(self, document_id: str) -> int:
        """Return how many chunks are stored for *document_id*."""

    @abstractmethod
    async def list_chunks(self, document_id: str) -> list[DocumentChunk]:
        """Return the stored chunks of *document_id* ordered by index."""

    @abstractmethod
    async def search(
        self,
        query_embedding: list[float],
        category_id: str | None,
        threshold: float,
        limit: int,
    ) -> list[SearchMatch]:
        """Return the closest chunks to *query_embedding*.

        Parameters
        ----------
        query_embedding:
            Vector produced by the same embedding model used at ingestion.
        category_id:
            Restrict results to documents of this category; ``None`` searches
            every category.
        threshold:
            Minimum cosine similarity; lower scores are excluded.
        limit:
            Maximum number of matches returned.

        Returns
        -------
        list[SearchMatch]
            Ordered by descending similarity.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
