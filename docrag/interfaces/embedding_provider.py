"""Abstract base class for text-embedding service providers.

Defines the contract for turning one text segment into a fixed-length vector.
Implementations wrap a remote embedding model; the ingestion pipeline and
the answer composer only ever see this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider -- text-embedding-3-small (or any OpenAI-compatible model)
# Located in: docrag/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by ingestion and retrieval."""

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Implementations retry transient failures (non-2xx responses,
        malformed bodies) with exponential backoff before giving up.

        Parameters
        ----------
        text:
            The text string to embed.

        Returns
        -------
        list[float]
            A non-empty embedding vector.

        Raises
        ------
        docrag.utils.errors.EmbeddingError
            If every attempt failed; the last failure is surfaced.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Example values: ``1536`` (``text-embedding-3-small``),
        ``3072`` (``text-embedding-3-large``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Must not make a network call.
        """
