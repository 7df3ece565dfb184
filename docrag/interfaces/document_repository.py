"""Abstract base class for document and category persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod

from docrag.models.document import Category, Document, DocumentStatus


# Concrete implementations: SQLiteDocumentRepository
# Located in: docrag/providers/store/
class IDocumentRepository(ABC):
    """CRUD contract for Document and Category rows.

    Deleting a document must cascade to its chunks.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they do not exist."""

    # -- Documents -------------------------------------------------------

    @abstractmethod
    async def create_document(self, document: Document) -> Document:
        """Insert *document* and return it with timestamps populated."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return the document, or ``None`` if it does not exist."""

    @abstractmethod
    async def list_documents(self, category_id: str | None = None) -> list[Document]:
        """Return documents, newest first, optionally filtered by category."""

    @abstractmethod
    async def mark_status(
        self,
        document_id: str,
        status: DocumentStatus,
        chunk_count: int | None = None,
        processed: bool = False,
    ) -> Document:
        """Persist a status transition.

        Parameters
        ----------
        document_id:
            The document to update.
        status:
            New lifecycle status.
        chunk_count:
            New chunk count; ``None`` leaves the stored value unchanged.
        processed:
            When ``True`` also refresh ``processed_at``.  ``updated_at`` is
            refreshed on every call.

        Raises
        ------
        docrag.utils.errors.NotFoundError
            If the document does not exist.
        docrag.utils.errors.PersistenceError
            If the write fails.
        """

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """Delete the row (chunks cascade).  Return ``False`` if it was absent."""

    # -- Categories ------------------------------------------------------

    @abstractmethod
    async def create_category(self, category: Category) -> Category:
        """Insert *category* and return it with timestamps populated."""

    @abstractmethod
    async def get_category(self, category_id: str) -> Category | None:
        """Return the category, or ``None`` if it does not exist."""

    @abstractmethod
    async def list_categories(self, active_only: bool = False) -> list[Category]:
        """Return categories ordered by name."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this repository."""
