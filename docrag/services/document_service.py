"""Upload, download and delete glue around the document lifecycle.

Uploads land in object storage under ``<category_id>/<epoch_ms>-<random>.<ext>``
and get a ``pending`` row; processing is triggered separately so a slow or
failed pipeline run never loses an upload.  Deletes remove the stored object
first (best effort) and then the row, which cascades to the chunks.
"""

from __future__ import annotations

import secrets
import time
import uuid

import structlog

from docrag.interfaces.document_repository import IDocumentRepository
from docrag.interfaces.object_storage import IObjectStorage
from docrag.models.document import Category, Document, DocumentStatus, FormatFamily
from docrag.models.rag import ProcessingResult
from docrag.services.ingestion.extractors.detection import (
    FAMILY_CONTENT_TYPES,
    GENERIC_CONTENT_TYPE,
    detect_format,
    extension_for,
)
from docrag.services.ingestion.ingestion_service import IngestionService
from docrag.utils.errors import (
    NotFoundError,
    StorageError,
    UploadValidationError,
)

logger = structlog.get_logger(logger_name=__name__)


class DocumentService:
    """Document and category management on top of storage and the repository.

    Parameters
    ----------
    repository:
        Document and category rows.
    storage:
        Raw uploaded bytes.
    ingestion:
        Pipeline used by :meth:`trigger_processing`.
    max_upload_bytes:
        Uploads larger than this are rejected with HTTP 413 semantics.
    """

    def __init__(
        self,
        repository: IDocumentRepository,
        storage: IObjectStorage,
        ingestion: IngestionService,
        max_upload_bytes: int = 50 * 1024 * 1024,
    ) -> None:
        self._repository = repository
        self._storage = storage
        self._ingestion = ingestion
        self._max_upload_bytes = max_upload_bytes

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def upload_document(
        self,
        data: bytes,
        filename: str,
        content_type: str | None,
        category_id: str,
        uploaded_by: str | None = None,
    ) -> Document:
        """Validate and store an upload, then create its ``pending`` row.

        Raises
        ------
        NotFoundError
            If *category_id* does not exist.
        UploadValidationError
            415 for an unsupported format, 413 for an oversized file.
        StorageError
            If the bytes cannot be written.
        """
        category = await self._repository.get_category(category_id)
        if category is None:
            raise NotFoundError(message=f"Category not found: {category_id}")

        family = detect_format(content_type, filename)
        if family is FormatFamily.UNKNOWN:
            raise UploadValidationError(
                message=f"Unsupported file type: {content_type or 'unknown'} ({filename})",
                status_code=415,
            )
        if len(data) > self._max_upload_bytes:
            raise UploadValidationError(
                message=(
                    f"File too large: {len(data)} bytes. "
                    f"Maximum: {self._max_upload_bytes} bytes."
                ),
                status_code=413,
            )

        file_path = self._storage_key(category_id, filename, family)
        await self._storage.upload(file_path, data)

        declared = (content_type or "").split(";", 1)[0].strip().lower()
        file_type = declared if declared and declared != GENERIC_CONTENT_TYPE else FAMILY_CONTENT_TYPES[family]

        document = await self._repository.create_document(
            Document(
                id=str(uuid.uuid4()),
                category_id=category_id,
                name=filename,
                file_path=file_path,
                file_size=len(data),
                file_type=file_type,
                status=DocumentStatus.PENDING,
                uploaded_by=uploaded_by,
            )
        )
        logger.info(
            "document_uploaded",
            document_id=document.id,
            category_id=category_id,
            name=filename,
            size=len(data),
            format=family.value,
        )
        return document

    async def trigger_processing(self, document_id: str) -> ProcessingResult | None:
        """Run the pipeline for a freshly uploaded document.

        Failures are logged, never raised: the upload stays in storage and the
        document can be reprocessed later.
        """
        try:
            return await self._ingestion.process_document(document_id)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "document_processing_trigger_failed",
                document_id=document_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

    async def get_document(self, document_id: str) -> Document:
        document = await self._repository.get_document(document_id)
        if document is None:
            raise NotFoundError(message=f"Document not found: {document_id}")
        return document

    async def list_documents(self, category_id: str | None = None) -> list[Document]:
        return await self._repository.list_documents(category_id)

    async def download_document(self, document_id: str) -> tuple[Document, bytes]:
        """Return the document row together with its stored bytes."""
        document = await self.get_document(document_id)
        data = await self._storage.download(document.file_path)
        return document, data

    async def delete_document(self, document_id: str) -> None:
        """Delete the stored object (best effort) and then the row.

        Raises
        ------
        NotFoundError
            If the document does not exist.
        """
        document = await self.get_document(document_id)

        try:
            await self._storage.delete(document.file_path)
        except StorageError as exc:
            logger.warning(
                "document_object_delete_failed",
                document_id=document_id,
                path=document.file_path,
                error=str(exc),
            )

        if not await self._repository.delete_document(document_id):
            raise NotFoundError(message=f"Document not found: {document_id}")
        logger.info("document_deleted", document_id=document_id)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def create_category(self, name: str, description: str | None = None) -> Category:
        name = name.strip()
        if not name:
            msg = "Category name must not be empty"
            raise ValueError(msg)
        category = await self._repository.create_category(
            Category(id=str(uuid.uuid4()), name=name, description=description)
        )
        logger.info("category_created", category_id=category.id, name=name)
        return category

    async def list_categories(self, active_only: bool = False) -> list[Category]:
        return await self._repository.list_categories(active_only=active_only)

    # ------------------------------------------------------------------

    @staticmethod
    def _storage_key(category_id: str, filename: str, family: FormatFamily) -> str:
        stamp = int(time.time() * 1000)
        token = secrets.token_hex(6)
        return f"{category_id}/{stamp}-{token}.{extension_for(filename, family)}"
