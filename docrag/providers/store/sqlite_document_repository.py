"""SQLite-backed document and category repository.

Uses ``aiosqlite`` for async I/O, one short-lived connection per call.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import structlog

from docrag.interfaces.document_repository import IDocumentRepository
from docrag.models.document import Category, Document, DocumentStatus
from docrag.providers.store.schema import NOW_SQL, connect, initialize_schema
from docrag.utils.errors import NotFoundError, PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/docrag.db")

_DOCUMENT_COLUMNS = (
    "id, category_id, name, file_path, file_size, file_type, status, "
    "chunk_count, uploaded_by, created_at, updated_at, processed_at"
)

_INSERT_DOCUMENT_SQL = """\
INSERT INTO documents (id, category_id, name, file_path, file_size, file_type, status,
                       chunk_count, uploaded_by)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_MARK_STATUS_SQL = f"""\
UPDATE documents
SET status       = ?,
    chunk_count  = COALESCE(?, chunk_count),
    updated_at   = {NOW_SQL},
    processed_at = CASE WHEN ? THEN {NOW_SQL} ELSE processed_at END
WHERE id = ?;
"""

_INSERT_CATEGORY_SQL = """\
INSERT INTO categories (id, name, description, is_active)
VALUES (?, ?, ?, ?);
"""


class SQLiteDocumentRepository(IDocumentRepository):
    """Document and category rows in a local SQLite database."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the tables and indices if they don't exist."""
        await initialize_schema(self._db_path)
        logger.info("document_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(self, document: Document) -> Document:
        try:
            async with connect(self._db_path) as db:
                await db.execute(
                    _INSERT_DOCUMENT_SQL,
                    (
                        document.id,
                        document.category_id,
                        document.name,
                        document.file_path,
                        document.file_size,
                        document.file_type,
                        document.status.value,
                        document.chunk_count,
                        document.uploaded_by,
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Could not create document {document.id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "document_created",
            document_id=document.id,
            category_id=document.category_id,
            file_type=document.file_type,
        )
        created = await self.get_document(document.id)
        if created is None:
            raise PersistenceError(
                message=f"Document {document.id} vanished after insert",
                provider_name=self.get_provider_name(),
            )
        return created

    async def get_document(self, document_id: str) -> Document | None:
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?",
                (document_id,),
            )
            row = await cursor.fetchone()
        return Document(**dict(row)) if row else None

    async def list_documents(self, category_id: str | None = None) -> list[Document]:
        async with connect(self._db_path) as db:
            if category_id:
                cursor = await db.execute(
                    f"SELECT {_DOCUMENT_COLUMNS} FROM documents "
                    "WHERE category_id = ? ORDER BY created_at DESC",
                    (category_id,),
                )
            else:
                cursor = await db.execute(
                    f"SELECT {_DOCUMENT_COLUMNS} FROM documents ORDER BY created_at DESC",
                )
            rows = await cursor.fetchall()
        return [Document(**dict(r)) for r in rows]

    async def mark_status(
        self,
        document_id: str,
        status: DocumentStatus,
        chunk_count: int | None = None,
        processed: bool = False,
    ) -> Document:
        try:
            async with connect(self._db_path) as db:
                cursor = await db.execute(
                    _MARK_STATUS_SQL,
                    (status.value, chunk_count, 1 if processed else 0, document_id),
                )
                await db.commit()
                updated_rows = cursor.rowcount
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Could not update status of {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if updated_rows == 0:
            raise NotFoundError(
                message=f"Document not found: {document_id}",
                provider_name=self.get_provider_name(),
            )

        logger.info(
            "document_status_changed",
            document_id=document_id,
            status=status.value,
            chunk_count=chunk_count,
        )
        document = await self.get_document(document_id)
        if document is None:
            raise NotFoundError(
                message=f"Document not found: {document_id}",
                provider_name=self.get_provider_name(),
            )
        return document

    async def delete_document(self, document_id: str) -> bool:
        try:
            async with connect(self._db_path) as db:
                cursor = await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
                await db.commit()
                deleted = cursor.rowcount > 0
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Could not delete document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("document_deleted", document_id=document_id, existed=deleted)
        return deleted

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def create_category(self, category: Category) -> Category:
        try:
            async with connect(self._db_path) as db:
                await db.execute(
                    _INSERT_CATEGORY_SQL,
                    (category.id, category.name, category.description, int(category.is_active)),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Could not create category {category.name!r}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("category_created", category_id=category.id, name=category.name)
        created = await self.get_category(category.id)
        if created is None:
            raise PersistenceError(
                message=f"Category {category.id} vanished after insert",
                provider_name=self.get_provider_name(),
            )
        return created

    async def get_category(self, category_id: str) -> Category | None:
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "SELECT id, name, description, is_active, created_at "
                "FROM categories WHERE id = ?",
                (category_id,),
            )
            row = await cursor.fetchone()
        return self._row_to_category(row) if row else None

    async def list_categories(self, active_only: bool = False) -> list[Category]:
        query = "SELECT id, name, description, is_active, created_at FROM categories"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY name"
        async with connect(self._db_path) as db:
            cursor = await db.execute(query)
            rows = await cursor.fetchall()
        return [self._row_to_category(r) for r in rows]

    def get_provider_name(self) -> str:
        return "sqlite_documents"

    @staticmethod
    def _row_to_category(row: aiosqlite.Row) -> Category:
        data = dict(row)
        data["is_active"] = bool(data["is_active"])
        return Category(**data)
