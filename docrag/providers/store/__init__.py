"""SQLite adapters for document rows and chunk vectors."""

from docrag.providers.store.sqlite_chunk_store import SQLiteChunkStore
from docrag.providers.store.sqlite_document_repository import SQLiteDocumentRepository

__all__ = ["SQLiteChunkStore", "SQLiteDocumentRepository"]
