"""Core services: ingestion pipeline, document management and chat."""

from docrag.services.chat_service import ChatService
from docrag.services.document_service import DocumentService
from docrag.services.ingestion import IngestionService

__all__ = ["ChatService", "DocumentService", "IngestionService"]
