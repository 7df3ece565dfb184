"""Pydantic v2 data models shared by services, providers and the API layer."""

from docrag.models.document import (
    Category,
    Document,
    DocumentStatus,
    ExtractionResult,
    FormatFamily,
)
from docrag.models.rag import (
    ChatAnswer,
    DocumentChunk,
    ProcessingResult,
    SearchMatch,
    SourceCitation,
)

__all__ = [
    "Category",
    "ChatAnswer",
    "Document",
    "DocumentChunk",
    "DocumentStatus",
    "ExtractionResult",
    "FormatFamily",
    "ProcessingResult",
    "SearchMatch",
    "SourceCitation",
]
