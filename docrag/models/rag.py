"""RAG data models: stored chunks, retrieval matches, pipeline and chat results.

RAG (retrieval-augmented generation) in docrag:

1. INGESTION: uploaded files are extracted to text and split into chunks.
2. EMBEDDING: each chunk becomes a fixed-length vector.
3. STORAGE: chunk text, vector and metadata are persisted per document.
4. RETRIEVAL: a question is embedded and compared against stored vectors,
   restricted to one category.
5. GENERATION: the best matches are handed to a chat model as the only
   context it may answer from.

All models use frozen config.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from docrag.models.document import DocumentStatus


class DocumentChunk(BaseModel):
    """One persisted fragment of a document's text with its embedding."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    # 0-based and contiguous within a document for the latest run.
    chunk_index: int = Field(ge=0)
    content: str
    embedding: list[float] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="length, position (chunker ordinal) and batch number.",
    )


class SearchMatch(BaseModel):
    """One ranked result from a similarity search."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    document_name: str
    chunk_index: int
    content: str
    similarity: float


class SourceCitation(BaseModel):
    """Source entry attached to a chat answer."""

    model_config = ConfigDict(frozen=True)

    document_name: str
    similarity: float


class ChatAnswer(BaseModel):
    """Generated answer text plus every chunk source that was retrieved."""

    model_config = ConfigDict(frozen=True)

    message: str
    sources: list[SourceCitation] = Field(default_factory=list)


class ProcessingResult(BaseModel):
    """Outcome of one ingestion run."""

    model_config = ConfigDict(frozen=True)

    success: bool
    document_id: str
    chunks_processed: int = Field(default=0, ge=0, description="Chunks persisted.")
    total_chunks: int = Field(default=0, ge=0, description="Chunks the chunker produced.")
    status: DocumentStatus
    error: str | None = None
