"""Pydantic request/response schemas for the docrag HTTP API.

Wire names are camelCase (``documentId``, ``chunksProcessed``); Python
attribute names stay snake_case.  Every schema accepts either form on
input (``populate_by_name``) and routes serialize with ``by_alias``, which
FastAPI does by default for ``response_model``.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from docrag.models.document import Category, Document, DocumentStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------


class ProcessDocumentRequest(_CamelModel):
    document_id: str = Field(min_length=1)


class ProcessDocumentResponse(_CamelModel):
    success: bool
    document_id: str
    chunks_processed: int
    total_chunks: int
    status: DocumentStatus
    error: str | None = None


# ---------------------------------------------------------------------------
# Chat / search
# ---------------------------------------------------------------------------


class ChatRequest(_CamelModel):
    message: str = Field(min_length=1, max_length=4000)
    category_id: str = Field(min_length=1)

    @field_validator("message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "message must not be blank"
            raise ValueError(msg)
        return value


class SourceResponse(_CamelModel):
    document_name: str
    similarity: float


class ChatResponse(_CamelModel):
    message: str
    sources: list[SourceResponse] = Field(default_factory=list)


class SearchRequest(_CamelModel):
    query: str = Field(min_length=1, max_length=4000)
    category_id: str | None = None

    @field_validator("query")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "query must not be blank"
            raise ValueError(msg)
        return value


class SearchResult(_CamelModel):
    document_id: str
    document_name: str
    chunk_index: int
    content: str
    similarity: float


class SearchResponse(_CamelModel):
    results: list[SearchResult] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Documents / categories
# ---------------------------------------------------------------------------


class DocumentResponse(_CamelModel):
    id: str
    category_id: str
    name: str
    file_path: str
    file_size: int
    file_type: str
    status: DocumentStatus
    chunk_count: int
    uploaded_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    processed_at: datetime | None = None

    @classmethod
    def from_document(cls, document: Document) -> DocumentResponse:
        return cls.model_validate(document.model_dump())


class DocumentListResponse(_CamelModel):
    documents: list[DocumentResponse] = Field(default_factory=list)
    total: int = 0


class CategoryCreateRequest(_CamelModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None


class CategoryResponse(_CamelModel):
    id: str
    name: str
    description: str | None = None
    is_active: bool = True
    created_at: datetime | None = None

    @classmethod
    def from_category(cls, category: Category) -> CategoryResponse:
        return cls.model_validate(category.model_dump())


class CategoryListResponse(_CamelModel):
    categories: list[CategoryResponse] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Health / errors
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Health check response with provider availability."""

    status: str = "healthy"
    version: str
    providers: dict[str, bool] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error envelope returned by the API."""

    error: str
    detail: str | None = None
