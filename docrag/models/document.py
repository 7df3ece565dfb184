"""Document, category and extraction models.

A :class:`Document` is created in ``pending`` when its bytes land in object
storage.  :class:`~docrag.services.ingestion.ingestion_service.IngestionService`
owns every later status transition.  All models are frozen; the repository
returns a fresh instance after each write.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DocumentStatus(str, Enum):
    """Lifecycle state of a document.

    ``pending -> processing -> {processed, error}``; both terminal states can
    go back to ``pending`` through an explicit reprocess request.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"


class FormatFamily(str, Enum):
    """Closed set of content-type families the extractors understand."""

    PDF = "pdf"
    DOCX = "docx"
    DOC = "doc"
    XLSX = "xlsx"
    XLS = "xls"
    PPTX = "pptx"
    PPT = "ppt"
    CSV = "csv"
    TEXT = "text"
    UNKNOWN = "unknown"

    @property
    def is_tabular(self) -> bool:
        return self in (FormatFamily.CSV, FormatFamily.XLSX, FormatFamily.XLS)

    @property
    def is_slides(self) -> bool:
        return self in (FormatFamily.PPTX, FormatFamily.PPT)


class Category(BaseModel):
    """Logical partition that scopes retrieval."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str | None = None
    is_active: bool = True
    created_at: datetime | None = None


class Document(BaseModel):
    """One uploaded file and its processing state."""

    model_config = ConfigDict(frozen=True)

    id: str
    category_id: str
    name: str = Field(description="Display name, usually the original filename.")
    file_path: str = Field(description="Object-storage key of the raw bytes.")
    file_size: int = Field(default=0, ge=0)
    file_type: str = Field(default="application/octet-stream")
    status: DocumentStatus = DocumentStatus.PENDING
    chunk_count: int = Field(default=0, ge=0)
    uploaded_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    processed_at: datetime | None = None


class ExtractionResult(BaseModel):
    """Plain text produced by one extractor, plus the family that produced it."""

    model_config = ConfigDict(frozen=True)

    text: str
    format_family: FormatFamily
