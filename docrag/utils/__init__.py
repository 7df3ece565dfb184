"""Utility modules for docrag.

- **errors** -- Domain exception hierarchy rooted at DocRagError; each
  pipeline stage raises its own subclass so callers can tell fatal run
  failures from per-chunk skips.
- **concurrency** -- exception-settling ``gather`` and fixed-size batching used by the
  ingestion pipeline's embedding stage.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- control-character stripping and whitespace
  collapsing applied to extracted text before chunking.
"""

from docrag.utils.concurrency import batched, gather_settled
from docrag.utils.errors import (
    CompletionError,
    ConfigurationError,
    DocRagError,
    DownloadError,
    EmbeddingError,
    EmptyChunkSetError,
    ExtractionError,
    NotFoundError,
    PersistenceError,
    StorageError,
    UploadValidationError,
)
from docrag.utils.logging import configure_logging, get_logger
from docrag.utils.text_normalizer import letter_ratio, normalize_text

__all__ = [
    "CompletionError",
    "ConfigurationError",
    "DocRagError",
    "DownloadError",
    "EmbeddingError",
    "EmptyChunkSetError",
    "ExtractionError",
    "NotFoundError",
    "PersistenceError",
    "StorageError",
    "UploadValidationError",
    "batched",
    "configure_logging",
    "gather_settled",
    "get_logger",
    "letter_ratio",
    "normalize_text",
]
