"""Per-format text extractors and the dispatching :class:`DocumentExtractor`."""

from docrag.services.ingestion.extractors.detection import (
    FAMILY_CONTENT_TYPES,
    content_type_for,
    detect_format,
)
from docrag.services.ingestion.extractors.extractor import DocumentExtractor

__all__ = [
    "FAMILY_CONTENT_TYPES",
    "DocumentExtractor",
    "content_type_for",
    "detect_format",
]
