"""Document ingestion pipeline.

Orchestrates the full pipeline: **extract -> chunk -> embed -> store**.

1. **Extract** (extractors/) -- format-specific readers turn raw bytes
   (PDF, Office packages, legacy Office binaries, CSV, plain text) into
   plain text.
2. **Chunk** (chunker.py / TextChunker) -- splits the text with a tabular,
   slide-based or generic prose strategy.
3. **Embed** (via IEmbeddingProvider) -- one vector per chunk, in paced
   concurrent batches.
4. **Store** (via IChunkStore) -- persists chunk text, vector and metadata.

IngestionService owns the document's status transitions around all four.
"""

from docrag.services.ingestion.chunker import TextChunker
from docrag.services.ingestion.extractors import DocumentExtractor, detect_format
from docrag.services.ingestion.ingestion_service import IngestionService

__all__ = [
    "DocumentExtractor",
    "IngestionService",
    "TextChunker",
    "detect_format",
]
