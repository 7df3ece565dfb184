"""Public interface definitions for every external collaborator.

Business logic in ``docrag/services`` talks to storage, the datastore and
the model services only through these abstract base classes.  Concrete
adapters live in ``docrag/providers`` and are wired together in
``docrag/main.py``; tests inject fakes built from the same contracts.

CONCRETE PROVIDER MAP:
    Interface              ->  Concrete implementation (in docrag/providers/)
    ---------------------------------------------------------------------
    IEmbeddingProvider     ->  OpenAIEmbeddingProvider
    ILLMProvider           ->  OpenAILLMProvider
    IObjectStorage         ->  LocalObjectStorage
    IDocumentRepository    ->  SQLiteDocumentRepository
    IChunkStore            ->  SQLiteChunkStore
"""

from docrag.interfaces.chunk_store import IChunkStore
from docrag.interfaces.document_repository import IDocumentRepository
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.interfaces.object_storage import IObjectStorage

__all__ = [
    "IChunkStore",
    "IDocumentRepository",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IObjectStorage",
]
