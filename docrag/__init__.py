"""docrag: document ingestion and category-scoped retrieval-augmented chat."""

__version__ = "0.1.0"
