"""Custom exception hierarchy for docrag.

All application exceptions inherit from :class:`DocRagError`, which carries
an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "openai", "sqlite", "local_storage") caused the failure.

The hierarchy is organized by pipeline stage:

    DocRagError  (base -- catch-all for any docrag error)
    +-- NotFoundError          (document / category missing -- fatal)
    +-- DownloadError          (object storage read failure -- fatal)
    +-- ExtractionError        (format parse failure / too little text -- fatal)
    +-- EmptyChunkSetError     (chunker produced nothing -- fatal)
    +-- EmbeddingError         (embedding call failed after retries -- per chunk)
    +-- PersistenceError       (chunk / row write failure -- per chunk)
    +-- CompletionError        (chat-completion call failed -- per query)
    +-- StorageError           (object storage write / delete failure)
    +-- UploadValidationError  (rejected upload: type or size)
    +-- ConfigurationError     (startup / missing config)

Ingestion treats the first four as fatal for a run and the embedding /
persistence errors as per-chunk skips.
"""


class DocRagError(Exception):
    """Base exception for all docrag errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets,
    e.g. ``[openai_embedding] Embedding request failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Fatal ingestion errors
# ---------------------------------------------------------------------------

class NotFoundError(DocRagError):
    """Raised when a document or category row does not exist."""

    def __init__(
        self,
        message: str = "Requested record was not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DownloadError(DocRagError):
    """Raised when raw document bytes cannot be read from object storage."""

    def __init__(
        self,
        message: str = "Document download failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(DocRagError):
    """Raised when a format extractor cannot produce usable text.

    Carries the ``format_name`` that failed and the underlying ``cause``
    (a short description, or the wrapped exception's text).
    """

    def __init__(
        self,
        format_name: str,
        cause: str,
        provider_name: str | None = None,
    ) -> None:
        self._format_name = format_name
        self._cause = cause
        super().__init__(
            message=f"{format_name} extraction failed: {cause}",
            provider_name=provider_name,
        )

    @property
    def format_name(self) -> str:
        return self._format_name

    @property
    def cause(self) -> str:
        return self._cause


class EmptyChunkSetError(DocRagError):
    """Raised when chunking yields zero segments."""

    def __init__(
        self,
        message: str = "No chunks produced",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Per-chunk errors (non-fatal during ingestion)
# ---------------------------------------------------------------------------

class EmbeddingError(DocRagError):
    """Raised when the embedding service fails after all retry attempts."""

    def __init__(
        self,
        message: str = "Embedding request failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PersistenceError(DocRagError):
    """Raised when a datastore write fails."""

    def __init__(
        self,
        message: str = "Datastore write failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Query-path and surface errors
# ---------------------------------------------------------------------------

class CompletionError(DocRagError):
    """Raised when a chat-completion call fails or returns nothing."""

    def __init__(
        self,
        message: str = "Chat completion failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(DocRagError):
    """Raised when an object-storage write or delete fails."""

    def __init__(
        self,
        message: str = "Object storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UploadValidationError(DocRagError):
    """Raised when an upload is rejected before it reaches storage.

    ``status_code`` is the HTTP status the API layer should answer with
    (415 for unsupported types, 413 for oversized files).
    """

    def __init__(
        self,
        message: str = "Upload rejected",
        status_code: int = 415,
        provider_name: str | None = None,
    ) -> None:
        self._status_code = status_code
        super().__init__(message=message, provider_name=provider_name)

    @property
    def status_code(self) -> int:
        return self._status_code


class ConfigurationError(DocRagError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
