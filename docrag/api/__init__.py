"""docrag API layer: routes, schemas and middleware."""

from docrag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from docrag.api.routes import router
from docrag.api.schemas import (
    ChatRequest,
    ChatResponse,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    ProcessDocumentRequest,
    ProcessDocumentResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ChatRequest",
    "ChatResponse",
    "DocumentResponse",
    "ErrorResponse",
    "HealthResponse",
    "ProcessDocumentRequest",
    "ProcessDocumentResponse",
]
