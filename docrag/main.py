"""docrag FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``config/config.yaml``, ``.env`` and the
environment, and configures structured logging.

:func:`build_components` and :func:`initialize_components` are shared with
the operator CLI so both surfaces run the same object graph.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from docrag import __version__
from docrag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from docrag.api.routes import router as api_router
from docrag.config.loader import load_settings
from docrag.config.settings import Settings
from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from docrag.providers.llm.openai_provider import OpenAILLMProvider
from docrag.providers.storage.local_storage import LocalObjectStorage
from docrag.providers.store.sqlite_chunk_store import SQLiteChunkStore
from docrag.providers.store.sqlite_document_repository import SQLiteDocumentRepository
from docrag.services.chat_service import ChatService
from docrag.services.document_service import DocumentService
from docrag.services.ingestion.chunker import TextChunker
from docrag.services.ingestion.extractors.extractor import DocumentExtractor
from docrag.services.ingestion.ingestion_service import IngestionService
from docrag.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = load_settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance.

    Returns a flat dict of named components; the web app copies it onto
    ``app.state``.  Nothing here touches the network or the database;
    call :func:`initialize_components` before first use.
    """
    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=app_settings.openai_timeout_seconds)

    # -- Providers --
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings, http_client=http_client)
    llm_provider = OpenAILLMProvider(settings=app_settings, http_client=http_client)
    storage = LocalObjectStorage(app_settings.storage_root, bucket=app_settings.storage_bucket)
    repository = SQLiteDocumentRepository(app_settings.database_path)
    chunk_store = SQLiteChunkStore(app_settings.database_path)

    # -- Services --
    ingestion_service = IngestionService(
        repository=repository,
        storage=storage,
        extractor=DocumentExtractor(app_settings),
        chunker=TextChunker.from_settings(app_settings),
        embedding_provider=embedding_provider,
        chunk_store=chunk_store,
        batch_size=app_settings.embedding_batch_size,
        batch_delay=app_settings.embedding_batch_delay,
        min_success_ratio=app_settings.min_chunk_success_ratio,
    )
    chat_service = ChatService(
        embedding_provider=embedding_provider,
        chunk_store=chunk_store,
        llm_provider=llm_provider,
        repository=repository,
        match_threshold=app_settings.match_threshold,
        chat_match_count=app_settings.chat_match_count,
        search_match_count=app_settings.search_match_count,
        temperature=app_settings.chat_temperature,
        max_tokens=app_settings.chat_max_tokens,
        answer_language=app_settings.answer_language,
    )
    document_service = DocumentService(
        repository=repository,
        storage=storage,
        ingestion=ingestion_service,
        max_upload_bytes=app_settings.max_upload_bytes,
    )

    provider_status = {
        embedding_provider.get_provider_name(): embedding_provider.is_available(),
        llm_provider.get_provider_name(): llm_provider.is_available(),
        storage.get_provider_name(): True,
        repository.get_provider_name(): True,
    }

    return {
        "settings": app_settings,
        "http_client": http_client,
        "embedding_provider": embedding_provider,
        "llm_provider": llm_provider,
        "storage": storage,
        "repository": repository,
        "chunk_store": chunk_store,
        "ingestion_service": ingestion_service,
        "chat_service": chat_service,
        "document_service": document_service,
        "provider_status": provider_status,
    }


async def initialize_components(components: dict[str, Any]) -> None:
    """Create database tables before the first request."""
    await components["repository"].initialize()
    await components["chunk_store"].initialize()


async def close_components(components: dict[str, Any]) -> None:
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


def _make_lifespan(app_settings: Settings):  # noqa: ANN202
    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        """Build and initialise all components on startup, clean up on shutdown."""
        components = build_components(app_settings)
        for key, value in components.items():
            setattr(application.state, key, value)

        await initialize_components(components)

        _logger.info(
            "app_startup",
            version=__version__,
            environment=app_settings.app_env,
            providers=components["provider_status"],
            database=app_settings.database_path,
        )

        yield

        await close_components(components)
        _logger.info("app_shutdown", message="HTTP client closed")

    return _lifespan


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    resolved = app_settings or settings
    application = FastAPI(
        title="docrag API",
        version=__version__,
        description=(
            "Upload documents into categories, index them for semantic search, "
            "and ask questions answered only from a category's documents."
        ),
        lifespan=_make_lifespan(resolved),
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=resolved.cors_allowed_origins)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "docrag.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
