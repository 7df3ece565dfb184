"""FastAPI routes for docrag.

Service dependencies are resolved from ``app.state`` (populated at startup
by ``main.build_components``) through ``Annotated[..., Depends(...)]`` getters.

Endpoint                              Method  Description
------------------------------------  ------  ----------------------------------
/api/v1/process-document              POST    Run ingestion for one document
/api/v1/chat                          POST    Grounded answer for a category
/api/v1/search                        POST    Ranked chunk search
/api/v1/documents                     POST    Upload (processing in background)
/api/v1/documents                     GET     List documents
/api/v1/documents/{id}                GET     One document
/api/v1/documents/{id}                DELETE  Delete object, row and chunks
/api/v1/documents/{id}/download       GET     Stored bytes as an attachment
/api/v1/documents/{id}/reprocess      POST    Reset to pending and re-run
/api/v1/categories                    GET     List categories
/api/v1/categories                    POST    Create a category
/api/v1/health                        GET     Health + provider availability
"""

from __future__ import annotations

from typing import Annotated, Any
from urllib.parse import quote

import structlog
from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Form,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
)
from fastapi.responses import JSONResponse

from docrag import __version__
from docrag.api.schemas import (
    CategoryCreateRequest,
    CategoryListResponse,
    CategoryResponse,
    ChatRequest,
    ChatResponse,
    DocumentListResponse,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    ProcessDocumentRequest,
    ProcessDocumentResponse,
    SearchRequest,
    SearchResponse,
    SearchResult,
    SourceResponse,
)
from docrag.models.rag import ProcessingResult
from docrag.services.chat_service import ChatService
from docrag.services.document_service import DocumentService
from docrag.services.ingestion.ingestion_service import IngestionService
from docrag.utils.errors import (
    CompletionError,
    DocRagError,
    DownloadError,
    EmbeddingError,
    NotFoundError,
    PersistenceError,
    UploadValidationError,
)
from docrag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Uploads are read in 64 KB increments so oversized files are rejected early.
_UPLOAD_CHUNK_SIZE = 64 * 1024

# Client-facing chat failure details; upstream error text stays in the log.
_CHAT_ERROR_SUMMARIES: dict[type[Exception], str] = {
    EmbeddingError: "The question could not be embedded.",
    PersistenceError: "Document search failed.",
    CompletionError: "The answer could not be generated.",
}


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_ingestion_service(request: Request) -> IngestionService:
    """Return the ingestion service from application state."""
    return request.app.state.ingestion_service


def _get_chat_service(request: Request) -> ChatService:
    """Return the chat service from application state."""
    return request.app.state.chat_service


def _get_document_service(request: Request) -> DocumentService:
    """Return the document service from application state."""
    return request.app.state.document_service


def _get_provider_status(request: Request) -> dict[str, bool]:
    return getattr(request.app.state, "provider_status", {})


def _get_max_upload_bytes(request: Request) -> int:
    return request.app.state.settings.max_upload_bytes


IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
ChatDep = Annotated[ChatService, Depends(_get_chat_service)]
DocumentsDep = Annotated[DocumentService, Depends(_get_document_service)]
ProviderStatusDep = Annotated[dict[str, bool], Depends(_get_provider_status)]
MaxUploadDep = Annotated[int, Depends(_get_max_upload_bytes)]


def _processing_response(result: ProcessingResult, response: Response) -> ProcessDocumentResponse:
    if not result.success:
        response.status_code = 500
    return ProcessDocumentResponse.model_validate(result.model_dump())


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@router.post(
    "/process-document",
    response_model=ProcessDocumentResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ProcessDocumentResponse}},
    summary="Run the ingestion pipeline for one document",
)
async def process_document(
    body: ProcessDocumentRequest,
    response: Response,
    ingestion: IngestionDep,
) -> ProcessDocumentResponse:
    """Extract, chunk, embed and store one document; report the outcome."""
    try:
        result = await ingestion.process_document(body.document_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    return _processing_response(result, response)


# ---------------------------------------------------------------------------
# Chat / search
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={500: {"model": ErrorResponse}},
    summary="Answer a question from one category's documents",
)
async def chat(body: ChatRequest, chat_service: ChatDep) -> Any:
    try:
        answer = await chat_service.answer(body.message, body.category_id)
    except (DocRagError, ValueError) as exc:
        _logger.error(
            "chat_generation_failed",
            category_id=body.category_id,
            error_type=type(exc).__name__,
            error=exc.message if isinstance(exc, DocRagError) else str(exc),
        )
        detail = _CHAT_ERROR_SUMMARIES.get(type(exc), "The request could not be completed.")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="Chat generation failed", detail=detail).model_dump(),
        )

    return ChatResponse(
        message=answer.message,
        sources=[
            SourceResponse(document_name=s.document_name, similarity=s.similarity)
            for s in answer.sources
        ],
    )


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Ranked chunk search within a category",
)
async def search(body: SearchRequest, chat_service: ChatDep) -> SearchResponse:
    matches = await chat_service.search(body.query, body.category_id)
    return SearchResponse(
        results=[SearchResult.model_validate(m.model_dump()) for m in matches]
    )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=DocumentResponse,
    status_code=201,
    responses={
        404: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
    },
    summary="Upload a document; processing starts in the background",
)
async def upload_document(
    file: UploadFile,
    category_id: Annotated[str, Form(alias="categoryId")],
    background_tasks: BackgroundTasks,
    documents: DocumentsDep,
    max_upload_bytes: MaxUploadDep,
    uploaded_by: Annotated[str | None, Form(alias="uploadedBy")] = None,
) -> DocumentResponse:
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > max_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: >{max_upload_bytes} bytes.",
            )
        chunks.append(chunk)
    data = b"".join(chunks)

    try:
        document = await documents.upload_document(
            data=data,
            filename=file.filename or "upload",
            content_type=file.content_type,
            category_id=category_id,
            uploaded_by=uploaded_by,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    except UploadValidationError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    # Runs after the response is sent; failures are logged by the service.
    background_tasks.add_task(documents.trigger_processing, document.id)
    return DocumentResponse.from_document(document)


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="List documents, newest first",
)
async def list_documents(
    documents: DocumentsDep,
    category_id: Annotated[str | None, Query(alias="categoryId")] = None,
) -> DocumentListResponse:
    rows = await documents.list_documents(category_id)
    return DocumentListResponse(
        documents=[DocumentResponse.from_document(d) for d in rows],
        total=len(rows),
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_document(document_id: str, documents: DocumentsDep) -> DocumentResponse:
    try:
        document = await documents.get_document(document_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    return DocumentResponse.from_document(document)


@router.delete(
    "/documents/{document_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}},
)
async def delete_document(document_id: str, documents: DocumentsDep) -> Response:
    try:
        await documents.delete_document(document_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    return Response(status_code=204)


@router.get(
    "/documents/{document_id}/download",
    response_class=Response,
    responses={404: {"model": ErrorResponse}},
    summary="Download the stored file of a document",
)
async def download_document(document_id: str, documents: DocumentsDep) -> Response:
    try:
        document, data = await documents.download_document(document_id)
    except (NotFoundError, DownloadError) as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    return Response(
        content=data,
        media_type=document.file_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(document.name)}"
        },
    )


@router.post(
    "/documents/{document_id}/reprocess",
    response_model=ProcessDocumentResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ProcessDocumentResponse}},
    summary="Reset a document to pending and run the pipeline again",
)
async def reprocess_document(
    document_id: str,
    response: Response,
    ingestion: IngestionDep,
) -> ProcessDocumentResponse:
    try:
        result = await ingestion.reprocess_document(document_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    return _processing_response(result, response)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


@router.get("/categories", response_model=CategoryListResponse)
async def list_categories(
    documents: DocumentsDep,
    active_only: Annotated[bool, Query(alias="activeOnly")] = False,
) -> CategoryListResponse:
    rows = await documents.list_categories(active_only=active_only)
    return CategoryListResponse(categories=[CategoryResponse.from_category(c) for c in rows])


@router.post("/categories", response_model=CategoryResponse, status_code=201)
async def create_category(body: CategoryCreateRequest, documents: DocumentsDep) -> CategoryResponse:
    try:
        category = await documents.create_category(body.name, body.description)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return CategoryResponse.from_category(category)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health(provider_status: ProviderStatusDep) -> HealthResponse:
    """Return service health and which model providers are configured."""
    return HealthResponse(status="healthy", version=__version__, providers=provider_status)
