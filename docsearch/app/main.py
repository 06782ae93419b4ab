from __future__ import annotations

"""FastAPI application entrypoint for the document search service."""

import logging
import uuid
from datetime import datetime
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request

from docsearch.app.dependencies import (
    get_embedding_config_report,
    get_indexer,
    get_search_service,
)
from docsearch.app.metrics import metrics_middleware, metrics_response, record_search
from docsearch.app.schemas import (
    EmbeddingCoverageResponse,
    EmbeddingHealthResponse,
    HybridSearchRequest,
    IndexResultModel,
    SemanticSearchRequest,
    serialize_search_response,
    serialize_suggest_response,
)
from docsearch.app.security import (
    AuthContext,
    require_api_key,
    require_roles,
    resolve_organization_id,
)
from docsearch.app.settings import settings
from docsearch.embeddings.types import DimensionMismatchError, EmbeddingError
from docsearch.search.types import (
    DateRange,
    DocumentNotFoundError,
    Pagination,
    SearchFilters,
    SearchType,
    SortField,
    SortOrder,
    ValidationError,
    VectorIndexError,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Document Search", version="0.1.0")


def _configure_logging() -> None:
    """Configure root logging using environment settings."""
    level_name = settings.log_level.strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger.setLevel(level)


_configure_logging()


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", str(uuid.uuid4()))


def _bad_request(exc: ValidationError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Attach or create a request ID for traceability."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    """Capture request metrics before returning the response."""
    return await metrics_middleware(request, call_next)


@app.get("/metrics")
async def metrics():
    """Expose Prometheus-style metrics."""
    return metrics_response()


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/search")
async def search(
    http_request: Request,
    q: str = Query(min_length=1),
    search_type: SearchType = Query(default="all", alias="type"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    sort_by: SortField = Query(default="relevance", alias="sortBy"),
    sort_order: SortOrder = Query(default="desc", alias="sortOrder"),
    mime_type: str | None = Query(default=None, alias="mimeType"),
    date_from: datetime | None = Query(default=None, alias="dateFrom"),
    folder_id: str | None = Query(default=None, alias="folderId"),
    auth: AuthContext = Depends(require_api_key),
) -> dict[str, Any]:
    """Keyword search over documents and folders."""
    organization_id = resolve_organization_id(http_request, auth)
    filters = SearchFilters(
        folder_id=folder_id,
        mime_types=(mime_type,) if mime_type else (),
        created_at=DateRange(date_from=date_from) if date_from else None,
    )
    service = get_search_service()
    try:
        response = await service.search(
            organization_id,
            q,
            search_type=search_type,
            pagination=Pagination(page=page, limit=limit),
            sort_by=sort_by,
            sort_order=sort_order,
            filters=filters,
        )
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    record_search(response.meta.algorithm, "search")
    logger.info(
        "search_request_complete",
        extra={"request_id": _request_id(http_request), "total": response.meta.total},
    )
    return serialize_search_response(response)


@app.post("/search/semantic")
async def semantic_search(
    request: SemanticSearchRequest,
    http_request: Request,
    auth: AuthContext = Depends(require_api_key),
) -> dict[str, Any]:
    """Vector search with lexical fallback."""
    organization_id = resolve_organization_id(http_request, auth)
    service = get_search_service()
    try:
        response = await service.semantic_search(
            organization_id,
            request.query,
            limit=request.limit,
            threshold=request.threshold,
            filters=request.filters.to_filters() if request.filters else None,
            enable_reranking=request.enable_reranking,
        )
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    record_search(response.meta.algorithm, "semantic")
    logger.info(
        "semantic_request_complete",
        extra={
            "request_id": _request_id(http_request),
            "algorithm": response.meta.algorithm,
            "total": response.meta.total,
        },
    )
    return serialize_search_response(response)


@app.post("/search/hybrid")
async def hybrid_search(
    request: HybridSearchRequest,
    http_request: Request,
    auth: AuthContext = Depends(require_api_key),
) -> dict[str, Any]:
    """Fused lexical and vector search."""
    organization_id = resolve_organization_id(http_request, auth)
    service = get_search_service()
    try:
        response = await service.hybrid_search(
            organization_id,
            request.query,
            limit=request.limit,
            text_weight=request.text_weight,
            semantic_weight=request.semantic_weight,
            threshold=request.threshold,
            filters=request.filters.to_filters() if request.filters else None,
            enable_reranking=request.enable_reranking,
        )
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    record_search(response.meta.algorithm, "hybrid")
    logger.info(
        "hybrid_request_complete",
        extra={"request_id": _request_id(http_request), "total": response.meta.total},
    )
    return serialize_search_response(response)


@app.get("/search/suggest")
async def suggest(
    http_request: Request,
    q: str = Query(default=""),
    limit: int = Query(default=5, ge=1, le=20),
    auth: AuthContext = Depends(require_api_key),
) -> dict[str, Any]:
    """Autocomplete document and folder names."""
    organization_id = resolve_organization_id(http_request, auth)
    service = get_search_service()
    try:
        response = await service.suggest(organization_id, q, limit=limit)
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    return serialize_suggest_response(response)


@app.post("/documents/{document_id}/embedding")
async def index_document(
    document_id: str,
    http_request: Request,
    auth: AuthContext = Depends(require_api_key),
) -> dict[str, Any]:
    """Embed a stored document and write its vector to the index."""
    require_roles(auth, {"writer", "admin"})
    organization_id = resolve_organization_id(http_request, auth)
    indexer = get_indexer()
    try:
        result = await indexer.index_document(document_id, organization_id=organization_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Document not found") from exc
    except (EmbeddingError, DimensionMismatchError, VectorIndexError) as exc:
        logger.error(
            "document_embedding_failed",
            extra={
                "request_id": _request_id(http_request),
                "document_id": document_id,
                "detail": type(exc).__name__,
            },
        )
        raise HTTPException(status_code=502, detail="Document embedding failed") from exc
    return IndexResultModel.model_validate(result).model_dump(by_alias=True)


@app.delete("/documents/{document_id}/embedding")
async def delete_document_embedding(
    document_id: str,
    http_request: Request,
    auth: AuthContext = Depends(require_api_key),
) -> dict[str, Any]:
    """Remove a document's vector from the index."""
    require_roles(auth, {"admin"})
    organization_id = resolve_organization_id(http_request, auth)
    indexer = get_indexer()
    try:
        removed = await indexer.delete_document(document_id, organization_id=organization_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Document not found") from exc
    return {"documentId": document_id, "removed": removed}


@app.get("/stats/embedding", response_model=EmbeddingHealthResponse)
async def embedding_health(
    auth: AuthContext = Depends(require_api_key),
) -> EmbeddingHealthResponse:
    """Return embedding configuration health checks."""
    require_roles(auth, {"admin"})
    report = get_embedding_config_report()
    return EmbeddingHealthResponse(**report.__dict__)


@app.get("/stats/embedding/coverage")
async def embedding_coverage(
    http_request: Request,
    auth: AuthContext = Depends(require_api_key),
) -> dict[str, Any]:
    """Share of live documents that have a stored embedding."""
    organization_id = resolve_organization_id(http_request, auth)
    stats = await get_indexer().embedding_stats(organization_id)
    response = EmbeddingCoverageResponse(
        organization_id=organization_id,
        total_documents=stats.total_documents,
        documents_with_embeddings=stats.documents_with_embeddings,
        coverage_percent=stats.coverage_percent,
    )
    return response.model_dump(by_alias=True)
