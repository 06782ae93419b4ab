from __future__ import annotations

"""Search entry points: text, semantic, hybrid and autocomplete."""

import asyncio
import logging
import time
from dataclasses import dataclass

from docsearch.embeddings.client import EmbeddingClient
from docsearch.search.fusion import DEFAULT_RRF_K, fuse
from docsearch.search.lexical import LexicalSearcher
from docsearch.search.rerank import Reranker
from docsearch.search.snippets import match_score
from docsearch.search.types import (
    MAX_PAGE_SIZE,
    SEARCH_TYPES,
    FolderPage,
    LexicalPage,
    Pagination,
    RankedList,
    SearchFilters,
    SearchMeta,
    SearchResponse,
    SearchType,
    SortField,
    SortOrder,
    Suggestion,
    SuggestResponse,
    TextSearchData,
    ValidationError,
)
from docsearch.search.vector import VectorSearcher

logger = logging.getLogger(__name__)

MIN_SUGGEST_PREFIX = 2


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _validate_query(query: str) -> str:
    cleaned = query.strip() if query else ""
    if not cleaned:
        raise ValidationError("query must not be blank")
    return cleaned


def _validate_limit(limit: int) -> None:
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")


def _validate_unit(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValidationError(f"{name} must be between 0 and 1")


@dataclass
class SearchOrchestrator:
    """Combine lexical search, vector search, fusion and reranking.

    Semantic infrastructure failures never fail a request: the response
    degrades to lexical results and ``meta.algorithm`` records the strategy
    that produced them.
    """
    lexical: LexicalSearcher
    vector: VectorSearcher
    embeddings: EmbeddingClient
    reranker: Reranker
    rrf_k: int = DEFAULT_RRF_K

    async def search(
        self,
        organization_id: str,
        query: str,
        search_type: SearchType = "all",
        pagination: Pagination | None = None,
        sort_by: SortField = "relevance",
        sort_order: SortOrder = "desc",
        filters: SearchFilters | None = None,
    ) -> SearchResponse:
        """Lexical search over documents, folders or both."""
        start = time.monotonic()
        cleaned = _validate_query(query)
        if search_type not in SEARCH_TYPES:
            raise ValidationError(f"Unsupported search type: {search_type}")
        page = pagination or Pagination()
        page.validate()
        if filters is not None:
            filters.validate()

        want_documents = search_type in {"all", "documents"}
        want_folders = search_type in {"all", "folders"}
        doc_page: LexicalPage | None = None
        folder_page: FolderPage | None = None
        if want_documents and want_folders:
            doc_page, folder_page = await asyncio.gather(
                asyncio.to_thread(
                    self.lexical.search, organization_id, cleaned, filters, page, sort_by, sort_order
                ),
                asyncio.to_thread(self.lexical.search_folders, organization_id, cleaned, None, page),
            )
        elif want_documents:
            doc_page = await asyncio.to_thread(
                self.lexical.search, organization_id, cleaned, filters, page, sort_by, sort_order
            )
        else:
            folder_page = await asyncio.to_thread(
                self.lexical.search_folders, organization_id, cleaned, None, page
            )

        if doc_page is not None and folder_page is not None:
            data = TextSearchData(kind="both", documents=doc_page.items, folders=folder_page.items)
        elif doc_page is not None:
            data = TextSearchData(kind="documents", documents=doc_page.items)
        else:
            data = TextSearchData(kind="folders", folders=folder_page.items)
        total = (doc_page.total if doc_page else 0) + (folder_page.total if folder_page else 0)
        meta = SearchMeta(
            query=cleaned,
            algorithm="text",
            total=total,
            page=page.page,
            limit=page.limit,
            took_ms=_elapsed_ms(start),
        )
        logger.info("text_search_complete", extra={"total": total, "kind": data.kind})
        return SearchResponse(data=data, meta=meta)

    async def semantic_search(
        self,
        organization_id: str,
        query: str,
        limit: int = 10,
        threshold: float = 0.7,
        filters: SearchFilters | None = None,
        enable_reranking: bool = False,
    ) -> SearchResponse:
        """Vector search with lexical fallback and optional reranking."""
        start = time.monotonic()
        cleaned = _validate_query(query)
        _validate_limit(limit)
        _validate_unit("threshold", threshold)
        if filters is not None:
            filters.validate()

        if not self.embeddings.is_available():
            logger.info("semantic_search_unavailable", extra={"reason": "embeddings_not_configured"})
            return await self._text_fallback(organization_id, cleaned, limit, threshold, filters, start)

        try:
            embedded = await self.embeddings.embed(cleaned)
            results = await self.vector.search(
                organization_id,
                embedded.vector.values,
                limit * 2,
                threshold,
                filters,
            )
        except Exception as exc:
            logger.warning("semantic_search_fallback", extra={"detail": type(exc).__name__})
            return await self._text_fallback(organization_id, cleaned, limit, threshold, filters, start)

        if enable_reranking and len(results) > 1:
            results = await self.reranker.rerank(cleaned, results)
        results = results[:limit]
        meta = SearchMeta(
            query=cleaned,
            algorithm="semantic",
            total=len(results),
            page=1,
            limit=limit,
            took_ms=_elapsed_ms(start),
            threshold=threshold,
            reranked=_is_reranked(results),
        )
        logger.info("semantic_search_complete", extra={"results": len(results)})
        return SearchResponse(data=results, meta=meta)

    async def hybrid_search(
        self,
        organization_id: str,
        query: str,
        limit: int = 20,
        text_weight: float = 0.3,
        semantic_weight: float = 0.7,
        threshold: float = 0.5,
        filters: SearchFilters | None = None,
        enable_reranking: bool = True,
    ) -> SearchResponse:
        """Run lexical and vector search concurrently and fuse the rankings."""
        start = time.monotonic()
        cleaned = _validate_query(query)
        _validate_limit(limit)
        _validate_unit("threshold", threshold)
        _validate_unit("textWeight", text_weight)
        _validate_unit("semanticWeight", semantic_weight)
        if filters is not None:
            filters.validate()
        fetch = Pagination(page=1, limit=limit * 2)

        lexical_outcome, semantic_outcome = await asyncio.gather(
            asyncio.to_thread(self.lexical.search, organization_id, cleaned, filters, fetch),
            self._semantic_branch(organization_id, cleaned, limit * 2, threshold, filters),
            return_exceptions=True,
        )
        if isinstance(lexical_outcome, BaseException):
            raise lexical_outcome
        if isinstance(semantic_outcome, asyncio.CancelledError):
            raise semantic_outcome
        if isinstance(semantic_outcome, BaseException):
            logger.warning(
                "hybrid_semantic_branch_failed",
                extra={"detail": type(semantic_outcome).__name__},
            )
            semantic_outcome = []

        results = fuse(
            lexical_outcome.items,
            semantic_outcome,
            text_weight,
            semantic_weight,
            k=self.rrf_k,
        )
        if enable_reranking and len(results) > 1:
            results = await self.reranker.rerank(cleaned, results)
        results = results[:limit]
        meta = SearchMeta(
            query=cleaned,
            algorithm="hybrid",
            total=len(results),
            page=1,
            limit=limit,
            took_ms=_elapsed_ms(start),
            threshold=threshold,
            reranked=_is_reranked(results),
            text_weight=text_weight,
            semantic_weight=semantic_weight,
        )
        logger.info(
            "hybrid_search_complete",
            extra={
                "results": len(results),
                "lexical": len(lexical_outcome.items),
                "semantic": len(semantic_outcome),
            },
        )
        return SearchResponse(data=results, meta=meta)

    async def suggest(
        self,
        organization_id: str,
        prefix: str,
        limit: int = 5,
    ) -> SuggestResponse:
        """Autocomplete document and folder names."""
        cleaned = prefix.strip() if prefix else ""
        if len(cleaned) < MIN_SUGGEST_PREFIX:
            return SuggestResponse(suggestions=[], query=prefix or "")
        _validate_limit(limit)
        candidates = await asyncio.to_thread(
            self.lexical.suggest_candidates, organization_id, cleaned, limit
        )
        suggestions = [
            Suggestion(
                text=candidate.name,
                type=candidate.type,
                id=candidate.id,
                match_score=match_score(candidate.name, cleaned),
            )
            for candidate in candidates
        ]
        suggestions.sort(key=lambda item: item.match_score, reverse=True)
        return SuggestResponse(suggestions=suggestions[:limit], query=prefix)

    async def _semantic_branch(
        self,
        organization_id: str,
        query: str,
        limit: int,
        threshold: float,
        filters: SearchFilters | None,
    ) -> RankedList:
        if not self.embeddings.is_available():
            return []
        try:
            embedded = await self.embeddings.embed(query)
            return await self.vector.search(
                organization_id,
                embedded.vector.values,
                limit,
                threshold,
                filters,
            )
        except Exception as exc:
            logger.warning("hybrid_semantic_fallback", extra={"detail": type(exc).__name__})
            return []

    async def _text_fallback(
        self,
        organization_id: str,
        query: str,
        limit: int,
        threshold: float,
        filters: SearchFilters | None,
        start: float,
    ) -> SearchResponse:
        page = await asyncio.to_thread(
            self.lexical.search,
            organization_id,
            query,
            filters,
            Pagination(page=1, limit=limit),
        )
        meta = SearchMeta(
            query=query,
            algorithm="text-fallback",
            total=len(page.items),
            page=1,
            limit=limit,
            took_ms=_elapsed_ms(start),
            threshold=threshold,
        )
        return SearchResponse(data=page.items, meta=meta)


def _is_reranked(results: RankedList) -> bool:
    return any(item.rerank_score is not None for item in results)
