from __future__ import annotations

"""Keyword search over documents and folders."""

import logging
from dataclasses import dataclass

from sqlalchemy import and_, func, select

from docsearch.search.snippets import generate_snippet
from docsearch.search.types import (
    FolderPage,
    FolderResult,
    LexicalPage,
    Pagination,
    ScoredResult,
    SearchFilters,
    SortField,
    SortOrder,
    SuggestCandidate,
    ValidationError,
)
from docsearch.store.documents import DocumentRow, DocumentStore, document_select, row_to_document
from docsearch.store.schema import (
    document_filter_conditions,
    documents,
    folders,
    text_match_condition,
)

logger = logging.getLogger(__name__)

_SORT_COLUMNS = {
    "name": documents.c.name,
    "createdAt": documents.c.created_at,
    "updatedAt": documents.c.updated_at,
    "size": documents.c.size_bytes,
}


def document_to_result(
    document: DocumentRow,
    score: float,
    text_score: float | None = None,
    semantic_score: float | None = None,
    snippet_length: int = 200,
) -> ScoredResult:
    """Project a stored document into a ScoredResult."""
    return ScoredResult(
        id=document.id,
        name=document.name,
        score=score,
        text_score=text_score,
        semantic_score=semantic_score,
        snippet=generate_snippet(document.extracted_text, snippet_length),
        original_name=document.original_name,
        mime_type=document.mime_type,
        size_bytes=document.size_bytes,
        status=document.status,
        processing_status=document.processing_status,
        folder=document.folder,
        created_at=document.created_at,
        updated_at=document.updated_at,
    )


@dataclass
class LexicalSearcher:
    """Case-insensitive substring search with filters, sort and pagination.

    Lexical matching has no relevance score of its own, so each hit is scored
    ``1 / position`` where position is the 1-based rank across all pages.
    """
    store: DocumentStore

    def search(
        self,
        organization_id: str,
        query: str,
        filters: SearchFilters | None = None,
        pagination: Pagination | None = None,
        sort_by: SortField = "relevance",
        sort_order: SortOrder = "desc",
    ) -> LexicalPage:
        page = pagination or Pagination()
        if filters is not None:
            filters.validate()
        conditions = [*document_filter_conditions(organization_id, filters), text_match_condition(query)]
        stmt = (
            document_select()
            .where(and_(*conditions))
            .order_by(*self._order_by(sort_by, sort_order))
            .offset(page.offset)
            .limit(page.limit)
        )
        count_stmt = select(func.count()).select_from(documents).where(and_(*conditions))
        with self.store.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
            total = int(conn.execute(count_stmt).scalar_one())

        items = []
        for idx, row in enumerate(rows):
            score = 1.0 / (page.offset + idx + 1)
            items.append(document_to_result(row_to_document(row), score, text_score=score))
        logger.debug(
            "lexical_search_complete",
            extra={"results": len(items), "total": total, "query_length": len(query)},
        )
        return LexicalPage(items=items, total=total)

    def search_folders(
        self,
        organization_id: str,
        query: str,
        parent_id: str | None = None,
        pagination: Pagination | None = None,
    ) -> FolderPage:
        """Match folder names, ordered by name."""
        page = pagination or Pagination()
        f = folders.c
        conditions = [f.organization_id == organization_id, f.name.icontains(query, autoescape=True)]
        if parent_id:
            conditions.append(f.parent_id == parent_id)
        stmt = (
            select(folders)
            .where(and_(*conditions))
            .order_by(f.name.asc(), f.id.asc())
            .offset(page.offset)
            .limit(page.limit)
        )
        count_stmt = select(func.count()).select_from(folders).where(and_(*conditions))
        with self.store.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
            total = int(conn.execute(count_stmt).scalar_one())
        items = [
            FolderResult(
                id=row["id"],
                name=row["name"],
                path=row["path"],
                parent_id=row["parent_id"],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
            for row in rows
        ]
        return FolderPage(items=items, total=total)

    def suggest_candidates(
        self,
        organization_id: str,
        prefix: str,
        limit: int,
    ) -> list[SuggestCandidate]:
        """Name-matching documents (most recent first) followed by folders (by name)."""
        d = documents.c
        doc_stmt = (
            select(d.id, d.name)
            .where(
                *document_filter_conditions(organization_id, None),
                d.name.icontains(prefix, autoescape=True),
            )
            .order_by(d.updated_at.desc(), d.id.asc())
            .limit(limit)
        )
        folder_stmt = (
            select(folders.c.id, folders.c.name)
            .where(
                folders.c.organization_id == organization_id,
                folders.c.name.icontains(prefix, autoescape=True),
            )
            .order_by(folders.c.name.asc(), folders.c.id.asc())
            .limit(limit)
        )
        with self.store.engine.connect() as conn:
            doc_rows = conn.execute(doc_stmt).all()
            folder_rows = conn.execute(folder_stmt).all()
        candidates = [SuggestCandidate(id=row.id, name=row.name, type="document") for row in doc_rows]
        candidates.extend(
            SuggestCandidate(id=row.id, name=row.name, type="folder") for row in folder_rows
        )
        return candidates

    @staticmethod
    def _order_by(sort_by: str, sort_order: str) -> list:
        if sort_order not in {"asc", "desc"}:
            raise ValidationError(f"Unsupported sort order: {sort_order}")
        if sort_by == "relevance":
            return [documents.c.updated_at.desc(), documents.c.id.asc()]
        column = _SORT_COLUMNS.get(sort_by)
        if column is None:
            raise ValidationError(f"Unsupported sort field: {sort_by}")
        ordered = column.asc() if sort_order == "asc" else column.desc()
        return [ordered, documents.c.id.asc()]
