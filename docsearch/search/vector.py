from __future__ import annotations

"""Similarity search against a vector index."""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine
from sqlalchemy.sql.elements import TextClause

from docsearch.search.lexical import document_to_result
from docsearch.search.types import (
    FolderRef,
    RankedList,
    SearchFilters,
    VectorIndexError,
)
from docsearch.store.documents import DocumentRow, DocumentStore
from docsearch.store.schema import DELETED_STATUS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VectorMatch:
    """Document returned by a similarity query with its cosine similarity."""
    document: DocumentRow
    similarity: float


class VectorIndex(Protocol):
    """Protocol for vector indexes holding one embedding per document."""

    def similarity_search(
        self,
        organization_id: str,
        vector: list[float],
        limit: int,
        threshold: float,
        filters: SearchFilters | None = None,
    ) -> list[VectorMatch]:
        """Return matches with similarity >= threshold, best first."""
        raise NotImplementedError

    def upsert(self, document_id: str, organization_id: str, vector: list[float]) -> None:
        raise NotImplementedError

    def delete(self, document_id: str) -> bool:
        raise NotImplementedError

    def count(self, organization_id: str) -> int:
        raise NotImplementedError


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Compute cosine similarity between two vectors."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


def vector_literal(vector: list[float]) -> str:
    """Render a vector in pgvector's text input format."""
    return "[" + ",".join(repr(float(value)) for value in vector) + "]"


@dataclass
class InMemoryVectorIndex:
    """Process-local vector index; document rows and filters come from the store."""
    store: DocumentStore
    vectors: dict[str, tuple[str, list[float]]] = field(default_factory=dict)

    def similarity_search(
        self,
        organization_id: str,
        vector: list[float],
        limit: int,
        threshold: float,
        filters: SearchFilters | None = None,
    ) -> list[VectorMatch]:
        scored = [
            (document_id, cosine_similarity(vector, values))
            for document_id, (owner, values) in list(self.vectors.items())
            if owner == organization_id
        ]
        scored = [item for item in scored if item[1] >= threshold]
        scored.sort(key=lambda item: item[1], reverse=True)
        rows = self.store.fetch_documents(organization_id, [doc_id for doc_id, _ in scored], filters)
        matches = [
            VectorMatch(document=rows[doc_id], similarity=similarity)
            for doc_id, similarity in scored
            if doc_id in rows
        ]
        return matches[:limit]

    def upsert(self, document_id: str, organization_id: str, vector: list[float]) -> None:
        self.vectors[document_id] = (organization_id, list(vector))

    def delete(self, document_id: str) -> bool:
        return self.vectors.pop(document_id, None) is not None

    def count(self, organization_id: str) -> int:
        live = self.store.fetch_documents(
            organization_id,
            [doc_id for doc_id, (owner, _) in list(self.vectors.items()) if owner == organization_id],
        )
        return len(live)


class PgVectorIndex:
    """pgvector index over the ``documents.content_vector`` column.

    Every value reaching the database, the query vector included, is a bound
    parameter. List filters use expanding bind parameters.
    """

    def __init__(self, engine: Engine, dimension: int = 1536) -> None:
        self._engine = engine
        self._dimension = int(dimension)

    def ensure_schema(self) -> None:
        """Create the pgvector extension and the vector column if missing."""
        with self._engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            conn.execute(
                text(
                    "ALTER TABLE documents ADD COLUMN IF NOT EXISTS "
                    f"content_vector vector({self._dimension})"
                )
            )

    def build_statement(
        self,
        organization_id: str,
        vector: list[float],
        limit: int,
        threshold: float,
        filters: SearchFilters | None = None,
    ) -> tuple[TextClause, dict[str, Any]]:
        """Build the similarity statement and its parameters."""
        params: dict[str, Any] = {
            "query_vector": vector_literal(vector),
            "organization_id": organization_id,
            "deleted_status": DELETED_STATUS,
            "threshold": float(threshold),
            "limit": int(limit),
        }
        clauses = [
            "d.organization_id = :organization_id",
            "d.status != :deleted_status",
            "d.deleted_at IS NULL",
            "d.content_vector IS NOT NULL",
            "1 - (d.content_vector <=> CAST(:query_vector AS vector)) >= :threshold",
        ]
        expanding: list[str] = []
        if filters is not None:
            if filters.folder_id:
                params["folder_id"] = filters.folder_id
                if filters.include_subfolders:
                    clauses.append(
                        "(d.folder_id = :folder_id OR d.folder_id IN ("
                        "SELECT sf.id FROM folders sf JOIN folders pf "
                        "ON pf.id = :folder_id AND pf.organization_id = :organization_id "
                        "WHERE sf.organization_id = :organization_id "
                        "AND substr(sf.path, 1, length(pf.path) + 1) = pf.path || '/'))"
                    )
                else:
                    clauses.append("d.folder_id = :folder_id")
            if filters.mime_types:
                params["mime_types"] = list(filters.mime_types)
                expanding.append("mime_types")
                clauses.append("d.mime_type IN :mime_types")
            if filters.statuses:
                params["statuses"] = list(filters.statuses)
                expanding.append("statuses")
                clauses.append("d.status IN :statuses")
            for column, date_range in (
                ("created_at", filters.created_at),
                ("updated_at", filters.updated_at),
            ):
                if date_range is None:
                    continue
                if date_range.date_from is not None:
                    params[f"{column}_from"] = date_range.date_from
                    clauses.append(f"d.{column} >= :{column}_from")
                if date_range.date_to is not None:
                    params[f"{column}_to"] = date_range.date_to
                    clauses.append(f"d.{column} <= :{column}_to")
            if filters.size_range is not None:
                if filters.size_range.min_bytes is not None:
                    params["size_min"] = filters.size_range.min_bytes
                    clauses.append("d.size_bytes >= :size_min")
                if filters.size_range.max_bytes is not None:
                    params["size_max"] = filters.size_range.max_bytes
                    clauses.append("d.size_bytes <= :size_max")
            if filters.created_by_id:
                params["created_by_id"] = filters.created_by_id
                clauses.append("d.created_by_id = :created_by_id")
            if filters.category:
                params["category"] = filters.category
                clauses.append("d.category = :category")
            if filters.tags:
                params["tags"] = list(filters.tags)
                expanding.append("tags")
                clauses.append(
                    "EXISTS (SELECT 1 FROM document_tags t "
                    "WHERE t.document_id = d.id AND t.tag IN :tags)"
                )

        sql = (
            "SELECT d.id, d.organization_id, d.name, d.original_name, d.mime_type, "
            "d.size_bytes, d.status, d.processing_status, d.extracted_text, d.category, "
            "d.metadata, d.created_at, d.updated_at, d.folder_id, "
            "f.name AS folder_name, f.path AS folder_path, "
            "1 - (d.content_vector <=> CAST(:query_vector AS vector)) AS similarity "
            "FROM documents d LEFT JOIN folders f ON f.id = d.folder_id "
            "WHERE " + " AND ".join(clauses) + " "
            "ORDER BY d.content_vector <=> CAST(:query_vector AS vector) "
            "LIMIT :limit"
        )
        stmt = text(sql)
        if expanding:
            stmt = stmt.bindparams(*(bindparam(name, expanding=True) for name in expanding))
        return stmt, params

    def similarity_search(
        self,
        organization_id: str,
        vector: list[float],
        limit: int,
        threshold: float,
        filters: SearchFilters | None = None,
    ) -> list[VectorMatch]:
        stmt, params = self.build_statement(organization_id, vector, limit, threshold, filters)
        with self._engine.connect() as conn:
            rows = conn.execute(stmt, params).mappings().all()
        return [
            VectorMatch(document=_mapping_to_document(row), similarity=float(row["similarity"]))
            for row in rows
        ]

    def upsert(self, document_id: str, organization_id: str, vector: list[float]) -> None:
        stmt = text(
            "UPDATE documents SET content_vector = CAST(:vector AS vector) "
            "WHERE id = :document_id AND organization_id = :organization_id"
        )
        with self._engine.begin() as conn:
            result = conn.execute(
                stmt,
                {
                    "vector": vector_literal(vector),
                    "document_id": document_id,
                    "organization_id": organization_id,
                },
            )
        if result.rowcount == 0:
            raise VectorIndexError(f"Document not found for vector upsert: {document_id}")

    def delete(self, document_id: str) -> bool:
        stmt = text(
            "UPDATE documents SET content_vector = NULL "
            "WHERE id = :document_id AND content_vector IS NOT NULL"
        )
        with self._engine.begin() as conn:
            result = conn.execute(stmt, {"document_id": document_id})
        return result.rowcount > 0

    def count(self, organization_id: str) -> int:
        stmt = text(
            "SELECT count(*) FROM documents "
            "WHERE organization_id = :organization_id AND content_vector IS NOT NULL "
            "AND status != :deleted_status AND deleted_at IS NULL"
        )
        with self._engine.connect() as conn:
            value = conn.execute(
                stmt,
                {"organization_id": organization_id, "deleted_status": DELETED_STATUS},
            ).scalar_one()
        return int(value)


def _mapping_to_document(row: Mapping[str, Any]) -> DocumentRow:
    folder = None
    if row["folder_id"] and row["folder_name"] is not None:
        folder = FolderRef(id=row["folder_id"], name=row["folder_name"], path=row["folder_path"])
    return DocumentRow(
        id=row["id"],
        organization_id=row["organization_id"],
        name=row["name"],
        original_name=row["original_name"],
        mime_type=row["mime_type"],
        size_bytes=row["size_bytes"],
        status=row["status"],
        processing_status=row["processing_status"],
        extracted_text=row["extracted_text"],
        folder=folder,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        category=row["category"],
        metadata=row["metadata"],
    )


@dataclass
class VectorSearcher:
    """Run similarity queries off the event loop under a timeout."""
    index: VectorIndex
    timeout: float = 10.0
    snippet_length: int = 200

    async def search(
        self,
        organization_id: str,
        query_vector: list[float],
        limit: int,
        threshold: float,
        filters: SearchFilters | None = None,
    ) -> RankedList:
        if filters is not None:
            filters.validate()
        try:
            matches = await asyncio.wait_for(
                asyncio.to_thread(
                    self.index.similarity_search,
                    organization_id,
                    query_vector,
                    limit,
                    threshold,
                    filters,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise VectorIndexError(f"Vector search timed out after {self.timeout}s") from exc
        except VectorIndexError:
            raise
        except Exception as exc:
            raise VectorIndexError(f"Vector search failed: {type(exc).__name__}") from exc

        kept = [match for match in matches if match.similarity >= threshold]
        kept.sort(key=lambda match: match.similarity, reverse=True)
        results = [
            document_to_result(
                match.document,
                match.similarity,
                semantic_score=match.similarity,
                snippet_length=self.snippet_length,
            )
            for match in kept[:limit]
        ]
        logger.debug("vector_search_complete", extra={"results": len(results)})
        return results
