from __future__ import annotations

"""Tests for vector indexes and the vector searcher."""

import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql

from docsearch.search.types import SearchFilters, VectorIndexError
from docsearch.search.vector import (
    InMemoryVectorIndex,
    PgVectorIndex,
    VectorSearcher,
    cosine_similarity,
    vector_literal,
)
from docsearch.store.documents import DocumentStore

pytestmark = pytest.mark.anyio

ORG = "org-vector"


def seed_index(store: DocumentStore) -> tuple[InMemoryVectorIndex, dict[str, str]]:
    folder = store.add_folder(ORG, "Contracts")
    ids = {
        "close": store.add_document(ORG, "Close match", extracted_text="close", folder_id=folder.id),
        "near": store.add_document(ORG, "Near match", extracted_text="near"),
        "far": store.add_document(ORG, "Far match", extracted_text="far"),
        "deleted": store.add_document(ORG, "Deleted", extracted_text="gone", status="DELETED"),
        "foreign": store.add_document("org-foreign", "Foreign", extracted_text="foreign"),
    }
    index = InMemoryVectorIndex(store=store)
    index.upsert(ids["close"], ORG, [1.0, 0.0, 0.0])
    index.upsert(ids["near"], ORG, [0.8, 0.6, 0.0])
    index.upsert(ids["far"], ORG, [0.0, 0.0, 1.0])
    index.upsert(ids["deleted"], ORG, [1.0, 0.0, 0.0])
    index.upsert(ids["foreign"], "org-foreign", [1.0, 0.0, 0.0])
    ids["folder"] = folder.id
    return index, ids


def test_cosine_similarity_handles_zero_vectors() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0


async def test_search_orders_by_similarity_above_threshold(store: DocumentStore) -> None:
    index, ids = seed_index(store)
    searcher = VectorSearcher(index=index)

    results = await searcher.search(ORG, [1.0, 0.0, 0.0], limit=10, threshold=0.5)

    assert [item.id for item in results] == [ids["close"], ids["near"]]
    assert [item.score for item in results] == pytest.approx([1.0, 0.8])
    assert all(item.semantic_score == item.score for item in results)
    assert all(item.text_score is None for item in results)


async def test_search_respects_limit_and_filters(store: DocumentStore) -> None:
    index, ids = seed_index(store)
    searcher = VectorSearcher(index=index)

    limited = await searcher.search(ORG, [1.0, 0.0, 0.0], limit=1, threshold=0.0)
    in_folder = await searcher.search(
        ORG,
        [1.0, 0.0, 0.0],
        limit=10,
        threshold=0.0,
        filters=SearchFilters(folder_id=ids["folder"]),
    )

    assert [item.id for item in limited] == [ids["close"]]
    assert [item.id for item in in_folder] == [ids["close"]]
    assert in_folder[0].folder is not None
    assert in_folder[0].folder.name == "Contracts"


def test_index_count_and_delete(store: DocumentStore) -> None:
    index, ids = seed_index(store)

    assert index.count(ORG) == 3
    assert index.delete(ids["far"]) is True
    assert index.delete(ids["far"]) is False
    assert index.count(ORG) == 2


class FailingIndex:
    def similarity_search(self, *args, **kwargs):
        raise RuntimeError("connection reset")


class SlowIndex:
    def similarity_search(self, *args, **kwargs):
        time.sleep(0.5)
        return []


async def test_index_failures_become_vector_index_errors() -> None:
    with pytest.raises(VectorIndexError):
        await VectorSearcher(index=FailingIndex()).search(ORG, [1.0], limit=5, threshold=0.1)


async def test_slow_index_times_out() -> None:
    with pytest.raises(VectorIndexError):
        await VectorSearcher(index=SlowIndex(), timeout=0.05).search(ORG, [1.0], limit=5, threshold=0.1)


def test_pgvector_statement_binds_every_value() -> None:
    index = PgVectorIndex(create_engine("sqlite://"), dimension=3)
    hostile = "x'; DROP TABLE documents; --"
    filters = SearchFilters(
        folder_id="folder-1",
        mime_types=("application/pdf", "text/plain"),
        statuses=("ACTIVE",),
        category=hostile,
        tags=("billing",),
    )

    stmt, params = index.build_statement(hostile, [0.25, 0.5, 0.75], limit=7, threshold=0.4, filters=filters)
    sql = str(stmt.compile(dialect=postgresql.dialect()))

    assert hostile not in sql
    assert vector_literal([0.25, 0.5, 0.75]) not in sql
    assert "CAST(%(query_vector)s AS vector)" in sql
    assert "POSTCOMPILE_mime_types" in sql
    assert "POSTCOMPILE_statuses" in sql
    assert "POSTCOMPILE_tags" in sql
    assert "pf.path || '/'" in sql
    assert params["organization_id"] == hostile
    assert params["category"] == hostile
    assert params["query_vector"] == "[0.25,0.5,0.75]"
    assert params["mime_types"] == ["application/pdf", "text/plain"]
    assert params["limit"] == 7
    assert params["threshold"] == pytest.approx(0.4)


def test_pgvector_statement_without_filters_has_base_clauses() -> None:
    index = PgVectorIndex(create_engine("sqlite://"))
    stmt, params = index.build_statement("org-1", [1.0], limit=5, threshold=0.7)
    sql = str(stmt)

    assert ":organization_id" in sql
    assert ":deleted_status" in sql
    assert "d.deleted_at IS NULL" in sql
    assert "folder_id" not in params
    assert set(params) == {"query_vector", "organization_id", "deleted_status", "threshold", "limit"}
