from __future__ import annotations

"""End-to-end tests for the search HTTP API."""

import os
import uuid

import httpx
import pytest

from docsearch.app import main
from docsearch.app.dependencies import get_document_embedder, get_document_store, reset_caches
from docsearch.app.main import app
from docsearch.search.indexer import EmbeddingIndexer
from docsearch.search.types import VectorIndexError
from docsearch.search.vector import InMemoryVectorIndex

pytestmark = pytest.mark.anyio


def get_client() -> httpx.AsyncClient:
    """Build an ASGI test client."""
    reset_caches()
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


def new_org() -> dict[str, str]:
    return {"x-organization-id": f"org-{uuid.uuid4().hex[:12]}"}


def seed(headers: dict[str, str]) -> dict[str, str]:
    store = get_document_store()
    org = headers["x-organization-id"]
    folder = store.add_folder(org, "Finance")
    return {
        "invoice": store.add_document(
            org,
            "Invoice March",
            extracted_text="Quarterly invoice totals for March",
            folder_id=folder.id,
        ),
        "holiday": store.add_document(org, "Holiday", extracted_text="Beach plans for summer"),
        "folder": folder.id,
    }


async def test_health() -> None:
    async with get_client() as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"]


async def test_text_search_returns_documents_and_folders() -> None:
    headers = new_org()
    async with get_client() as client:
        ids = seed(headers)
        response = await client.get("/search", params={"q": "finance"}, headers=headers)
        invoice = await client.get("/search", params={"q": "invoice", "type": "documents"}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["kind"] == "both"
    assert body["data"]["documents"] == []
    assert [folder["name"] for folder in body["data"]["folders"]] == ["Finance"]
    assert body["meta"]["algorithm"] == "text"
    assert body["meta"]["totalPages"] == 1
    assert "took_ms" in body["meta"]

    hits = invoice.json()["data"]["documents"]
    assert [hit["id"] for hit in hits] == [ids["invoice"]]
    assert hits[0]["textScore"] == 1.0
    assert hits[0]["folder"]["path"] == "/Finance"
    assert "semanticScore" not in hits[0]


async def test_text_search_requires_query() -> None:
    async with get_client() as client:
        response = await client.get("/search", headers=new_org())
    assert response.status_code == 422


async def test_semantic_search_after_indexing() -> None:
    headers = new_org()
    async with get_client() as client:
        ids = seed(headers)
        for key in ("invoice", "holiday"):
            indexed = await client.post(f"/documents/{ids[key]}/embedding", headers=headers)
            assert indexed.status_code == 200
            assert indexed.json()["documentId"] == ids[key]
            assert indexed.json()["dimensions"] == 256

        response = await client.post(
            "/search/semantic",
            json={"query": "quarterly invoice totals", "threshold": 0.3},
            headers=headers,
        )
        coverage = await client.get("/stats/embedding/coverage", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["meta"]["algorithm"] == "semantic"
    assert body["meta"]["reranked"] is False
    assert body["data"][0]["id"] == ids["invoice"]
    assert body["data"][0]["semanticScore"] > 0.3

    assert coverage.json() == {
        "organizationId": headers["x-organization-id"],
        "totalDocuments": 2,
        "documentsWithEmbeddings": 2,
        "coveragePercent": 100.0,
    }


async def test_hybrid_search_reports_weights() -> None:
    headers = new_org()
    async with get_client() as client:
        ids = seed(headers)
        await client.post(f"/documents/{ids['invoice']}/embedding", headers=headers)
        response = await client.post(
            "/search/hybrid",
            json={"query": "invoice", "textWeight": 0.5, "semanticWeight": 0.5, "threshold": 0.1},
            headers=headers,
        )

    assert response.status_code == 200
    body = response.json()
    assert body["meta"]["algorithm"] == "hybrid"
    assert body["meta"]["textWeight"] == 0.5
    assert body["meta"]["semanticWeight"] == 0.5
    assert body["data"][0]["id"] == ids["invoice"]
    assert body["data"][0]["textScore"] == 1.0


async def test_request_validation_errors() -> None:
    headers = new_org()
    async with get_client() as client:
        bad_limit = await client.post("/search/semantic", json={"query": "x", "limit": 0}, headers=headers)
        bad_threshold = await client.post(
            "/search/semantic", json={"query": "x", "threshold": 2}, headers=headers
        )
        inverted = await client.post(
            "/search/hybrid",
            json={"query": "x", "filters": {"sizeRange": {"min": 10, "max": 1}}},
            headers=headers,
        )

    assert bad_limit.status_code == 422
    assert bad_threshold.status_code == 422
    assert inverted.status_code == 400


async def test_suggest_short_and_matching_prefixes() -> None:
    headers = new_org()
    async with get_client() as client:
        ids = seed(headers)
        short = await client.get("/search/suggest", params={"q": "i"}, headers=headers)
        matching = await client.get("/search/suggest", params={"q": "inv"}, headers=headers)

    assert short.json() == {"suggestions": [], "query": "i"}
    suggestions = matching.json()["suggestions"]
    assert suggestions == [
        {"text": "Invoice March", "type": "document", "id": ids["invoice"], "matchScore": 1.0}
    ]


async def test_unknown_document_embedding_is_404() -> None:
    async with get_client() as client:
        response = await client.post("/documents/missing/embedding", headers=new_org())
    assert response.status_code == 404


class FailingVectorIndex(InMemoryVectorIndex):
    def upsert(self, document_id: str, organization_id: str, vector: list[float]) -> None:
        raise VectorIndexError("vector write failed")


async def test_vector_index_failure_is_502(monkeypatch: pytest.MonkeyPatch) -> None:
    headers = new_org()
    async with get_client() as client:
        ids = seed(headers)
        store = get_document_store()
        indexer = EmbeddingIndexer(
            store=store,
            index=FailingVectorIndex(store=store),
            embedder=get_document_embedder(),
            dimension=256,
        )
        monkeypatch.setattr(main, "get_indexer", lambda: indexer)
        response = await client.post(f"/documents/{ids['invoice']}/embedding", headers=headers)

    assert response.status_code == 502
    assert response.json()["detail"] == "Document embedding failed"


async def test_delete_embedding() -> None:
    headers = new_org()
    async with get_client() as client:
        ids = seed(headers)
        await client.post(f"/documents/{ids['invoice']}/embedding", headers=headers)
        first = await client.delete(f"/documents/{ids['invoice']}/embedding", headers=headers)
        second = await client.delete(f"/documents/{ids['invoice']}/embedding", headers=headers)

    assert first.json() == {"documentId": ids["invoice"], "removed": True}
    assert second.json() == {"documentId": ids["invoice"], "removed": False}


async def test_embedding_health_report() -> None:
    async with get_client() as client:
        response = await client.get("/stats/embedding")
    assert response.status_code == 200
    body = response.json()
    assert body["provider"] == "hash"
    assert body["ok"] is True
    assert body["configured_dimension"] == 256


async def test_api_key_map_scopes_organization_and_role() -> None:
    original = os.environ.get("SEARCH_API_KEY_MAP")
    os.environ["SEARCH_API_KEY_MAP"] = (
        '{"reader-key": {"role": "reader", "organization_id": "org-reader"}}'
    )
    try:
        async with get_client() as client:
            missing = await client.get("/search", params={"q": "x"})
            reader = await client.get("/search", params={"q": "x"}, headers={"X-API-Key": "reader-key"})
            forbidden = await client.post(
                "/documents/any/embedding",
                headers={"Authorization": "Bearer reader-key"},
            )
    finally:
        if original is None:
            os.environ.pop("SEARCH_API_KEY_MAP", None)
        else:
            os.environ["SEARCH_API_KEY_MAP"] = original

    assert missing.status_code == 401
    assert reader.status_code == 200
    assert forbidden.status_code == 403


async def test_metrics_endpoint_exposes_search_counters() -> None:
    headers = new_org()
    async with get_client() as client:
        await client.get("/search", params={"q": "anything"}, headers=headers)
        response = await client.get("/metrics")
    assert response.status_code == 200
    assert "search_requests_total" in response.text
