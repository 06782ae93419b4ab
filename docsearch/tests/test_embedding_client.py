from __future__ import annotations

"""Tests for the batched embedding client against a mocked OpenAI endpoint."""

import json

import httpx
import pytest

from docsearch.embeddings.client import EMPTY_PLACEHOLDER, EmbeddingClient
from docsearch.embeddings.providers import HashEmbeddingProvider, OpenAIEmbeddingProvider
from docsearch.embeddings.types import (
    DimensionMismatchError,
    EmbeddingConfigError,
    EmbeddingProviderError,
    EmptyInputError,
)

pytestmark = pytest.mark.anyio

BASIS = {
    "x": [1.0, 0.0, 0.0],
    "y": [0.0, 1.0, 0.0],
    "z": [0.0, 0.0, 1.0],
}


class RecordingHandler:
    """Fake embeddings endpoint that answers in a scrambled order."""

    def __init__(self, order: str = "reverse") -> None:
        self.order = order
        self.payloads: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.payloads.append(payload)
        inputs = payload["input"]
        indices = list(range(len(inputs)))
        if self.order == "reverse":
            indices.reverse()
        elif self.order == "rotate" and len(indices) == 3:
            indices = [2, 0, 1]
        data = [
            {"object": "embedding", "index": idx, "embedding": BASIS.get(inputs[idx], [0.5, 0.5, 0.5])}
            for idx in indices
        ]
        return httpx.Response(
            200,
            json={"data": data, "usage": {"prompt_tokens": len(inputs), "total_tokens": len(inputs)}},
        )


def build_client(handler, **kwargs) -> EmbeddingClient:
    provider = OpenAIEmbeddingProvider(
        api_key="test-key",
        model="text-embedding-3-small",
        dimension=3,
        transport=httpx.MockTransport(handler),
    )
    return EmbeddingClient(provider=provider, **kwargs)


async def test_batch_results_follow_submission_order() -> None:
    handler = RecordingHandler(order="rotate")
    client = build_client(handler)

    result = await client.embed_batch(["x", "y", "z"])

    assert [vector.values for vector in result.vectors] == [BASIS["x"], BASIS["y"], BASIS["z"]]
    assert result.total_tokens == 3
    assert handler.payloads[0]["model"] == "text-embedding-3-small"
    assert handler.payloads[0]["dimensions"] == 3


async def test_batches_are_split_and_reassembled() -> None:
    handler = RecordingHandler(order="reverse")
    client = build_client(handler, max_batch_size=2)

    result = await client.embed_batch(["x", "y", "z", "y", "x"])

    assert [len(payload["input"]) for payload in handler.payloads] == [2, 2, 1]
    assert [vector.values for vector in result.vectors] == [
        BASIS["x"],
        BASIS["y"],
        BASIS["z"],
        BASIS["y"],
        BASIS["x"],
    ]
    assert result.total_tokens == 5


async def test_blank_batch_entries_use_placeholder() -> None:
    handler = RecordingHandler()
    client = build_client(handler)

    result = await client.embed_batch(["x", "   ", ""])

    assert handler.payloads[0]["input"] == ["x", EMPTY_PLACEHOLDER, EMPTY_PLACEHOLDER]
    assert len(result.vectors) == 3


async def test_empty_batch_makes_no_request() -> None:
    handler = RecordingHandler()
    client = build_client(handler)

    result = await client.embed_batch([])

    assert result.vectors == []
    assert result.total_tokens == 0
    assert handler.payloads == []


async def test_single_embed_rejects_blank_text() -> None:
    client = build_client(RecordingHandler())
    with pytest.raises(EmptyInputError):
        await client.embed("   ")


async def test_single_embed_returns_vector_and_tokens() -> None:
    client = build_client(RecordingHandler())
    result = await client.embed("  y  ")
    assert result.vector.values == BASIS["y"]
    assert result.vector.dimensions == 3
    assert result.tokens_used == 1
    assert result.chunk_count == 1


async def test_overlong_input_is_truncated() -> None:
    handler = RecordingHandler()
    client = build_client(handler, max_tokens_per_request=10)

    await client.embed("word " * 200)

    sent = handler.payloads[0]["input"][0]
    assert sent.endswith("...")
    assert len(sent) <= 43


async def test_error_status_surfaces_status_and_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="rate limited")

    client = build_client(handler)
    with pytest.raises(EmbeddingProviderError) as excinfo:
        await client.embed("x")
    assert excinfo.value.status_code == 429
    assert excinfo.value.body == "rate limited"


async def test_transport_failure_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = build_client(handler)
    with pytest.raises(EmbeddingProviderError):
        await client.embed_batch(["x", "y"])


async def test_wrong_dimension_is_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0, 0.0]}]})

    client = build_client(handler)
    with pytest.raises(DimensionMismatchError):
        await client.embed("x")


async def test_missing_vectors_are_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": BASIS["x"]}]})

    client = build_client(handler)
    with pytest.raises(EmbeddingProviderError):
        await client.embed_batch(["x", "y"])


async def test_non_numeric_values_are_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0, "a", 0.0]}]})

    client = build_client(handler)
    with pytest.raises(EmbeddingProviderError):
        await client.embed("x")


async def test_malformed_usage_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"data": [{"index": 0, "embedding": BASIS["x"]}], "usage": {"prompt_tokens": "n/a"}},
        )

    client = build_client(handler)
    with pytest.raises(EmbeddingProviderError) as excinfo:
        await client.embed("x")
    assert excinfo.value.status_code == 200


async def test_legacy_model_omits_dimensions_field() -> None:
    handler = RecordingHandler()
    provider = OpenAIEmbeddingProvider(
        api_key="test-key",
        model="text-embedding-ada-002",
        dimension=3,
        transport=httpx.MockTransport(handler),
    )
    await EmbeddingClient(provider=provider).embed("x")
    assert "dimensions" not in handler.payloads[0]


async def test_unconfigured_provider_is_unavailable() -> None:
    client = EmbeddingClient(provider=OpenAIEmbeddingProvider(api_key=None))
    assert client.is_available() is False
    with pytest.raises(EmbeddingConfigError):
        await client.embed("x")
    with pytest.raises(EmbeddingConfigError):
        await client.embed_batch(["x"])


async def test_hash_provider_is_deterministic() -> None:
    client = EmbeddingClient(provider=HashEmbeddingProvider(dimension=32))
    first = await client.embed("quarterly invoice totals")
    second = await client.embed("quarterly invoice totals")
    assert client.is_available() is True
    assert first.vector.values == second.vector.values
    assert first.vector.dimensions == 32
