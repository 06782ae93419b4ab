from __future__ import annotations

"""Embedding providers and configuration validation."""

import hashlib
import math
import re
from dataclasses import dataclass
from typing import Protocol

import httpx

from docsearch.embeddings.types import (
    DimensionMismatchError,
    EmbeddingConfigError,
    EmbeddingProviderError,
)

_TOKEN_RE = re.compile(r"[a-z0-9]+")

OPENAI_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


@dataclass(frozen=True)
class IndexedEmbedding:
    """One embedding as returned by a provider, tagged with its input index."""
    index: int
    embedding: list[float]


@dataclass(frozen=True)
class ProviderResponse:
    """Raw provider output for one embedding request."""
    data: list[IndexedEmbedding]
    prompt_tokens: int
    total_tokens: int


class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""
    dimension: int

    @property
    def available(self) -> bool:
        """Return True when the provider has the credentials it needs."""
        raise NotImplementedError

    async def embed(self, inputs: list[str]) -> ProviderResponse:
        """Return embeddings for the inputs; order of ``data`` is not guaranteed."""
        raise NotImplementedError


def validate_vector(vector: list[float], dimension: int) -> list[float]:
    """Validate an embedding vector and coerce its values to float."""
    if dimension > 0 and len(vector) != dimension:
        raise DimensionMismatchError(
            f"Embedding dimension mismatch: expected {dimension}, got {len(vector)}"
        )
    cleaned: list[float] = []
    for value in vector:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EmbeddingProviderError("Embedding contains a non-numeric value")
        if not math.isfinite(value):
            raise EmbeddingProviderError("Embedding contains a non-finite value")
        cleaned.append(float(value))
    return cleaned


@dataclass(frozen=True)
class HashEmbeddingProvider:
    """Deterministic hash-based embedder for offline use and tests."""
    dimension: int = 256

    @property
    def available(self) -> bool:
        return True

    async def embed(self, inputs: list[str]) -> ProviderResponse:
        """Embed each input using token hashing and L2 normalization."""
        data: list[IndexedEmbedding] = []
        tokens_used = 0
        for idx, text in enumerate(inputs):
            tokens = _TOKEN_RE.findall(text.lower())
            tokens_used += len(tokens)
            data.append(IndexedEmbedding(index=idx, embedding=self._embed_tokens(tokens)))
        return ProviderResponse(data=data, prompt_tokens=tokens_used, total_tokens=tokens_used)

    def _embed_tokens(self, tokens: list[str]) -> list[float]:
        vector = [0.0] * self.dimension
        for token in tokens:
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "big") % self.dimension] += 1.0
        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0.0:
            return vector
        return [value / norm for value in vector]


@dataclass(frozen=True)
class OpenAIEmbeddingProvider:
    """Embedding provider using the OpenAI embeddings API."""
    api_key: str | None
    model: str = "text-embedding-3-small"
    dimension: int = 1536
    base_url: str = "https://api.openai.com/v1"
    timeout: float = 30.0
    transport: httpx.AsyncBaseTransport | None = None

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    async def embed(self, inputs: list[str]) -> ProviderResponse:
        """Call POST /embeddings for the inputs."""
        if not self.api_key:
            raise EmbeddingConfigError("OPENAI_API_KEY is required for OpenAI embeddings")
        payload: dict[str, object] = {"model": self.model, "input": inputs}
        if self.model.startswith("text-embedding-3") and self.dimension > 0:
            payload["dimensions"] = self.dimension
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url.rstrip('/')}/embeddings",
                    json=payload,
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            raise EmbeddingProviderError(f"Embedding request failed: {exc}") from exc

        if not response.is_success:
            raise EmbeddingProviderError(
                f"Embedding API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise EmbeddingProviderError(
                "Embedding API returned invalid JSON",
                status_code=response.status_code,
                body=response.text,
            ) from exc
        try:
            return _parse_openai_response(body)
        except (TypeError, ValueError, AttributeError) as exc:
            raise EmbeddingProviderError(
                f"Embedding response is malformed: {exc}",
                status_code=response.status_code,
                body=response.text,
            ) from exc


def _parse_openai_response(body: object) -> ProviderResponse:
    """Parse an OpenAI-compatible embeddings payload."""
    if not isinstance(body, dict) or not isinstance(body.get("data"), list):
        raise EmbeddingProviderError("Embedding response missing data")
    items: list[IndexedEmbedding] = []
    for position, item in enumerate(body["data"]):
        if not isinstance(item, dict) or not isinstance(item.get("embedding"), list):
            raise EmbeddingProviderError("Embedding response item missing embedding")
        index = item.get("index", position)
        if not isinstance(index, int):
            raise EmbeddingProviderError("Embedding response item has invalid index")
        items.append(IndexedEmbedding(index=index, embedding=item["embedding"]))
    usage = body.get("usage") or {}
    prompt_tokens = int(usage.get("prompt_tokens") or 0)
    total_tokens = int(usage.get("total_tokens") or prompt_tokens)
    return ProviderResponse(data=items, prompt_tokens=prompt_tokens, total_tokens=total_tokens)


def resolve_openai_dimension(model: str) -> int | None:
    """Return the native dimension for an OpenAI embedding model."""
    return OPENAI_DIMENSIONS.get(model)


@dataclass(frozen=True)
class EmbeddingConfigReport:
    """Validation report for embedding settings."""
    provider: str
    model: str | None
    configured_dimension: int
    expected_dimension: int | None
    ok: bool
    status: str
    available: bool = False
    detail: str | None = None
    action: str | None = None


def build_embedding_config_report(
    provider: str,
    model: str | None,
    dimension: int,
    api_key: str | None = None,
) -> EmbeddingConfigReport:
    """Build a validation report for embedding settings."""
    normalized = provider.lower().strip()

    if normalized == "hash":
        if dimension <= 0:
            return EmbeddingConfigReport(
                provider="hash",
                model=None,
                configured_dimension=dimension,
                expected_dimension=None,
                ok=False,
                status="error",
                detail="EMBEDDING_DIMENSION must be greater than zero for hash embeddings.",
                action="Set EMBEDDING_DIMENSION to a positive integer.",
            )
        return EmbeddingConfigReport(
            provider="hash",
            model=None,
            configured_dimension=dimension,
            expected_dimension=dimension,
            ok=True,
            status="ok",
            available=True,
        )

    if normalized == "openai":
        available = bool(api_key)
        if not model:
            return EmbeddingConfigReport(
                provider="openai",
                model=None,
                configured_dimension=dimension,
                expected_dimension=None,
                ok=False,
                status="error",
                available=available,
                detail="OPENAI_EMBEDDING_MODEL is required for OpenAI embeddings.",
                action="Set OPENAI_EMBEDDING_MODEL in .env.",
            )
        expected = resolve_openai_dimension(model)
        if dimension <= 0:
            return EmbeddingConfigReport(
                provider="openai",
                model=model,
                configured_dimension=dimension,
                expected_dimension=expected,
                ok=False,
                status="error",
                available=available,
                detail="EMBEDDING_DIMENSION must be greater than zero.",
                action=f"Set EMBEDDING_DIMENSION to {expected or 1536}.",
            )
        if expected is not None:
            shortened = model.startswith("text-embedding-3") and dimension < expected
            if dimension != expected and not shortened:
                return EmbeddingConfigReport(
                    provider="openai",
                    model=model,
                    configured_dimension=dimension,
                    expected_dimension=expected,
                    ok=False,
                    status="error",
                    available=available,
                    detail="EMBEDDING_DIMENSION is not supported by the OpenAI model.",
                    action=f"Set EMBEDDING_DIMENSION to {expected}.",
                )
        if not available:
            return EmbeddingConfigReport(
                provider="openai",
                model=model,
                configured_dimension=dimension,
                expected_dimension=expected,
                ok=True,
                status="warning",
                detail="OPENAI_API_KEY is not set; semantic search falls back to text search.",
                action="Set OPENAI_API_KEY in .env.",
            )
        if expected is None:
            return EmbeddingConfigReport(
                provider="openai",
                model=model,
                configured_dimension=dimension,
                expected_dimension=None,
                ok=True,
                status="warning",
                available=True,
                detail="Model dimension cannot be auto-validated. Confirm EMBEDDING_DIMENSION manually.",
            )
        return EmbeddingConfigReport(
            provider="openai",
            model=model,
            configured_dimension=dimension,
            expected_dimension=expected,
            ok=True,
            status="ok",
            available=True,
        )

    return EmbeddingConfigReport(
        provider=normalized,
        model=model,
        configured_dimension=dimension,
        expected_dimension=None,
        ok=False,
        status="error",
        detail="Unsupported embedding provider.",
        action="Set EMBEDDING_PROVIDER to hash or openai.",
    )
