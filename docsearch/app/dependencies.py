from __future__ import annotations

from functools import lru_cache

from docsearch.app.settings import settings
from docsearch.embeddings.chunking import TextChunker
from docsearch.embeddings.client import EmbeddingClient
from docsearch.embeddings.document import DocumentEmbedder
from docsearch.embeddings.providers import (
    EmbeddingConfigReport,
    EmbeddingProvider,
    HashEmbeddingProvider,
    OpenAIEmbeddingProvider,
    build_embedding_config_report,
)
from docsearch.embeddings.tokens import TokenEstimator, build_token_estimator
from docsearch.embeddings.types import EmbeddingConfigError
from docsearch.search.indexer import EmbeddingIndexer
from docsearch.search.lexical import LexicalSearcher
from docsearch.search.llm import build_chat_provider
from docsearch.search.rerank import Reranker
from docsearch.search.service import SearchOrchestrator
from docsearch.search.vector import InMemoryVectorIndex, PgVectorIndex, VectorIndex, VectorSearcher
from docsearch.store.documents import DocumentStore


@lru_cache
def get_document_store() -> DocumentStore:
    return DocumentStore(settings.database_uri)


@lru_cache
def get_vector_index() -> VectorIndex:
    store = get_document_store()
    backend = settings.vector_index_backend.lower().strip()
    if backend == "pgvector":
        index = PgVectorIndex(store.engine, dimension=settings.embedding_dimension)
        index.ensure_schema()
        return index
    return InMemoryVectorIndex(store=store)


@lru_cache
def get_token_estimator() -> TokenEstimator:
    return build_token_estimator(settings.token_estimator, settings.tiktoken_encoding)


@lru_cache
def get_embedding_client() -> EmbeddingClient:
    return EmbeddingClient(
        provider=build_embedding_provider(),
        estimator=get_token_estimator(),
        max_tokens_per_request=settings.embedding_max_tokens_per_request,
        max_batch_size=settings.embedding_max_batch_size,
    )


@lru_cache
def get_document_embedder() -> DocumentEmbedder:
    chunker = TextChunker(
        estimator=get_token_estimator(),
        max_tokens=settings.chunk_max_tokens,
        overlap_tokens=settings.chunk_overlap_tokens,
    )
    return DocumentEmbedder(client=get_embedding_client(), chunker=chunker)


@lru_cache
def get_reranker() -> Reranker:
    provider = build_chat_provider(
        settings.rerank_provider,
        openai_api_key=settings.openai_api_key,
        openai_base_url=settings.openai_base_url,
        openai_model=settings.openai_chat_model,
        ollama_base_url=settings.ollama_base_url,
        ollama_model=settings.ollama_model,
        timeout=settings.rerank_timeout,
    )
    return Reranker(
        provider=provider,
        top_n=settings.rerank_top_n,
        timeout=settings.rerank_timeout,
        max_tokens=settings.rerank_max_tokens,
    )


@lru_cache
def get_search_service() -> SearchOrchestrator:
    return SearchOrchestrator(
        lexical=LexicalSearcher(store=get_document_store()),
        vector=VectorSearcher(index=get_vector_index(), timeout=settings.vector_search_timeout),
        embeddings=get_embedding_client(),
        reranker=get_reranker(),
        rrf_k=settings.rrf_k,
    )


@lru_cache
def get_indexer() -> EmbeddingIndexer:
    return EmbeddingIndexer(
        store=get_document_store(),
        index=get_vector_index(),
        embedder=get_document_embedder(),
        dimension=settings.embedding_dimension,
    )


def reset_caches() -> None:
    for factory in (
        get_document_store,
        get_vector_index,
        get_token_estimator,
        get_embedding_client,
        get_document_embedder,
        get_reranker,
        get_search_service,
        get_indexer,
    ):
        factory.cache_clear()


def get_embedding_config_report() -> EmbeddingConfigReport:
    provider = settings.embedding_provider
    model = None
    if provider.lower().strip() == "openai":
        model = settings.openai_embedding_model
    return build_embedding_config_report(
        provider,
        model,
        settings.embedding_dimension,
        api_key=settings.openai_api_key,
    )


def build_embedding_provider() -> EmbeddingProvider:
    provider = settings.embedding_provider.lower().strip()
    if provider == "hash":
        return HashEmbeddingProvider(dimension=settings.embedding_dimension)
    if provider == "openai":
        return OpenAIEmbeddingProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_embedding_model,
            dimension=settings.embedding_dimension,
            base_url=settings.openai_base_url,
            timeout=settings.embedding_timeout,
        )
    raise EmbeddingConfigError(f"Unsupported embedding provider: {provider}")
