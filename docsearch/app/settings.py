from __future__ import annotations

import json
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    database_uri: str = os.getenv("SEARCH_DATABASE_URI", "sqlite:///./docsearch.db")
    vector_index_backend: str = os.getenv("SEARCH_VECTOR_INDEX", "memory")
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "openai")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "1536"))
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    openai_embedding_model: str = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
    embedding_max_tokens_per_request: int = int(os.getenv("EMBEDDING_MAX_TOKENS_PER_REQUEST", "8191"))
    embedding_max_batch_size: int = int(os.getenv("EMBEDDING_MAX_BATCH_SIZE", "2048"))
    embedding_timeout: float = float(os.getenv("EMBEDDING_TIMEOUT", "30"))
    token_estimator: str = os.getenv("SEARCH_TOKEN_ESTIMATOR", "heuristic")
    tiktoken_encoding: str = os.getenv("TIKTOKEN_ENCODING", "cl100k_base")
    chunk_max_tokens: int = int(os.getenv("CHUNK_MAX_TOKENS", "500"))
    chunk_overlap_tokens: int = int(os.getenv("CHUNK_OVERLAP_TOKENS", "50"))
    rerank_provider: str = os.getenv("RERANK_PROVIDER", "openai")
    openai_chat_model: str = os.getenv("OPENAI_CHAT_MODEL", "gpt-4-turbo-preview")
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "llama3.1")
    rerank_top_n: int = int(os.getenv("RERANK_TOP_N", "20"))
    rerank_timeout: float = float(os.getenv("RERANK_TIMEOUT", "15"))
    rerank_max_tokens: int = int(os.getenv("RERANK_MAX_TOKENS", "100"))
    vector_search_timeout: float = float(os.getenv("VECTOR_SEARCH_TIMEOUT", "10"))
    rrf_k: int = int(os.getenv("RRF_K", "60"))
    log_level: str = os.getenv("SEARCH_LOG_LEVEL", "INFO")
    metrics_enabled: bool = os.getenv("SEARCH_METRICS_ENABLED", "true").lower() in {"1", "true", "yes"}
    api_keys_raw: str = os.getenv("SEARCH_API_KEYS", "")
    api_key_map_raw: str = os.getenv("SEARCH_API_KEY_MAP", "")
    allow_anonymous_raw: str = os.getenv("SEARCH_ALLOW_ANONYMOUS", "false")
    default_organization_id: str = os.getenv("SEARCH_DEFAULT_ORGANIZATION_ID", "default")

    @property
    def allow_anonymous(self) -> bool:
        raw = os.getenv("SEARCH_ALLOW_ANONYMOUS", self.allow_anonymous_raw)
        return raw.lower() in {"1", "true", "yes"}

    @property
    def api_keys(self) -> set[str]:
        raw = os.getenv("SEARCH_API_KEYS", self.api_keys_raw)
        return {value.strip() for value in raw.split(",") if value.strip()}

    @property
    def api_key_map(self) -> dict[str, dict[str, str]]:
        """Parse ``{"key": {"role": ..., "organization_id": ...}}`` from the environment."""
        raw = os.getenv("SEARCH_API_KEY_MAP", self.api_key_map_raw).strip()
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        if not isinstance(data, dict):
            return {}
        result: dict[str, dict[str, str]] = {}
        for key, value in data.items():
            if not isinstance(key, str) or not isinstance(value, dict):
                continue
            role = value.get("role")
            organization_id = value.get("organization_id")
            result[key] = {
                "role": role if isinstance(role, str) else "reader",
                "organization_id": (
                    organization_id
                    if isinstance(organization_id, str)
                    else self.default_organization_id
                ),
            }
        return result


settings = Settings()
