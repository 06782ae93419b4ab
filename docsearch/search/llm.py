from __future__ import annotations

"""Chat completion providers used for reranking."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class LLMProviderError(RuntimeError):
    """Raised when LLM requests fail or responses are invalid."""
    pass


class ChatProvider(Protocol):
    """Narrow completion interface: one prompt in, free text out."""

    async def complete(self, prompt: str, *, temperature: float = 0.0, max_tokens: int = 100) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class OpenAIChatProvider:
    """Completion provider backed by the OpenAI chat completions API."""
    api_key: str
    model: str = "gpt-4-turbo-preview"
    base_url: str = "https://api.openai.com/v1"
    timeout: float = 15.0
    transport: httpx.AsyncBaseTransport | None = None

    async def complete(self, prompt: str, *, temperature: float = 0.0, max_tokens: int = 100) -> str:
        """Send a single user message and return the reply text."""
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url.rstrip('/')}/chat/completions",
                    json=payload,
                    headers=headers,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise LLMProviderError(str(exc)) from exc
        except ValueError as exc:
            raise LLMProviderError("OpenAI response is not valid JSON") from exc

        choices = (data.get("choices") or []) if isinstance(data, dict) else []
        if not choices:
            raise LLMProviderError("Invalid OpenAI response")
        message = choices[0].get("message") or {}
        content = message.get("content")
        if not isinstance(content, str):
            raise LLMProviderError("Invalid OpenAI response content")
        return content


@dataclass(frozen=True)
class OllamaChatProvider:
    """Completion provider backed by the Ollama chat API."""
    base_url: str
    model: str
    timeout: float = 15.0
    transport: httpx.AsyncBaseTransport | None = None

    async def complete(self, prompt: str, *, temperature: float = 0.0, max_tokens: int = 100) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url.rstrip('/')}/api/chat", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise LLMProviderError(str(exc)) from exc
        except ValueError as exc:
            raise LLMProviderError("Ollama response is not valid JSON") from exc
        message = (data.get("message") or {}) if isinstance(data, dict) else {}
        content = message.get("content")
        if not isinstance(content, str):
            raise LLMProviderError("Invalid LLM response")
        return content


def build_chat_provider(
    provider: str,
    *,
    openai_api_key: str | None,
    openai_base_url: str,
    openai_model: str,
    ollama_base_url: str,
    ollama_model: str,
    timeout: float,
) -> ChatProvider | None:
    """Factory for rerank chat providers; None disables reranking."""
    normalized = provider.strip().lower()
    if normalized in {"", "none", "disabled"}:
        return None
    if normalized == "openai":
        if not openai_api_key:
            return None
        return OpenAIChatProvider(
            api_key=openai_api_key,
            model=openai_model,
            base_url=openai_base_url,
            timeout=timeout,
        )
    if normalized == "ollama":
        return OllamaChatProvider(base_url=ollama_base_url, model=ollama_model, timeout=timeout)
    raise LLMProviderError(f"Unsupported rerank provider: {provider}")
