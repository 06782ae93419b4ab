from __future__ import annotations

"""Best-effort LLM reranking of the top search candidates."""

import asyncio
import logging
import re
from dataclasses import dataclass, replace

from docsearch.search.llm import ChatProvider
from docsearch.search.types import RankedList, ScoredResult

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r"\d+")
_STRIP_CHARS = " \t\r\n[](){}\"'`"


def build_rerank_prompt(query: str, candidates: list[ScoredResult]) -> str:
    """Build the ranking instruction for a list of candidates."""
    lines = [f'[{idx}] "{item.name}": {item.snippet or ""}' for idx, item in enumerate(candidates)]
    documents_block = "\n".join(lines)
    return (
        f'Given the search query: "{query}"\n\n'
        "Rank these documents by relevance (most to least relevant). "
        "Return only the indices in order.\n\n"
        f"Documents:\n{documents_block}\n\n"
        'Response format: comma-separated indices (e.g., "3,1,0,2,4")'
    )


def parse_rerank_indices(content: str, count: int) -> list[int]:
    """Parse a comma-separated index list, keeping valid first occurrences only."""
    indices: list[int] = []
    seen: set[int] = set()
    for part in content.split(","):
        cleaned = part.strip(_STRIP_CHARS)
        match = _LEADING_INT_RE.match(cleaned)
        if match is None:
            continue
        value = int(match.group(0))
        if value >= count or value in seen:
            continue
        seen.add(value)
        indices.append(value)
    return indices


@dataclass
class Reranker:
    """Reorder the top candidates using a chat model.

    Any provider failure, timeout or unusable reply leaves the input order
    untouched. Cancellation is not intercepted.
    """
    provider: ChatProvider | None
    top_n: int = 20
    timeout: float = 15.0
    max_tokens: int = 100

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    async def rerank(
        self,
        query: str,
        results: RankedList,
        top_n: int | None = None,
    ) -> RankedList:
        if self.provider is None or len(results) < 2:
            return results
        window = self.top_n if top_n is None else top_n
        if window < 2:
            return results
        candidates = results[:window]
        prompt = build_rerank_prompt(query, candidates)
        try:
            content = await asyncio.wait_for(
                self.provider.complete(prompt, temperature=0.0, max_tokens=self.max_tokens),
                timeout=self.timeout,
            )
            indices = parse_rerank_indices(content, len(candidates))
        except Exception as exc:
            logger.warning("rerank_failed", extra={"detail": type(exc).__name__})
            return results

        if not indices:
            logger.warning("rerank_no_valid_indices", extra={"candidates": len(candidates)})
            return results

        ranked = [
            replace(candidates[idx], rerank_score=1.0 - position / len(indices))
            for position, idx in enumerate(indices)
        ]
        used = set(indices)
        ranked.extend(item for idx, item in enumerate(candidates) if idx not in used)
        ranked.extend(results[window:])
        logger.info(
            "rerank_complete",
            extra={"candidates": len(candidates), "ranked": len(indices)},
        )
        return ranked
