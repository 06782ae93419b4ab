from __future__ import annotations

"""Weighted Reciprocal Rank Fusion."""

from dataclasses import replace

from docsearch.search.types import RankedList, ScoredResult

DEFAULT_RRF_K = 60


def rrf_contribution(rank: int, weight: float, k: int = DEFAULT_RRF_K) -> float:
    """Score contributed by an item at 0-based ``rank``."""
    return weight / (k + rank + 1)


def fuse(
    text_results: RankedList,
    semantic_results: RankedList,
    text_weight: float,
    semantic_weight: float,
    k: int = DEFAULT_RRF_K,
) -> RankedList:
    """Merge a lexical and a semantic ranking into one list.

    Ids present in both lists sum their contributions and keep both the
    text and the semantic score. Ties keep first-seen order.
    """
    if k < 0:
        raise ValueError("k must not be negative")

    merged: dict[str, ScoredResult] = {}
    fused: dict[str, float] = {}

    for rank, item in enumerate(text_results):
        text_score = item.text_score if item.text_score is not None else item.score
        fused[item.id] = fused.get(item.id, 0.0) + rrf_contribution(rank, text_weight, k)
        existing = merged.get(item.id)
        if existing is None:
            merged[item.id] = replace(item, text_score=text_score)
        elif existing.text_score is None:
            merged[item.id] = replace(existing, text_score=text_score)

    for rank, item in enumerate(semantic_results):
        fused[item.id] = fused.get(item.id, 0.0) + rrf_contribution(rank, semantic_weight, k)
        existing = merged.get(item.id)
        if existing is None:
            merged[item.id] = item
            continue
        semantic_score = item.semantic_score if item.semantic_score is not None else item.score
        merged[item.id] = replace(
            existing,
            semantic_score=existing.semantic_score if existing.semantic_score is not None else semantic_score,
            snippet=existing.snippet or item.snippet,
        )

    ordered = sorted(merged.values(), key=lambda item: fused[item.id], reverse=True)
    return [replace(item, score=fused[item.id]) for item in ordered]
