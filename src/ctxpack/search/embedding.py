"""Embedding-based similarity.

Embedding generation is external: callers supply an `embed` function that
maps text to a vector (an API client, a local model, a precomputed table).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import numpy as np

from ctxpack.context.collaborators import SimilarityScorer
from ctxpack.context.models import CandidateItem

EmbedFn = Callable[[str], Sequence[float]]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors. Zero vectors give 0."""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        raise ValueError(f"Embeddings must have same dimensions ({len(va)} != {len(vb)})")

    magnitude = np.linalg.norm(va) * np.linalg.norm(vb)
    if magnitude == 0:
        return 0.0
    return float(np.dot(va, vb) / magnitude)


class EmbeddingSimilarity(SimilarityScorer):
    """Similarity from an external embedding function.

    Cosine similarity lives in [-1, 1]; negative values are floored at 0.
    Item embeddings are memoized by item id for the life of the instance.
    """

    def __init__(self, embed: EmbedFn) -> None:
        self.embed = embed
        self._query_vec: tuple[str, Sequence[float]] | None = None
        self._item_vecs: dict[str, Sequence[float]] = {}

    def similarity(self, query: str, item: CandidateItem) -> float:
        cached = self._query_vec
        if cached is None or cached[0] != query:
            cached = (query, self.embed(query))
            self._query_vec = cached
        item_vec = self._item_vecs.get(item.id)
        if item_vec is None:
            item_vec = self.embed(item.content)
            self._item_vecs[item.id] = item_vec
        return max(0.0, min(1.0, cosine_similarity(cached[1], item_vec)))
