"""Lexical (bag-of-words) similarity between a query and item content."""

from __future__ import annotations

import math
import re
from collections import Counter

from ctxpack.context.collaborators import SimilarityScorer
from ctxpack.context.models import CandidateItem

_WORD_RE = re.compile(r"[a-z0-9]+")

_STOP_WORDS = {
    "the", "and", "for", "that", "this", "with", "from", "have", "been",
    "will", "can", "should", "would", "could", "into", "when", "where",
    "how", "what", "why", "which", "there", "their", "about", "also",
    "just", "more", "some", "than", "them", "then", "these", "very",
    "are", "was", "were", "our", "you", "your", "its", "not", "but",
    "all", "any", "out", "use", "who", "did", "does",
}


def tokenize(text: str) -> list[str]:
    """Lowercased word tokens, minus stop words and one/two-letter noise."""
    return [
        w for w in _WORD_RE.findall(text.lower())
        if len(w) > 2 and w not in _STOP_WORDS
    ]


def cosine(a: Counter, b: Counter) -> float:
    if not a or not b:
        return 0.0
    dot = sum(count * b.get(term, 0) for term, count in a.items())
    norm = math.sqrt(sum(v * v for v in a.values())) * math.sqrt(sum(v * v for v in b.values()))
    if norm == 0:
        return 0.0
    return dot / norm


class LexicalSimilarity(SimilarityScorer):
    """Cosine similarity over term counts of the query and the item's name + content.

    Fast and dependency-free; use EmbeddingSimilarity when an embedding
    model is available.
    """

    def similarity(self, query: str, item: CandidateItem) -> float:
        query_terms = Counter(tokenize(query))
        item_terms = Counter(tokenize(f"{item.name} {item.content}"))
        return max(0.0, min(1.0, cosine(query_terms, item_terms)))
