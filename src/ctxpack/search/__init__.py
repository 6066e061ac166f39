"""Similarity collaborators for the scorer."""

from ctxpack.search.embedding import EmbeddingSimilarity, cosine_similarity
from ctxpack.search.lexical import LexicalSimilarity

__all__ = ["EmbeddingSimilarity", "LexicalSimilarity", "cosine_similarity"]
