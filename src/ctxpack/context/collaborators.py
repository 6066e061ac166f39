"""Interfaces for the engine's external collaborators."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ctxpack.context.models import CandidateItem, QueryContext


class CandidateRetriever(ABC):
    """Fetches raw candidate items for a query from storage."""

    @abstractmethod
    def retrieve(self, query: QueryContext, limit: int) -> list[CandidateItem]:
        """Return at most `limit` candidates in retrieval order.

        Implementations raise on unavailability; the assembler turns that
        into a RetrievalError.
        """
        ...

    def active_project(self, query: QueryContext) -> str | None:
        """Project to scope an unscoped query to, or None to leave it unscoped."""
        return None


class SimilarityScorer(ABC):
    """Computes query-to-item semantic similarity in [0, 1]."""

    @abstractmethod
    def similarity(self, query: str, item: CandidateItem) -> float:
        """Similarity between the query text and the item's content."""
        ...
