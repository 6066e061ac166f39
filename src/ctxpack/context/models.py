"""Data models for context assembly."""

from __future__ import annotations

import math
import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MAX_TOKENS = 4000
NAME_PREVIEW_CHARS = 50


class ItemType(str, Enum):
    """Kind of knowledge item. Determines budget category routing."""

    GOAL = "goal"
    CONSTRAINT = "constraint"
    DECISION = "decision"
    DOCUMENT = "document"
    ENTITY = "entity"
    BEHAVIOR = "behavior"
    CONTEXT_NOTE = "context-note"


class BudgetCategory(str, Enum):
    """Token budget categories, declared in serialization order."""

    IDENTITY = "identity"
    PROJECT = "project"
    OTHER = "other"


class ItemSignals(BaseModel):
    """Raw scoring inputs attached to a candidate by the retriever."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime | None = None
    confidence: float = 1.0
    semantic_similarity: float | None = None  # Precomputed by the retriever, if available
    reversed_at: datetime | None = None  # Set on decisions that were later reversed


class CandidateItem(BaseModel):
    """A retrievable knowledge unit eligible for inclusion."""

    model_config = ConfigDict(frozen=True)

    id: str
    item_type: ItemType
    content: str
    name: str = ""
    project_id: str | None = None
    signals: ItemSignals = Field(default_factory=ItemSignals)

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return self.content[:NAME_PREVIEW_CHARS]


class QueryContext(BaseModel):
    """A single assembly request."""

    query: str
    project_id: str | None = None
    max_tokens: int = DEFAULT_MAX_TOKENS
    as_of: datetime | None = None  # Reference time for recency; "now" when unset


class RelevanceScore(BaseModel):
    """Per-candidate score breakdown."""

    node_id: str
    node_type: ItemType
    semantic_score: float = 0.0
    recency_score: float = 0.0
    confidence_score: float = 0.0
    project_boost: float = 0.0
    total_score: float = 0.0

    def to_payload(self) -> dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "nodeType": self.node_type.value,
            "semanticScore": self.semantic_score,
            "recencyScore": self.recency_score,
            "confidenceScore": self.confidence_score,
            "projectBoost": self.project_boost,
            "totalScore": self.total_score,
        }


class CategoryBudget(BaseModel):
    """Allocated vs. used tokens for one category."""

    allocated: int = 0
    used: int = 0

    @property
    def remaining(self) -> int:
        return self.allocated - self.used


class TokenBudget(BaseModel):
    """Hierarchical token budget: a total split across three categories.

    `reserved` covers the fixed document envelope and is set aside before
    the split. `used` only changes through `try_reserve`, so a category can
    never go over its allocation.
    """

    total_allocated: int
    reserved: int = 0
    identity: CategoryBudget
    project: CategoryBudget
    other: CategoryBudget

    def category(self, category: BudgetCategory) -> CategoryBudget:
        return getattr(self, category.value)

    @property
    def total(self) -> CategoryBudget:
        used = self.reserved + sum(self.category(c).used for c in BudgetCategory)
        return CategoryBudget(allocated=self.total_allocated, used=used)

    def try_reserve(self, category: BudgetCategory, cost: int) -> bool:
        """Reserve `cost` tokens in `category` if they fit. Returns whether it committed."""
        if cost < 0:
            raise ValueError(f"Token cost must be non-negative, got {cost}")
        bucket = self.category(category)
        if bucket.used + cost > bucket.allocated:
            return False
        bucket.used += cost
        return True

    def to_payload(self) -> dict[str, dict[str, int]]:
        payload = {
            c.value: {"allocated": self.category(c).allocated, "used": self.category(c).used}
            for c in BudgetCategory
        }
        total = self.total
        payload["total"] = {"allocated": total.allocated, "used": total.used}
        return payload


class SelectedItem(BaseModel):
    """A candidate chosen by the selector, with the content that will be rendered."""

    item: CandidateItem
    score: RelevanceScore
    category: BudgetCategory
    content: str
    token_cost: int = 0
    truncated: bool = False


class ContextSource(BaseModel):
    """Source attribution entry for an included item."""

    id: str
    type: str
    name: str
    confidence: float
    relevance: float


class AssembledContext(BaseModel):
    """The final output of one assembly call."""

    query: str = ""
    context_xml: str = ""
    sources: list[ContextSource] = Field(default_factory=list)
    relevance_scores: dict[str, float] = Field(default_factory=dict)
    token_count: int = 0
    # Observability extras, not part of the wire payload
    budget: TokenBudget | None = None
    scores: list[RelevanceScore] = Field(default_factory=list)
    candidates_considered: int = 0
    truncated_items: list[str] = Field(default_factory=list)
    assembly_time_ms: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.sources

    def to_payload(self) -> dict[str, Any]:
        """The camelCase response shape consumed by the UI layer."""
        return {
            "contextXml": self.context_xml,
            "sources": [s.model_dump() for s in self.sources],
            "relevanceScores": dict(self.relevance_scores),
            "tokenCount": self.token_count,
        }

    def render_summary(self) -> str:
        """Human-readable summary of what was assembled."""
        lines = [f"Assembled context for: {self.query}"]
        if self.budget is not None:
            total = self.budget.total
            lines.append(f"Budget: {total.used:,} / {total.allocated:,} tokens reserved")
        lines.append(f"Tokens (measured): {self.token_count:,}")
        lines.append(
            f"Items: {len(self.sources)} included, {self.candidates_considered} candidates"
        )
        lines.append(f"Assembly time: {self.assembly_time_ms:.1f}ms")
        lines.append("")
        if not self.sources:
            lines.append("No items fit the budget.")
            return "\n".join(lines)

        lines.append("Included items:")
        truncated = set(self.truncated_items)
        for source in self.sources:
            marker = " (truncated)" if source.id in truncated else ""
            lines.append(
                f"  > {source.name} [{source.type}] id={source.id} "
                f"relevance={source.relevance:.2f} confidence={source.confidence:.2f}{marker}"
            )
        return "\n".join(lines)


class TokenEstimator:
    """Estimate token counts for prose.

    Averages a character-based estimate (4 chars per token) with a
    word-based one (1.3 tokens per word).
    """

    CHARS_PER_TOKEN = 4.0
    TOKENS_PER_WORD = 1.3

    @classmethod
    def estimate(cls, text: str) -> int:
        """Estimate token count for a string. Empty text costs nothing."""
        if not text:
            return 0
        char_based = math.ceil(len(text) / cls.CHARS_PER_TOKEN)
        word_based = math.ceil(len(re.findall(r"\S+", text)) * cls.TOKENS_PER_WORD)
        return math.ceil((char_based + word_based) / 2)
