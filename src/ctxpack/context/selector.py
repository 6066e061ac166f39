"""Budgeted per-category greedy selection.

Each category is packed independently:

  1. Route every candidate to identity / project / other.
  2. Stable-sort the category by total score, descending (ties keep
     retrieval order).
  3. Walk the ranking. An item whose rendered element fits the remaining
     category budget is reserved in full. If it does not fit and more than
     MIN_TRUNCATION_TOKENS remain, the longest word-boundary prefix that
     fits is reserved instead and the walk ends there, so a category holds
     at most one truncated item and it is always last. Otherwise the item
     is skipped; a smaller item further down may still fit.
  4. The walk also ends once the remaining budget drops to zero or below
     MIN_TRUNCATION_TOKENS.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ctxpack.context.models import (
    BudgetCategory,
    CandidateItem,
    ItemType,
    RelevanceScore,
    SelectedItem,
    TokenBudget,
    TokenEstimator,
)
from ctxpack.context.serializer import render_item

logger = logging.getLogger("ctxpack.context")

MIN_TRUNCATION_TOKENS = 50
TRUNCATION_MARKER = "..."

_IDENTITY_TYPES = {ItemType.GOAL, ItemType.CONSTRAINT, ItemType.DECISION}
_PROJECT_TYPES = {ItemType.DOCUMENT, ItemType.ENTITY, ItemType.BEHAVIOR}

# Snap a truncation back to whitespace only if that keeps most of the prefix
_WORD_BOUNDARY_RATIO = 0.8


def route_item(item: CandidateItem, project_id: str | None) -> BudgetCategory:
    """Map an item to its budget category."""
    if item.item_type in _IDENTITY_TYPES:
        return BudgetCategory.IDENTITY
    if (
        item.item_type in _PROJECT_TYPES
        and project_id is not None
        and item.project_id == project_id
    ):
        return BudgetCategory.PROJECT
    return BudgetCategory.OTHER


def truncate_to_fit(
    item: CandidateItem,
    max_tokens: int,
    count_tokens: Callable[[str], int] = TokenEstimator.estimate,
) -> tuple[str, int] | None:
    """Longest content prefix whose rendered, truncated element costs <= max_tokens.

    Returns (content, cost) or None if not even a one-character prefix fits.
    The cost is monotonic in prefix length, so a binary search finds the
    exact cut.
    """
    content = item.content
    if len(content) < 2:
        return None

    def cost_of(text: str) -> int:
        return count_tokens(
            render_item(item.item_type.value, item.id, item.display_name, text, truncated=True)
        )

    def prefix(n: int) -> str:
        return content[:n].rstrip() + TRUNCATION_MARKER

    lo, hi, best = 1, len(content) - 1, 0
    while lo <= hi:
        mid = (lo + hi) // 2
        if cost_of(prefix(mid)) <= max_tokens:
            best = mid
            lo = mid + 1
        else:
            hi = mid - 1
    if best == 0:
        return None

    cut = content[:best]
    last_space = max(cut.rfind(" "), cut.rfind("\n"))
    if last_space > best * _WORD_BOUNDARY_RATIO:
        cut = cut[:last_space]
    if not cut.strip():
        return None

    truncated = cut.rstrip() + TRUNCATION_MARKER
    return truncated, cost_of(truncated)


class Selector:
    """Selects items into a TokenBudget, one category at a time."""

    def __init__(self, count_tokens: Callable[[str], int] = TokenEstimator.estimate) -> None:
        self.count_tokens = count_tokens

    def item_cost(self, item: CandidateItem) -> int:
        """Token cost of an item's full rendered element."""
        return self.count_tokens(
            render_item(item.item_type.value, item.id, item.display_name, item.content)
        )

    def select(
        self,
        scored: list[RelevanceScore],
        items: list[CandidateItem],
        budget: TokenBudget,
        project_id: str | None = None,
    ) -> list[SelectedItem]:
        """Pack items into the budget. Returns identity, then project, then other."""
        score_by_id = {s.node_id: s for s in scored}
        groups: dict[BudgetCategory, list[tuple[CandidateItem, RelevanceScore]]] = {
            c: [] for c in BudgetCategory
        }
        for item in items:
            score = score_by_id.get(item.id)
            if score is None:
                continue
            groups[route_item(item, project_id)].append((item, score))

        selected: list[SelectedItem] = []
        for category in BudgetCategory:
            ranked = sorted(groups[category], key=lambda pair: pair[1].total_score, reverse=True)
            selected.extend(self._pack_category(category, ranked, budget))
        return selected

    def _pack_category(
        self,
        category: BudgetCategory,
        ranked: list[tuple[CandidateItem, RelevanceScore]],
        budget: TokenBudget,
    ) -> list[SelectedItem]:
        bucket = budget.category(category)
        picked: list[SelectedItem] = []

        for item, score in ranked:
            cost = self.item_cost(item)
            if budget.try_reserve(category, cost):
                picked.append(SelectedItem(
                    item=item,
                    score=score,
                    category=category,
                    content=item.content,
                    token_cost=cost,
                ))
            elif bucket.remaining > MIN_TRUNCATION_TOKENS:
                fitted = truncate_to_fit(item, bucket.remaining, self.count_tokens)
                if fitted is None or not budget.try_reserve(category, fitted[1]):
                    logger.debug("Skipping %s: does not fit %s budget", item.id, category.value)
                    continue
                content, truncated_cost = fitted
                picked.append(SelectedItem(
                    item=item,
                    score=score,
                    category=category,
                    content=content,
                    token_cost=truncated_cost,
                    truncated=True,
                ))
                logger.debug(
                    "Truncated %s to %d tokens to close %s budget",
                    item.id, truncated_cost, category.value,
                )
                break
            else:
                logger.debug("Skipping %s: does not fit %s budget", item.id, category.value)
                continue

            if bucket.remaining <= 0 or bucket.remaining < MIN_TRUNCATION_TOKENS:
                break

        return picked
