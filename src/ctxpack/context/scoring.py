"""Multi-signal relevance scoring.

    total = clamp(0.5 * semantic + 0.3 * recency + 0.2 * confidence + boost, 0, 1)

Items carrying `reversed_at` are capped at REVERSED_SCORE_CAP. The weights,
the project boost and the cap are fixed policy, not configuration.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from ctxpack.context.collaborators import SimilarityScorer
from ctxpack.context.models import CandidateItem, QueryContext, RelevanceScore
from ctxpack.exceptions import RetrievalError

logger = logging.getLogger("ctxpack.context")

SEMANTIC_WEIGHT = 0.5
RECENCY_WEIGHT = 0.3
CONFIDENCE_WEIGHT = 0.2
PROJECT_BOOST = 0.15

# Ceiling on the total score of a reversed decision
REVERSED_SCORE_CAP = 0.3

RECENCY_HALF_LIFE_DAYS = 14.0

_SECONDS_PER_DAY = 86400.0


def clamp(value: float | None, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp to [low, high]. None and NaN fall back to `low`."""
    if value is None:
        return low
    try:
        value = float(value)
    except (TypeError, ValueError):
        return low
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def recency_score(timestamp: datetime | None, now: datetime) -> float:
    """Exponential half-life decay of item age.

    Missing timestamps score 0; timestamps in the future score 1.
    """
    if timestamp is None:
        return 0.0
    age_days = (_as_utc(now) - _as_utc(timestamp)).total_seconds() / _SECONDS_PER_DAY
    if age_days <= 0:
        return 1.0
    return clamp(0.5 ** (age_days / RECENCY_HALF_LIFE_DAYS))


def combine(
    semantic: float, recency: float, confidence: float, project_boost: float
) -> float:
    """Weighted sum plus additive boost, clamped to [0, 1]."""
    raw = (
        SEMANTIC_WEIGHT * semantic
        + RECENCY_WEIGHT * recency
        + CONFIDENCE_WEIGHT * confidence
        + project_boost
    )
    return clamp(raw)


class Scorer:
    """Scores candidates against a query.

    A failed similarity lookup for one item only zeroes that item's
    semantic signal. If every lookup in a pass fails, the collaborator is
    treated as unavailable and the pass raises RetrievalError instead of
    ranking on recency and confidence alone.
    """

    def __init__(self, similarity: SimilarityScorer | None = None) -> None:
        self.similarity = similarity

    def score(
        self,
        candidates: list[CandidateItem],
        query: QueryContext,
        now: datetime | None = None,
    ) -> list[RelevanceScore]:
        """Score every candidate, preserving input order."""
        now = now or query.as_of or datetime.now(timezone.utc)

        scores: list[RelevanceScore] = []
        lookups = 0
        failures = 0
        last_error: Exception | None = None
        for item in candidates:
            semantic = 0.0
            if item.signals.semantic_similarity is not None:
                semantic = clamp(item.signals.semantic_similarity)
            elif self.similarity is not None:
                lookups += 1
                try:
                    semantic = clamp(self.similarity.similarity(query.query, item))
                except Exception as e:  # noqa: BLE001
                    failures += 1
                    last_error = e
                    logger.warning(
                        "Similarity lookup failed for %s, defaulting to 0: %s", item.id, e
                    )
            scores.append(self._score_one(item, query, now, semantic))

        if lookups and failures == lookups:
            raise RetrievalError(
                f"Similarity scorer unavailable: all {lookups} lookup(s) failed"
            ) from last_error
        return scores

    def _score_one(
        self, item: CandidateItem, query: QueryContext, now: datetime, semantic: float
    ) -> RelevanceScore:
        recency = recency_score(item.signals.timestamp, now)
        confidence = clamp(item.signals.confidence)

        boost = 0.0
        if query.project_id is not None and item.project_id == query.project_id:
            boost = PROJECT_BOOST

        total = combine(semantic, recency, confidence, boost)
        if item.signals.reversed_at is not None:
            total = min(total, REVERSED_SCORE_CAP)

        return RelevanceScore(
            node_id=item.id,
            node_type=item.item_type,
            semantic_score=semantic,
            recency_score=recency,
            confidence_score=confidence,
            project_boost=boost,
            total_score=total,
        )
