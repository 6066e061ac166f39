"""Tests for relevance scoring."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ctxpack.context.collaborators import SimilarityScorer
from ctxpack.context.models import ItemType, QueryContext
from ctxpack.context.scoring import (
    PROJECT_BOOST,
    RECENCY_HALF_LIFE_DAYS,
    REVERSED_SCORE_CAP,
    Scorer,
    clamp,
    combine,
    recency_score,
)
from ctxpack.exceptions import RetrievalError


class FlakySimilarity(SimilarityScorer):
    """Fails for one item id, returns a fixed value otherwise."""

    def __init__(self, bad_id: str, value: float = 0.8) -> None:
        self.bad_id = bad_id
        self.value = value

    def similarity(self, query, item):
        if item.id == self.bad_id:
            raise ConnectionError("embedding service unavailable")
        return self.value


class DownSimilarity(SimilarityScorer):
    def similarity(self, query, item):
        raise ConnectionError("embedding service unavailable")


class TestClamp:
    def test_bounds(self):
        assert clamp(-0.5) == 0.0
        assert clamp(1.7) == 1.0
        assert clamp(0.25) == 0.25

    def test_none_and_nan(self):
        assert clamp(None) == 0.0
        assert clamp(float("nan")) == 0.0

    def test_garbage(self):
        assert clamp("not a number") == 0.0


class TestRecency:
    def test_fresh_item_scores_one(self, now):
        assert recency_score(now, now) == 1.0

    def test_half_life(self, now):
        half = recency_score(now - timedelta(days=RECENCY_HALF_LIFE_DAYS), now)
        assert half == pytest.approx(0.5)

    def test_monotonic_with_age(self, now):
        ages = [0, 0.5, 1, 3, 7, 14, 30, 90, 365, 5000]
        scores = [recency_score(now - timedelta(days=a), now) for a in ages]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in scores)

    def test_future_timestamp(self, now):
        assert recency_score(now + timedelta(days=3), now) == 1.0

    def test_missing_timestamp(self, now):
        assert recency_score(None, now) == 0.0

    def test_naive_timestamp_treated_as_utc(self, now):
        naive = (now - timedelta(days=RECENCY_HALF_LIFE_DAYS)).replace(tzinfo=None)
        assert recency_score(naive, now) == pytest.approx(0.5)

    def test_other_timezone(self, now):
        tz = timezone(timedelta(hours=5))
        assert recency_score(now.astimezone(tz), now) == 1.0


class TestCombine:
    def test_weights(self):
        assert combine(1.0, 0.0, 0.0, 0.0) == pytest.approx(0.5)
        assert combine(0.0, 1.0, 0.0, 0.0) == pytest.approx(0.3)
        assert combine(0.0, 0.0, 1.0, 0.0) == pytest.approx(0.2)

    def test_clamped(self):
        assert combine(1.0, 1.0, 1.0, PROJECT_BOOST) == 1.0
        assert combine(0.0, 0.0, 0.0, -1.0) == 0.0


class TestScorer:
    def test_one_score_per_candidate_in_order(self, make_item, now):
        items = [make_item("a"), make_item("b"), make_item("c")]
        scores = Scorer().score(items, QueryContext(query="q"), now=now)
        assert [s.node_id for s in scores] == ["a", "b", "c"]
        assert all(s.node_type == ItemType.GOAL for s in scores)

    def test_score_bounds(self, make_item, now):
        items = [
            make_item("hi", semantic=5.0, confidence=9.0, project_id="p"),
            make_item("lo", semantic=-3.0, confidence=-1.0, age_days=None),
            make_item("nan", semantic=float("nan"), confidence=float("nan")),
        ]
        scores = Scorer().score(items, QueryContext(query="q", project_id="p"), now=now)
        for s in scores:
            assert 0.0 <= s.total_score <= 1.0
            assert 0.0 <= s.semantic_score <= 1.0
            assert 0.0 <= s.confidence_score <= 1.0

    def test_total_formula(self, make_item, now):
        item = make_item("a", semantic=0.6, age_days=0, confidence=0.5)
        [score] = Scorer().score([item], QueryContext(query="q"), now=now)
        assert score.total_score == pytest.approx(0.5 * 0.6 + 0.3 * 1.0 + 0.2 * 0.5)
        assert score.project_boost == 0.0

    def test_project_boost_exact(self, make_item, now):
        inside = make_item("in", ItemType.DOCUMENT, project_id="p-1", semantic=0.2,
                           age_days=None, confidence=0.5)
        outside = make_item("out", ItemType.DOCUMENT, project_id="p-2", semantic=0.2,
                            age_days=None, confidence=0.5)
        s_in, s_out = Scorer().score(
            [inside, outside], QueryContext(query="q", project_id="p-1"), now=now
        )
        assert s_in.total_score > s_out.total_score
        assert s_in.total_score - s_out.total_score == pytest.approx(PROJECT_BOOST)
        assert s_in.project_boost == PROJECT_BOOST

    def test_project_boost_clamped(self, make_item, now):
        inside = make_item("in", ItemType.DOCUMENT, project_id="p-1", semantic=1.0, confidence=1.0)
        outside = make_item("out", ItemType.DOCUMENT, semantic=1.0, confidence=1.0)
        s_in, s_out = Scorer().score(
            [inside, outside], QueryContext(query="q", project_id="p-1"), now=now
        )
        assert s_out.total_score == pytest.approx(1.0)
        assert s_in.total_score == 1.0

    def test_no_boost_without_scope(self, make_item, now):
        item = make_item("a", project_id="p-1")
        [score] = Scorer().score([item], QueryContext(query="q"), now=now)
        assert score.project_boost == 0.0

    def test_uses_similarity_collaborator(self, make_item, now):
        item = make_item("a", semantic=None)
        [score] = Scorer(FlakySimilarity("other", 0.8)).score([item], QueryContext(query="q"), now=now)
        assert score.semantic_score == pytest.approx(0.8)

    def test_precomputed_similarity_wins(self, make_item, now):
        item = make_item("a", semantic=0.1)
        [score] = Scorer(FlakySimilarity("other", 0.8)).score([item], QueryContext(query="q"), now=now)
        assert score.semantic_score == pytest.approx(0.1)

    def test_partial_signal_loss_defaults_to_zero(self, make_item, now):
        items = [make_item("ok", semantic=None), make_item("bad", semantic=None)]
        scores = Scorer(FlakySimilarity("bad")).score(items, QueryContext(query="q"), now=now)
        by_id = {s.node_id: s for s in scores}
        assert by_id["ok"].semantic_score == pytest.approx(0.8)
        assert by_id["bad"].semantic_score == 0.0
        assert by_id["bad"].total_score < by_id["ok"].total_score

    def test_no_similarity_source(self, make_item, now):
        [score] = Scorer().score([make_item("a", semantic=None)], QueryContext(query="q"), now=now)
        assert score.semantic_score == 0.0

    def test_as_of_used_when_now_missing(self, make_item):
        as_of = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
        item = make_item("a", age_days=0)
        [score] = Scorer().score([item], QueryContext(query="q", as_of=as_of))
        assert score.recency_score == 1.0

    def test_similarity_down_raises(self, make_item, now):
        items = [make_item("a", semantic=None), make_item("b", semantic=None)]
        with pytest.raises(RetrievalError, match="all 2 lookup"):
            Scorer(DownSimilarity()).score(items, QueryContext(query="q"), now=now)

    def test_precomputed_items_need_no_lookup(self, make_item, now):
        items = [make_item("a", semantic=0.4), make_item("b", semantic=0.6)]
        scores = Scorer(DownSimilarity()).score(items, QueryContext(query="q"), now=now)
        assert [s.semantic_score for s in scores] == [pytest.approx(0.4), pytest.approx(0.6)]


class TestReversedDecisions:
    def test_reversed_capped(self, make_item, now):
        item = make_item("d", ItemType.DECISION, semantic=1.0, project_id="p", reversed_days=1)
        [score] = Scorer().score([item], QueryContext(query="q", project_id="p"), now=now)
        assert score.total_score == REVERSED_SCORE_CAP
        assert score.semantic_score == 1.0

    def test_low_scoring_reversed_unchanged(self, make_item, now):
        item = make_item("d", ItemType.DECISION, semantic=0.0, age_days=None,
                         confidence=0.5, reversed_days=1)
        [score] = Scorer().score([item], QueryContext(query="q"), now=now)
        assert score.total_score == pytest.approx(0.1)

    def test_reversed_ranks_below_live_decision(self, make_item, now):
        live = make_item("live", ItemType.DECISION, semantic=0.5)
        reversed_ = make_item("old", ItemType.DECISION, semantic=0.9, reversed_days=3)
        scores = Scorer().score([live, reversed_], QueryContext(query="q"), now=now)
        assert scores[0].total_score > scores[1].total_score
