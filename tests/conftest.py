"""Shared test fixtures for ctxpack."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from ctxpack.context.collaborators import CandidateRetriever
from ctxpack.context.models import CandidateItem, ItemSignals, ItemType, QueryContext

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def count_words(text: str) -> int:
    """Whitespace tokenizer. A rendered item costs (content words + 4)."""
    return len(text.split())


def words(n: int, prefix: str = "w") -> str:
    return " ".join(f"{prefix}{i}" for i in range(n))


class StaticRetriever(CandidateRetriever):
    """Returns a fixed candidate list and records each call."""

    def __init__(self, items: list[CandidateItem], active: str | None = None) -> None:
        self.items = items
        self.active = active
        self.calls: list[tuple[QueryContext, int]] = []

    def retrieve(self, query: QueryContext, limit: int) -> list[CandidateItem]:
        self.calls.append((query, limit))
        return list(self.items)

    def active_project(self, query: QueryContext) -> str | None:
        return self.active


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_item():
    """Factory for candidate items with controllable signals."""

    def _make(
        item_id: str,
        item_type: ItemType | str = ItemType.GOAL,
        content: str = "some content",
        project_id: str | None = None,
        semantic: float | None = 0.5,
        age_days: float | None = 0,
        confidence: float = 1.0,
        name: str | None = None,
        reversed_days: float | None = None,
    ) -> CandidateItem:
        timestamp = None if age_days is None else NOW - timedelta(days=age_days)
        return CandidateItem(
            id=item_id,
            item_type=ItemType(item_type),
            content=content,
            name=item_id if name is None else name,
            project_id=project_id,
            signals=ItemSignals(
                timestamp=timestamp,
                confidence=confidence,
                semantic_similarity=semantic,
                reversed_at=None if reversed_days is None else NOW - timedelta(days=reversed_days),
            ),
        )

    return _make


@pytest.fixture
def knowledge_data() -> dict:
    """A small workspace: two projects with goals, decisions and documents."""
    return {
        "projects": [
            {"id": "checkout", "name": "Checkout Revamp"},
            {"id": "search", "name": "Search Relevance"},
        ],
        "items": [
            {
                "id": "g-1", "type": "goal", "project_id": "checkout",
                "name": "Cut checkout latency",
                "content": "Reduce checkout latency below 300ms at p95 for card payments.",
                "timestamp": "2026-09-28T10:00:00Z", "confidence": 0.9,
                "related": ["doc-1"],
            },
            {
                "id": "c-1", "type": "constraint", "project_id": "checkout",
                "content": "Payment provider calls must stay within the PCI boundary.",
                "timestamp": "2026-09-01T10:00:00Z", "confidence": 1.0,
            },
            {
                "id": "d-1", "type": "decision", "project_id": "checkout",
                "name": "Adopt async capture",
                "content": "We decided to capture card payments asynchronously after authorization.",
                "timestamp": "2026-09-20T10:00:00Z", "confidence": 0.8,
            },
            {
                "id": "doc-1", "type": "document", "project_id": "search",
                "name": "Latency runbook",
                "content": "Runbook for diagnosing latency regressions in payment and search services.",
                "timestamp": "2026-08-15T10:00:00Z", "confidence": 0.7,
            },
            {
                "id": "doc-2", "type": "document", "project_id": "checkout",
                "name": "Checkout architecture",
                "content": "Checkout architecture overview: cart service, payment service, order service.",
                "timestamp": "2026-09-25T10:00:00Z", "confidence": 0.95,
            },
            {
                "id": "n-1", "type": "context-note",
                "content": "The team prefers short design docs with explicit decision records.",
                "timestamp": "2026-07-01T10:00:00Z", "confidence": 0.6,
            },
        ],
    }


@pytest.fixture
def knowledge_file(tmp_path: Path, knowledge_data: dict) -> Path:
    path = tmp_path / "knowledge.json"
    path.write_text(json.dumps(knowledge_data))
    return path
