"""Context assembly orchestrator.

Pipeline for one request:
  1. Validate the budget (InvalidBudgetError before any work)
  2. Resolve the project scope and retrieve candidates under a timeout
     (RetrievalError on failure)
  3. Score every candidate; similarity lookups run under the same timeout
  4. Allocate the 20/50/30 budget after reserving the document envelope
  5. Greedy per-category selection with at most one truncation per category
  6. Serialize and measure the document
  7. Attribute sources (selected items) and scores (all candidates)

All state is created inside `assemble`; one assembler can serve concurrent
calls.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timezone
from typing import Any, TypeVar

from ctxpack.config import AssemblyConfig
from ctxpack.context.budget import allocate
from ctxpack.context.collaborators import CandidateRetriever, SimilarityScorer
from ctxpack.context.models import (
    AssembledContext,
    CandidateItem,
    ContextSource,
    QueryContext,
    RelevanceScore,
    SelectedItem,
    TokenEstimator,
)
from ctxpack.context.scoring import Scorer, clamp
from ctxpack.context.selector import Selector
from ctxpack.context.serializer import envelope_tokens, serialize
from ctxpack.exceptions import InvalidBudgetError, RetrievalError

logger = logging.getLogger("ctxpack.context")

T = TypeVar("T")

# Floor on requested budgets. Anything below cannot fit the envelope plus a
# meaningful item; budgets above it may still select nothing.
MIN_BUDGET_TOKENS = 50


def call_with_timeout(fn: Callable[..., T], timeout: float, *args: Any) -> T:
    """Run `fn(*args)` on a daemon thread and wait at most `timeout` seconds.

    Raises concurrent.futures.TimeoutError on expiry. A collaborator that
    never returns is abandoned; its daemon thread does not block exit.
    """
    future: Future = Future()

    def runner() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn(*args))
        except Exception as e:  # noqa: BLE001
            future.set_exception(e)

    threading.Thread(target=runner, name="ctxpack-collaborator", daemon=True).start()
    return future.result(timeout=timeout)


class ContextAssembler:
    """Assembles a token-bounded context document for a query.

    Usage:
        assembler = ContextAssembler(retriever, similarity=LexicalSimilarity())
        result = assembler.assemble("what did we decide about auth?", project_id="p-1")
        prompt_context = result.context_xml
    """

    def __init__(
        self,
        retriever: CandidateRetriever,
        similarity: SimilarityScorer | None = None,
        config: AssemblyConfig | None = None,
        count_tokens: Callable[[str], int] = TokenEstimator.estimate,
    ) -> None:
        self.retriever = retriever
        self.config = config or AssemblyConfig()
        self.count_tokens = count_tokens
        self.scorer = Scorer(similarity)
        self.selector = Selector(count_tokens)

    # -------------------------------------------------------------------
    # Main entry point
    # -------------------------------------------------------------------

    def assemble(
        self,
        query: QueryContext | str,
        project_id: str | None = None,
        max_tokens: int | None = None,
    ) -> AssembledContext:
        """Assemble context for a query.

        Args:
            query: A QueryContext, or the raw query text.
            project_id: Project scope, when `query` is a string.
            max_tokens: Total token budget, when `query` is a string.
                Defaults to the configured default.

        Returns:
            The AssembledContext. Its measured token_count never exceeds
            the requested budget. An empty selection is a valid result.

        Raises:
            InvalidBudgetError: The budget cannot hold the document envelope.
            RetrievalError: Candidates or similarity could not be fetched in time.
        """
        if isinstance(query, str):
            query = QueryContext(
                query=query,
                project_id=project_id,
                max_tokens=max_tokens if max_tokens is not None else self.config.default_max_tokens,
            )

        if query.max_tokens <= 0 or query.max_tokens < MIN_BUDGET_TOKENS:
            raise InvalidBudgetError(query.max_tokens, MIN_BUDGET_TOKENS)
        envelope = envelope_tokens(self.count_tokens)
        if envelope >= query.max_tokens:
            raise InvalidBudgetError(query.max_tokens, envelope + 1)

        start_time = time.time()
        now = query.as_of or datetime.now(timezone.utc)

        query, candidates = self._retrieve(query)
        scores = self._score(candidates, query, now)
        budget = allocate(query.max_tokens, reserved=envelope)
        selected = self.selector.select(scores, candidates, budget, query.project_id)
        serialized = serialize(selected, self.count_tokens)

        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            "Assembled %d/%d items, %d tokens (budget %d) in %.1fms",
            len(selected), len(candidates), serialized.token_count,
            query.max_tokens, elapsed_ms,
        )

        return AssembledContext(
            query=query.query,
            context_xml=serialized.context_xml,
            sources=[self._to_source(sel) for sel in selected],
            relevance_scores={s.node_id: s.total_score for s in scores},
            token_count=serialized.token_count,
            budget=budget,
            scores=scores,
            candidates_considered=len(candidates),
            truncated_items=[sel.item.id for sel in selected if sel.truncated],
            assembly_time_ms=round(elapsed_ms, 1),
        )

    # -------------------------------------------------------------------
    # Collaborator calls
    # -------------------------------------------------------------------

    def _retrieve(self, query: QueryContext) -> tuple[QueryContext, list[CandidateItem]]:
        """Resolve the scope and fetch candidates under the timeout, capped and de-duplicated."""
        limit = self.config.max_candidates
        timeout = self.config.retrieval_timeout_s

        def fetch() -> tuple[QueryContext, list[CandidateItem]]:
            scoped = query
            if scoped.project_id is None and self.config.infer_project:
                inferred = self.retriever.active_project(scoped)
                if inferred is not None:
                    logger.debug("Inferred active project %s", inferred)
                    scoped = scoped.model_copy(update={"project_id": inferred})
            return scoped, self.retriever.retrieve(scoped, limit)

        try:
            query, raw = call_with_timeout(fetch, timeout)
        except FutureTimeoutError as e:
            raise RetrievalError(f"Candidate retrieval timed out after {timeout:.1f}s") from e
        except Exception as e:
            raise RetrievalError(f"Candidate retrieval failed: {e}") from e

        if raw is None:
            raise RetrievalError("Candidate retrieval returned no result")

        candidates: list[CandidateItem] = []
        seen: set[str] = set()
        for item in raw:
            if item.id in seen:
                logger.warning("Dropping duplicate candidate id %s", item.id)
                continue
            seen.add(item.id)
            candidates.append(item)
            if len(candidates) >= limit:
                break
        return query, candidates

    def _score(
        self, candidates: list[CandidateItem], query: QueryContext, now: datetime
    ) -> list[RelevanceScore]:
        """Score candidates; the similarity collaborator is bounded by the timeout."""
        if self.scorer.similarity is None:
            return self.scorer.score(candidates, query, now=now)

        timeout = self.config.retrieval_timeout_s
        try:
            return call_with_timeout(self.scorer.score, timeout, candidates, query, now)
        except FutureTimeoutError as e:
            raise RetrievalError(f"Similarity scoring timed out after {timeout:.1f}s") from e

    # -------------------------------------------------------------------
    # Attribution
    # -------------------------------------------------------------------

    @staticmethod
    def _to_source(sel: SelectedItem) -> ContextSource:
        return ContextSource(
            id=sel.item.id,
            type=sel.item.item_type.value,
            name=sel.item.display_name,
            confidence=clamp(sel.item.signals.confidence),
            relevance=sel.score.total_score,
        )
