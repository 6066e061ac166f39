"""Context assembly.

Scores heterogeneous knowledge items against a query and packs the best of
them into a token-bounded, tagged document for prompt injection.

Usage:
    from ctxpack.context import ContextAssembler

    assembler = ContextAssembler(retriever, similarity)
    result = assembler.assemble("summarize open decisions", project_id="p-1")
    print(result.context_xml)
"""

from ctxpack.context.engine import ContextAssembler
from ctxpack.context.models import (
    AssembledContext,
    BudgetCategory,
    CandidateItem,
    ItemSignals,
    ItemType,
    QueryContext,
    RelevanceScore,
    TokenBudget,
)

__all__ = [
    "AssembledContext",
    "BudgetCategory",
    "CandidateItem",
    "ContextAssembler",
    "ItemSignals",
    "ItemType",
    "QueryContext",
    "RelevanceScore",
    "TokenBudget",
]
