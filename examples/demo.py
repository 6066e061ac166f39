#!/usr/bin/env python3
"""Demo: Using ctxpack as a Python library.

This shows how to assemble context programmatically, not just from the CLI.
"""

from ctxpack.context.engine import ContextAssembler
from ctxpack.context.models import QueryContext
from ctxpack.knowledge.graph import KnowledgeGraphBuilder
from ctxpack.knowledge.retriever import GraphRetriever
from ctxpack.search.lexical import LexicalSimilarity

KNOWLEDGE = {
    "projects": [{"id": "checkout", "name": "Checkout Revamp"}],
    "items": [
        {
            "id": "g-1", "type": "goal", "project_id": "checkout",
            "name": "Cut checkout latency",
            "content": "Reduce checkout latency below 300ms at p95 for card payments.",
            "timestamp": "2026-09-28T10:00:00Z", "confidence": 0.9,
            "related": ["doc-1"],
        },
        {
            "id": "d-1", "type": "decision", "project_id": "checkout",
            "name": "Adopt async capture",
            "content": "Capture card payments asynchronously after authorization.",
            "timestamp": "2026-09-20T10:00:00Z", "confidence": 0.8,
        },
        {
            "id": "doc-1", "type": "document", "project_id": "checkout",
            "name": "Latency runbook",
            "content": "Diagnosing latency regressions: check the payment provider first, "
                       "then the cart service cache hit rate.",
            "timestamp": "2026-08-15T10:00:00Z", "confidence": 0.7,
        },
        {
            "id": "n-1", "type": "context-note",
            "content": "The team prefers short design docs with explicit decision records.",
            "timestamp": "2026-07-01T10:00:00Z", "confidence": 0.6,
        },
    ],
}


def main():
    # 1. Build the knowledge graph
    print("Building knowledge graph...")
    builder = KnowledgeGraphBuilder()
    builder.load_records(KNOWLEDGE)

    stats = builder.get_stats()
    print(f"  Projects: {stats['projects']}")
    print(f"  Items: {stats['items']}")
    print(f"  Total edges: {stats['total_edges']}")

    # 2. Assemble context for a query
    assembler = ContextAssembler(GraphRetriever(builder.graph), similarity=LexicalSimilarity())

    print("\n--- Assembling 'why is checkout slow?' (budget 500) ---")
    result = assembler.assemble(
        QueryContext(query="why is checkout slow?", project_id="checkout", max_tokens=500)
    )
    print(result.context_xml)
    print(f"\n  Tokens: {result.token_count}")
    for source in result.sources:
        print(f"  {source.id} [{source.type}] relevance={source.relevance:.2f}")

    # 3. Inspect the budget
    print("\n--- Budget usage ---")
    for category, usage in result.budget.to_payload().items():
        print(f"  {category}: {usage['used']} / {usage['allocated']}")


if __name__ == "__main__":
    main()
