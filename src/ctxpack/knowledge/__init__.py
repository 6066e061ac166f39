"""Knowledge graph, persistence, and the graph-backed candidate retriever."""

from ctxpack.knowledge.graph import KnowledgeGraphBuilder
from ctxpack.knowledge.retriever import GraphRetriever
from ctxpack.knowledge.store import KnowledgeStore

__all__ = ["GraphRetriever", "KnowledgeGraphBuilder", "KnowledgeStore"]
