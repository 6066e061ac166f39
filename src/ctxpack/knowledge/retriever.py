"""Candidate retrieval from the knowledge graph."""

from __future__ import annotations

from datetime import datetime, timezone

import networkx as nx

from ctxpack.context.collaborators import CandidateRetriever
from ctxpack.context.models import CandidateItem, QueryContext
from ctxpack.knowledge.graph import ACTIVE_STATUS, item_from_node, parse_timestamp, project_node


class GraphRetriever(CandidateRetriever):
    """Retrieves candidates from an in-memory knowledge graph.

    Order: items scoped to the query's project, then items those relate to,
    then everything else, each group in graph insertion order. The cap
    applies after ordering, so in-scope items are never crowded out.
    """

    def __init__(self, graph: nx.DiGraph) -> None:
        self.graph = graph

    def retrieve(self, query: QueryContext, limit: int) -> list[CandidateItem]:
        item_nodes = [n for n, d in self.graph.nodes(data=True) if d.get("type") == "item"]

        ordered: list[str] = []
        seen: set[str] = set()

        def take(nodes: list[str]) -> None:
            for n in nodes:
                if n not in seen:
                    seen.add(n)
                    ordered.append(n)

        if query.project_id is not None:
            pnode = project_node(query.project_id)
            scoped = [
                n for n in item_nodes
                if self.graph.has_edge(n, pnode)
            ]
            take(scoped)
            related = [
                succ
                for n in scoped
                for succ in self.graph.successors(n)
                if self.graph.edges[n, succ].get("kind") == "relates_to"
                and self.graph.nodes[succ].get("type") == "item"
            ]
            take(related)
        take(item_nodes)

        return [item_from_node(self.graph.nodes[n]) for n in ordered[:limit]]

    def active_project(self, query: QueryContext) -> str | None:
        """The active project with the most recent activity, if any has a recorded one."""
        latest: tuple[datetime, str] | None = None
        for _, data in self.graph.nodes(data=True):
            if data.get("type") != "project" or data.get("status") != ACTIVE_STATUS:
                continue
            last_active = parse_timestamp(data.get("last_active"))
            if last_active is None:
                continue
            if last_active.tzinfo is None:
                last_active = last_active.replace(tzinfo=timezone.utc)
            if latest is None or last_active > latest[0]:
                latest = (last_active, data["project_id"])
        return latest[1] if latest else None

    def get_item(self, item_id: str) -> CandidateItem | None:
        """Look up a single item by id."""
        for _, data in self.graph.nodes(data=True):
            if data.get("type") == "item" and data.get("item_id") == item_id:
                return item_from_node(data)
        return None
