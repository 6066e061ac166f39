"""Build an in-memory knowledge graph of projects and knowledge items."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import networkx as nx
from pydantic import ValidationError

from ctxpack.context.models import CandidateItem, ItemSignals, ItemType
from ctxpack.exceptions import StoreError

logger = logging.getLogger("ctxpack.knowledge")

PROJECT_PREFIX = "project::"
ITEM_PREFIX = "item::"
ACTIVE_STATUS = "active"


def project_node(project_id: str) -> str:
    return f"{PROJECT_PREFIX}{project_id}"


def item_node(item_id: str) -> str:
    return f"{ITEM_PREFIX}{item_id}"


class KnowledgeGraphBuilder:
    """Builds and maintains the knowledge graph.

    The graph has two types of nodes:
    - Project nodes: a scope that items can belong to
    - Item nodes: goals, decisions, documents, ... (one per knowledge item)

    Edges: item -> project ("scoped_to") and item -> item ("relates_to").
    Item nodes keep insertion order, which retrieval preserves.
    """

    def __init__(self, graph: nx.DiGraph | None = None) -> None:
        self.graph = graph if graph is not None else nx.DiGraph()

    def add_project(
        self,
        project_id: str,
        name: str = "",
        last_active: datetime | None = None,
        status: str = ACTIVE_STATUS,
    ) -> str:
        node = project_node(project_id)
        self.graph.add_node(
            node,
            type="project",
            project_id=project_id,
            name=name or project_id,
            last_active=last_active.isoformat() if last_active else None,
            status=status,
        )
        return node

    def add_item(self, item: CandidateItem, related: list[str] | None = None) -> str:
        """Add (or replace) an item node and its edges.

        `related` ids must already be in the graph; unknown ones are ignored.
        """
        node = item_node(item.id)
        if self.graph.has_node(node):
            # Keep incoming "relates_to" edges from items added earlier
            self.graph.remove_edges_from(list(self.graph.out_edges(node)))

        signals = item.signals
        self.graph.add_node(
            node,
            type="item",
            item_id=item.id,
            item_type=item.item_type.value,
            name=item.name,
            content=item.content,
            project_id=item.project_id,
            timestamp=signals.timestamp.isoformat() if signals.timestamp else None,
            confidence=signals.confidence,
            reversed_at=signals.reversed_at.isoformat() if signals.reversed_at else None,
        )

        if item.project_id:
            pnode = project_node(item.project_id)
            if not self.graph.has_node(pnode):
                self.add_project(item.project_id)
            self.graph.add_edge(node, pnode, kind="scoped_to")

        for other_id in related or []:
            self.add_relation(item.id, other_id)
        return node

    def add_relation(self, source_id: str, target_id: str) -> bool:
        """Link two existing items. Returns False if either is unknown."""
        src, dst = item_node(source_id), item_node(target_id)
        if not (self.graph.has_node(src) and self.graph.has_node(dst)):
            return False
        self.graph.add_edge(src, dst, kind="relates_to")
        return True

    def load_records(self, data: dict[str, Any]) -> int:
        """Load a {"projects": [...], "items": [...]} document. Returns items added."""
        for project in data.get("projects", []):
            if "id" not in project:
                raise StoreError(f"Project record without id: {project!r}")
            try:
                last_active = parse_timestamp(project.get("last_active"))
            except ValueError as e:
                raise StoreError(f"Invalid project record {project!r}: {e}") from e
            self.add_project(
                str(project["id"]),
                project.get("name", ""),
                last_active=last_active,
                status=project.get("status") or ACTIVE_STATUS,
            )

        records = data.get("items", [])
        for record in records:
            self.add_item(item_from_record(record))

        # Second pass so forward references resolve without disturbing item order
        for record in records:
            for other_id in record.get("related", []):
                if not self.add_relation(str(record["id"]), str(other_id)):
                    logger.warning("Ignoring relation %s -> %s: unknown item", record["id"], other_id)
        return len(records)

    def get_stats(self) -> dict[str, Any]:
        """Node and edge counts for display."""
        stats: dict[str, Any] = {"projects": 0, "items": 0, "item_types": {}}
        for _, data in self.graph.nodes(data=True):
            if data.get("type") == "project":
                stats["projects"] += 1
            elif data.get("type") == "item":
                stats["items"] += 1
                kind = data.get("item_type", "")
                stats["item_types"][kind] = stats["item_types"].get(kind, 0) + 1
        stats["total_edges"] = self.graph.number_of_edges()
        return stats


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (a trailing Z means UTC). None and datetimes pass through."""
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO-8601 timestamp, got {value!r}")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def item_from_record(record: dict[str, Any]) -> CandidateItem:
    """Convert an import/storage record into a CandidateItem."""
    try:
        timestamp = parse_timestamp(record.get("timestamp"))
        reversed_at = parse_timestamp(record.get("reversed_at"))
        confidence = record.get("confidence")
        return CandidateItem(
            id=str(record["id"]),
            item_type=ItemType(record.get("type") or record.get("item_type")),
            content=record.get("content", ""),
            name=record.get("name") or "",
            project_id=record.get("project_id"),
            signals=ItemSignals(
                timestamp=timestamp,
                confidence=1.0 if confidence is None else confidence,
                reversed_at=reversed_at,
            ),
        )
    except (KeyError, ValueError, ValidationError) as e:
        raise StoreError(f"Invalid item record {record!r}: {e}") from e


def item_from_node(data: dict[str, Any]) -> CandidateItem:
    """Rebuild a CandidateItem from item node attributes."""
    return item_from_record({
        "id": data["item_id"],
        "type": data["item_type"],
        "content": data.get("content", ""),
        "name": data.get("name", ""),
        "project_id": data.get("project_id"),
        "timestamp": data.get("timestamp"),
        "confidence": data.get("confidence"),
        "reversed_at": data.get("reversed_at"),
    })
