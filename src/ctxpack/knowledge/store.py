"""Persistent storage for the knowledge graph using SQLite."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

import networkx as nx

from ctxpack.exceptions import StoreError
from ctxpack.knowledge.graph import ACTIVE_STATUS, ITEM_PREFIX, item_node, project_node


class KnowledgeStore:
    """Persists and loads the knowledge graph.

    Items keep a `position` column so retrieval order survives a round trip.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                self._conn = sqlite3.connect(str(self.db_path))
            except sqlite3.Error as e:
                raise StoreError(f"Cannot open knowledge store {self.db_path}: {e}") from e
            self._conn.row_factory = sqlite3.Row
            self._create_tables()
        return self._conn

    def _create_tables(self) -> None:
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS projects (
                project_id TEXT PRIMARY KEY,
                name TEXT,
                last_active TEXT,           -- ISO-8601, NULL when unknown
                status TEXT
            );

            CREATE TABLE IF NOT EXISTS items (
                item_id TEXT PRIMARY KEY,
                position INTEGER NOT NULL,
                item_type TEXT NOT NULL,
                name TEXT,
                content TEXT NOT NULL,
                project_id TEXT,
                timestamp TEXT,             -- ISO-8601, NULL when unknown
                confidence REAL,
                reversed_at TEXT
            );

            CREATE TABLE IF NOT EXISTS relations (
                source_id TEXT NOT NULL,
                target_id TEXT NOT NULL,
                PRIMARY KEY (source_id, target_id)
            );

            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_items_project ON items(project_id);
            CREATE INDEX IF NOT EXISTS idx_items_position ON items(position);
        """)
        conn.commit()

    # ------------------------------------------------------------------
    # Save / Load
    # ------------------------------------------------------------------

    def save(self, graph: nx.DiGraph, metadata: dict | None = None) -> None:
        """Replace the stored graph with `graph`."""
        conn = self._get_conn()
        conn.execute("DELETE FROM projects")
        conn.execute("DELETE FROM items")
        conn.execute("DELETE FROM relations")

        position = 0
        for node_id, data in graph.nodes(data=True):
            ntype = data.get("type")
            if ntype == "project":
                conn.execute(
                    "INSERT INTO projects (project_id, name, last_active, status) VALUES (?, ?, ?, ?)",
                    (
                        data["project_id"], data.get("name", ""),
                        data.get("last_active"), data.get("status"),
                    ),
                )
            elif ntype == "item":
                conn.execute(
                    """INSERT INTO items
                    (item_id, position, item_type, name, content, project_id, timestamp, confidence,
                     reversed_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        data["item_id"], position,
                        data["item_type"],
                        data.get("name", ""),
                        data.get("content", ""),
                        data.get("project_id"),
                        data.get("timestamp"),
                        data.get("confidence"),
                        data.get("reversed_at"),
                    ),
                )
                position += 1

        for u, v, data in graph.edges(data=True):
            if data.get("kind") == "relates_to":
                conn.execute(
                    "INSERT OR IGNORE INTO relations (source_id, target_id) VALUES (?, ?)",
                    (u[len(ITEM_PREFIX):], v[len(ITEM_PREFIX):]),
                )

        if metadata:
            for key, value in metadata.items():
                conn.execute(
                    "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                    (key, json.dumps(value)),
                )

        conn.commit()

    def load(self) -> nx.DiGraph | None:
        """Load the graph, or None if nothing has been saved yet."""
        conn = self._get_conn()
        items = conn.execute("SELECT * FROM items ORDER BY position").fetchall()
        projects = conn.execute("SELECT * FROM projects").fetchall()
        if not items and not projects:
            return None

        graph = nx.DiGraph()
        for row in projects:
            graph.add_node(
                project_node(row["project_id"]),
                type="project", project_id=row["project_id"], name=row["name"] or row["project_id"],
                last_active=row["last_active"], status=row["status"] or ACTIVE_STATUS,
            )
        for row in items:
            node = item_node(row["item_id"])
            graph.add_node(
                node,
                type="item",
                item_id=row["item_id"],
                item_type=row["item_type"],
                name=row["name"] or "",
                content=row["content"],
                project_id=row["project_id"],
                timestamp=row["timestamp"],
                confidence=row["confidence"],
                reversed_at=row["reversed_at"],
            )
            if row["project_id"]:
                pnode = project_node(row["project_id"])
                if not graph.has_node(pnode):
                    graph.add_node(
                        pnode, type="project", project_id=row["project_id"],
                        name=row["project_id"], last_active=None, status=ACTIVE_STATUS,
                    )
                graph.add_edge(node, pnode, kind="scoped_to")

        for row in conn.execute("SELECT source_id, target_id FROM relations"):
            src, dst = item_node(row["source_id"]), item_node(row["target_id"])
            if graph.has_node(src) and graph.has_node(dst):
                graph.add_edge(src, dst, kind="relates_to")

        return graph

    def get_metadata(self, key: str) -> Any:
        conn = self._get_conn()
        row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
        return json.loads(row["value"]) if row else None

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

