"""Tree Assembly Service.

Rebuilds the parent -> children forest of a lesson from the flat node list.
Malformed data never crashes the assembly: parent references that do not
resolve are reported as ``orphans`` and nodes stuck in a parent cycle (which
can only be reached by bypassing the mutation service) are reported as
``unreachable``.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional

from ebad.db.graph import get_tree
from ebad.db.models import Node, Relationship

logger = logging.getLogger(__name__)


@dataclass
class ForestNode:
    node: Node
    children: list[ForestNode] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.node.id

    def to_dict(self) -> dict[str, Any]:
        data = self.node.to_dict()
        data["children"] = [child.to_dict() for child in self.children]
        return data


@dataclass
class Forest:
    roots: list[ForestNode] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)
    unreachable: list[str] = field(default_factory=list)

    def walk(self) -> Iterator[tuple[ForestNode, int]]:
        """Yield ``(forest_node, depth)`` depth-first, pre-order."""
        visited: set[str] = set()
        stack: list[tuple[ForestNode, int]] = [(r, 0) for r in reversed(self.roots)]
        while stack:
            current, depth = stack.pop()
            if current.id in visited:
                continue
            visited.add(current.id)
            yield current, depth
            stack.extend((c, depth + 1) for c in reversed(current.children))

    def find(self, node_id: str) -> Optional[ForestNode]:
        for current, _ in self.walk():
            if current.id == node_id:
                return current
        return None

    @property
    def meta(self) -> dict[str, int]:
        depths = [depth for _, depth in self.walk()]
        return {
            "totalNodes": len(depths),
            "maxDepth": max(depths, default=0),
            "rootNodes": len(self.roots),
        }

    def to_dict(self) -> list[dict[str, Any]]:
        return [root.to_dict() for root in self.roots]


def _sort_key(fn: ForestNode) -> tuple[int, int, str]:
    return (fn.node.order, fn.node.created_at, fn.node.id)


def build_forest(
    nodes: Iterable[Node], relationships: Iterable[Relationship] = ()
) -> Forest:
    """Assemble a forest from flat nodes.  Pure; does not touch the DB."""
    by_id: dict[str, ForestNode] = {}
    for node in nodes:
        by_id[node.id] = ForestNode(node)

    forest = Forest(relationships=list(relationships))
    for fn in by_id.values():
        parent_id = fn.node.parent_id
        if parent_id is None:
            forest.roots.append(fn)
        elif parent_id in by_id:
            by_id[parent_id].children.append(fn)
        else:
            forest.orphans.append(fn.id)

    forest.roots.sort(key=_sort_key)
    for fn in by_id.values():
        fn.children.sort(key=_sort_key)

    # Descendants of an orphan go with it; anything else left over is cyclic.
    reached = {fn.id for fn, _ in forest.walk()}
    dropped: set[str] = set()
    stack = [by_id[nid] for nid in forest.orphans]
    while stack:
        current = stack.pop()
        if current.id not in dropped:
            dropped.add(current.id)
            stack.extend(current.children)
    forest.unreachable = [
        nid for nid in by_id if nid not in reached and nid not in dropped
    ]

    if forest.orphans:
        logger.warning("Dropped %d orphaned node(s): %s", len(forest.orphans), forest.orphans)
    if forest.unreachable:
        logger.warning(
            "Dropped %d node(s) caught in a parent cycle: %s",
            len(forest.unreachable),
            forest.unreachable,
        )
    return forest


def assemble(
    conn: sqlite3.Connection, lesson_id: int, published_only: bool = False
) -> Forest:
    """Fetch a lesson's nodes and relationships and build its forest."""
    payload = get_tree(conn, lesson_id, published_only=published_only)
    return build_forest(payload.nodes, payload.relationships)
