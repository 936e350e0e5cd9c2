"""Hierarchical Mutation Service.

Create, re-parent and remove nodes while keeping each lesson's parent graph a
forest with consistent ``level`` values.  :func:`reparent` is the only code
path allowed to change ``parent_id``.

Structural mutations of one lesson are serialised through
:data:`lesson_locks` and each runs as a single SQLite transaction, so the
cycle check reads the same state the update writes to.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from time import time
from typing import Any, Iterable, Iterator, Optional

from ebad.db.connection import transaction
from ebad.db.models import Node, NodeType, RemovalResult
from ebad.db.nodes import (
    create_node,
    delete_node,
    incident_relationship_ids,
    require_node,
    subtree_depths,
)
from ebad.errors import CycleRejectedError, InternalError, ValidationError

logger = logging.getLogger(__name__)


class LessonLocks:
    """In-process registry of one re-entrant lock per lesson."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.RLock] = {}

    def _lock_for(self, lesson_id: int) -> threading.RLock:
        with self._guard:
            return self._locks.setdefault(lesson_id, threading.RLock())

    @contextmanager
    def hold(self, *lesson_ids: int) -> Iterator[None]:
        """Hold the locks of every given lesson (acquired in sorted order)."""
        locks = [self._lock_for(lid) for lid in sorted(set(lesson_ids))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()


lesson_locks = LessonLocks()


@dataclass
class RemovalPreview:
    """What deleting a set of nodes would remove, without removing it."""

    node_ids: list[str] = field(default_factory=list)
    relationship_ids: list[str] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodeIds": list(self.node_ids),
            "count": len(self.node_ids),
            "relationshipCount": len(self.relationship_ids),
            "notFound": list(self.not_found),
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def ancestor_ids(conn: sqlite3.Connection, node_id: str) -> list[str]:
    """Return the chain of parent IDs from *node_id* up to its root.

    Raises:
        InternalError: The stored parent chain loops.
    """
    chain: list[str] = []
    seen = {node_id}
    current: Optional[str] = node_id
    while current is not None:
        row = conn.execute(
            "SELECT parent_id FROM mindmap_nodes WHERE id = ?", (current,)
        ).fetchone()
        current = row["parent_id"] if row else None
        if current is None:
            break
        if current in seen:
            logger.error("Corrupt hierarchy above node %s: %s", node_id, chain)
            raise InternalError("Corrupt hierarchy: parent chain does not terminate")
        seen.add(current)
        chain.append(current)
    return chain


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def add_child(
    conn: sqlite3.Connection,
    parent_id: str,
    title_ar: str,
    title_en: str,
    node_type: NodeType | str = NodeType.TOPIC,
    **fields: Any,
) -> Node:
    """Create a node directly under *parent_id* in the parent's lesson."""
    parent = require_node(conn, parent_id)
    with lesson_locks.hold(parent.lesson_id):
        return create_node(
            conn,
            parent.lesson_id,
            title_ar,
            title_en,
            node_type,
            parent_id=parent_id,
            **fields,
        )


def reparent(
    conn: sqlite3.Connection,
    node_id: str,
    new_parent_id: Optional[str],
    new_order: int = 0,
) -> Node:
    """Move *node_id* (and implicitly its subtree) under *new_parent_id*.

    ``None`` makes the node a root.  Siblings at or after ``new_order`` under
    the new parent shift down by one; the node's level and every descendant
    level are recomputed.

    Raises:
        NotFoundError: The node or the new parent does not exist.
        ValidationError: The new parent is in another lesson or
            ``new_order`` is negative.
        CycleRejectedError: The new parent is the node itself or one of its
            descendants.  Nothing is modified.
    """
    if isinstance(new_order, bool) or not isinstance(new_order, int) or new_order < 0:
        raise ValidationError("newOrder must be a non-negative integer")

    node = require_node(conn, node_id)
    with lesson_locks.hold(node.lesson_id), transaction(conn):
        new_level = 0
        if new_parent_id is not None:
            if new_parent_id == node_id:
                raise CycleRejectedError(node_id, new_parent_id)
            parent = require_node(conn, new_parent_id)
            if parent.lesson_id != node.lesson_id:
                raise ValidationError("Parent node must belong to same lesson")
            if node_id in ancestor_ids(conn, new_parent_id):
                raise CycleRejectedError(node_id, new_parent_id)
            new_level = parent.level + 1

        now = int(time())
        conn.execute(
            """
            UPDATE mindmap_nodes
            SET    "order" = "order" + 1, updated_at = ?
            WHERE  lesson_id = ? AND parent_id IS ? AND "order" >= ? AND id != ?
            """,
            (now, node.lesson_id, new_parent_id, new_order, node_id),
        )
        conn.execute(
            """
            UPDATE mindmap_nodes
            SET    parent_id = ?, "order" = ?, level = ?, updated_at = ?
            WHERE  id = ?
            """,
            (new_parent_id, new_order, new_level, now, node_id),
        )
        depths = subtree_depths(conn, [node_id])
        conn.executemany(
            "UPDATE mindmap_nodes SET level = ?, updated_at = ? WHERE id = ?",
            [
                (new_level + depth, now, nid)
                for nid, depth in depths.items()
                if nid != node_id
            ],
        )

    logger.info(
        "Moved node %s under %s at order %d (level %d, %d descendant(s))",
        node_id,
        new_parent_id,
        new_order,
        new_level,
        len(depths) - 1,
    )
    return require_node(conn, node_id)


def remove_subtree(conn: sqlite3.Connection, node_id: str) -> RemovalResult:
    """Delete a node, every descendant and every incident relationship.

    Returns the removed IDs so an open editor can prune its view without a
    full reload.
    """
    node = require_node(conn, node_id)
    with lesson_locks.hold(node.lesson_id):
        return delete_node(conn, node_id)


def preview_removal(
    conn: sqlite3.Connection, node_ids: Iterable[str]
) -> RemovalPreview:
    """Dry run of a (bulk) delete: the nodes and relationships it would take."""
    ids = list(dict.fromkeys(node_ids))
    if not ids:
        raise ValidationError("At least one node ID is required")
    existing = subtree_depths(conn, ids)
    not_found = [nid for nid in ids if nid not in existing]
    doomed = list(existing)
    return RemovalPreview(
        node_ids=doomed,
        relationship_ids=incident_relationship_ids(conn, doomed),
        not_found=not_found,
    )
