"""Node Store: CRUD operations for the ``mindmap_nodes`` table.

Structural fields (``lesson_id``, ``parent_id``, ``level``) are written only
by :func:`create_node` here and by the re-parent path in
:mod:`ebad.mindmap.mutations`; :func:`update_node` refuses them.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import uuid
from time import time
from typing import Any, Iterable, Optional

from ebad.db.connection import transaction
from ebad.db.models import (
    LIST_FIELDS,
    Node,
    NodeShape,
    NodeType,
    PositionResult,
    RemovalResult,
    dump_json_list,
    parse_json_list,
)
from ebad.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")
DEFAULT_NODE_COLOR = "#4F46E5"

# Maximum lengths for free-text columns.
_MAX_LENGTHS: dict[str, int] = {
    "title_ar": 500,
    "title_en": 500,
    "description_ar": 5000,
    "description_en": 5000,
    "icon": 100,
    "date_hijri": 200,
    "date_gregorian": 200,
    "location": 500,
    "decision": 2000,
    "security_impact": 2000,
}

_STRUCTURAL = {"id", "lesson_id", "parent_id", "level", "created_at", "updated_at"}

UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "order",
        "title_ar",
        "title_en",
        "type",
        "color",
        "shape",
        "is_published",
        "position_x",
        "position_y",
        "metadata",
        *_MAX_LENGTHS,
        *LIST_FIELDS,
    }
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_node(row: sqlite3.Row) -> Node:
    return Node(
        id=row["id"],
        lesson_id=row["lesson_id"],
        parent_id=row["parent_id"],
        level=row["level"],
        order=row["order"],
        title_ar=row["title_ar"],
        title_en=row["title_en"],
        description_ar=row["description_ar"],
        description_en=row["description_en"],
        type=NodeType(row["type"]),
        color=row["color"],
        icon=row["icon"],
        shape=NodeShape(row["shape"]),
        is_published=bool(row["is_published"]),
        position_x=row["position_x"],
        position_y=row["position_y"],
        date_hijri=row["date_hijri"],
        date_gregorian=row["date_gregorian"],
        location=row["location"],
        participants=parse_json_list(row["participants"]),
        decision=row["decision"],
        alternatives=parse_json_list(row["alternatives"]),
        outcomes=parse_json_list(row["outcomes"]),
        moral_lessons=parse_json_list(row["moral_lessons"]),
        modern_apps=parse_json_list(row["modern_apps"]),
        security_impact=row["security_impact"],
        sources=parse_json_list(row["sources"]),
        metadata=json.loads(row["metadata"] or "{}"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _clean_value(key: str, value: Any) -> Any:
    """Validate one field and convert it to its column representation."""
    if key in ("title_ar", "title_en"):
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{key} is required")
        value = value.strip()
    elif key == "type":
        try:
            return NodeType(value).value
        except ValueError:
            raise ValidationError(f"Invalid node type: {value!r}") from None
    elif key == "shape":
        try:
            return NodeShape(value).value
        except ValueError:
            raise ValidationError(f"Invalid node shape: {value!r}") from None
    elif key == "color":
        if not isinstance(value, str) or not HEX_COLOR.match(value):
            raise ValidationError(f"Invalid color format: {value!r}")
        return value
    elif key == "is_published":
        return 1 if value else 0
    elif key in ("position_x", "position_y"):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{key} must be a number")
        return float(value)
    elif key == "order":
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError("order must be a non-negative integer")
        return value
    elif key == "metadata":
        if value is None:
            return "{}"
        if not isinstance(value, dict):
            raise ValidationError("metadata must be an object")
        return json.dumps(value, ensure_ascii=False)
    elif key in LIST_FIELDS:
        if value is not None and not isinstance(value, (str, list, tuple)):
            raise ValidationError(f"{key} must be a list of strings")
        return dump_json_list(value)

    if key in _MAX_LENGTHS and value is not None:
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be a string")
        if len(value) > _MAX_LENGTHS[key]:
            raise ValidationError(
                f"{key} must be at most {_MAX_LENGTHS[key]} characters"
            )
    return value


def _clean_fields(fields: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in fields.items():
        if key in _STRUCTURAL:
            raise ValidationError(
                f"Cannot update field {key!r}; use the re-parent operation"
                if key in ("parent_id", "level")
                else f"Cannot update field {key!r}"
            )
        if key not in UPDATABLE_FIELDS:
            raise ValidationError(f"Unknown node field {key!r}")
        cleaned[key] = _clean_value(key, value)
    return cleaned


def _quote(column: str) -> str:
    return f'"{column}"' if column == "order" else column


def next_sibling_order(
    conn: sqlite3.Connection, lesson_id: int, parent_id: Optional[str]
) -> int:
    """Return the ``order`` a newly appended sibling should receive."""
    row = conn.execute(
        """
        SELECT COALESCE(MAX("order") + 1, 0)
        FROM   mindmap_nodes
        WHERE  lesson_id = ? AND parent_id IS ?
        """,
        (lesson_id, parent_id),
    ).fetchone()
    return row[0]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_node(
    conn: sqlite3.Connection,
    lesson_id: int,
    title_ar: str,
    title_en: str,
    node_type: NodeType | str = NodeType.TOPIC,
    parent_id: Optional[str] = None,
    node_id: Optional[str] = None,
    **fields: Any,
) -> Node:
    """Insert a new node and return it.

    Args:
        conn: Open DB connection.
        lesson_id: Owning lesson (immutable afterwards).
        title_ar: Arabic display title (required).
        title_en: English display title (required).
        node_type: One of :class:`~ebad.db.models.NodeType`.
        parent_id: Parent node in the same lesson, or ``None`` for a root.
        node_id: Explicit UUID override (auto-generated when omitted).
        **fields: Any other node field (description, colour, metadata...).
            ``order`` defaults to the next free sibling index.

    Raises:
        NotFoundError: ``parent_id`` does not exist.
        ValidationError: Empty titles, bad enum values, or a parent that
            belongs to another lesson.
    """
    if isinstance(lesson_id, bool) or not isinstance(lesson_id, int) or lesson_id < 1:
        raise ValidationError("lesson_id must be a positive integer")

    columns = _clean_fields(
        {"title_ar": title_ar, "title_en": title_en, "type": node_type, **fields}
    )
    columns.setdefault("color", DEFAULT_NODE_COLOR)
    columns.setdefault("shape", NodeShape.CIRCLE.value)
    columns.setdefault("is_published", 0)
    columns.setdefault("metadata", "{}")

    nid = node_id or str(uuid.uuid4())
    now = int(time())

    with transaction(conn):
        level = 0
        if parent_id is not None:
            parent = get_node(conn, parent_id)
            if parent is None:
                raise NotFoundError("Parent node", parent_id)
            if parent.lesson_id != lesson_id:
                raise ValidationError("Parent node must belong to same lesson")
            level = parent.level + 1
        if "order" not in columns:
            columns["order"] = next_sibling_order(conn, lesson_id, parent_id)

        columns.update(
            id=nid,
            lesson_id=lesson_id,
            parent_id=parent_id,
            level=level,
            created_at=now,
            updated_at=now,
        )
        names = ", ".join(_quote(c) for c in columns)
        placeholders = ", ".join("?" for _ in columns)
        conn.execute(
            f"INSERT INTO mindmap_nodes ({names}) VALUES ({placeholders})",  # noqa: S608
            list(columns.values()),
        )

    logger.info("Created node %s in lesson %s (level %d)", nid, lesson_id, level)
    return get_node(conn, nid)  # type: ignore[return-value]


def get_node(conn: sqlite3.Connection, node_id: str) -> Optional[Node]:
    """Fetch a single node by its UUID.  Returns ``None`` if not found."""
    row = conn.execute(
        "SELECT * FROM mindmap_nodes WHERE id = ?", (node_id,)
    ).fetchone()
    return _row_to_node(row) if row else None


def require_node(conn: sqlite3.Connection, node_id: str) -> Node:
    """Like :func:`get_node` but raises :class:`NotFoundError`."""
    node = get_node(conn, node_id)
    if node is None:
        raise NotFoundError("Node", node_id)
    return node


def get_nodes(conn: sqlite3.Connection, node_ids: Iterable[str]) -> dict[str, Node]:
    """Fetch several nodes at once, keyed by ID.  Missing IDs are absent."""
    ids = list(dict.fromkeys(node_ids))
    if not ids:
        return {}
    placeholders = ",".join("?" for _ in ids)
    rows = conn.execute(
        f"SELECT * FROM mindmap_nodes WHERE id IN ({placeholders})", ids  # noqa: S608
    ).fetchall()
    return {r["id"]: _row_to_node(r) for r in rows}


def update_node(conn: sqlite3.Connection, node_id: str, **kwargs: Any) -> Node:
    """Patch one or more fields on a node.

    Any field in :data:`UPDATABLE_FIELDS` is accepted (positions, publish flag,
    display and historical metadata).  ``updated_at`` is always refreshed.

    Raises:
        NotFoundError: If ``node_id`` does not exist.
        ValidationError: If a structural or unknown field is given, a value is
            invalid, or no fields are given at all.
    """
    updates = _clean_fields(kwargs)
    if not updates:
        raise ValidationError("No valid fields provided to update_node()")

    updates["updated_at"] = int(time())
    set_clause = ", ".join(f"{_quote(col)} = ?" for col in updates)
    values = list(updates.values()) + [node_id]

    with transaction(conn):
        cursor = conn.execute(
            f"UPDATE mindmap_nodes SET {set_clause} WHERE id = ?", values  # noqa: S608
        )
        if cursor.rowcount == 0:
            raise NotFoundError("Node", node_id)

    return get_node(conn, node_id)  # type: ignore[return-value]


def subtree_depths(conn: sqlite3.Connection, node_ids: Iterable[str]) -> dict[str, int]:
    """Return ``{id: depth}`` for the given nodes and all their descendants.

    Depth is measured from the nearest given node (0 for the nodes
    themselves).  The walk is breadth-first, one query per level, and never
    revisits a node, so it follows chains of any depth and stops on cyclic
    data.
    """
    ids = list(dict.fromkeys(node_ids))
    depths: dict[str, int] = {}
    frontier = [r["id"] for r in _select_in(conn, "id", ids)]
    depth = 0
    while frontier:
        for node_id in frontier:
            depths[node_id] = depth
        depth += 1
        children = _select_in(conn, "parent_id", frontier)
        frontier = list(dict.fromkeys(r["id"] for r in children if r["id"] not in depths))
    return depths


_IN_CHUNK = 500


def _select_in(conn: sqlite3.Connection, column: str, values: list[str]) -> list[sqlite3.Row]:
    rows: list[sqlite3.Row] = []
    for start in range(0, len(values), _IN_CHUNK):
        chunk = values[start:start + _IN_CHUNK]
        placeholders = ",".join("?" for _ in chunk)
        rows.extend(
            conn.execute(
                f"SELECT id FROM mindmap_nodes WHERE {column} IN ({placeholders})",  # noqa: S608
                chunk,
            ).fetchall()
        )
    return rows


def subtree_ids(conn: sqlite3.Connection, node_ids: Iterable[str]) -> list[str]:
    """Return the given existing nodes plus every descendant, roots first."""
    return list(subtree_depths(conn, node_ids))


def incident_relationship_ids(
    conn: sqlite3.Connection, node_ids: list[str]
) -> list[str]:
    """IDs of relationships whose either endpoint is in ``node_ids``."""
    if not node_ids:
        return []
    placeholders = ",".join("?" for _ in node_ids)
    rows = conn.execute(
        f"""
        SELECT id FROM mindmap_relationships
        WHERE  from_node_id IN ({placeholders}) OR to_node_id IN ({placeholders})
        ORDER  BY created_at, id
        """,  # noqa: S608
        (*node_ids, *node_ids),
    ).fetchall()
    return [r["id"] for r in rows]


def delete_subtrees(conn: sqlite3.Connection, node_ids: Iterable[str]) -> RemovalResult:
    """Delete the given nodes, their descendants and incident relationships.

    Must run inside a transaction owned by the caller.
    """
    doomed = subtree_ids(conn, node_ids)
    if not doomed:
        return RemovalResult()
    rel_ids = incident_relationship_ids(conn, doomed)

    placeholders = ",".join("?" for _ in doomed)
    conn.execute(
        f"""
        DELETE FROM mindmap_relationships
        WHERE  from_node_id IN ({placeholders}) OR to_node_id IN ({placeholders})
        """,  # noqa: S608
        (*doomed, *doomed),
    )
    conn.execute(
        f"DELETE FROM mindmap_nodes WHERE id IN ({placeholders})",  # noqa: S608
        doomed,
    )
    return RemovalResult(deleted_node_ids=doomed, deleted_relationship_ids=rel_ids)


def delete_node(conn: sqlite3.Connection, node_id: str) -> RemovalResult:
    """Delete a node together with its whole subtree and incident edges.

    Raises:
        NotFoundError: If the node does not exist.
    """
    with transaction(conn):
        require_node(conn, node_id)
        result = delete_subtrees(conn, [node_id])

    logger.info(
        "Deleted node %s: %d node(s), %d relationship(s)",
        node_id,
        len(result.deleted_node_ids),
        len(result.deleted_relationship_ids),
    )
    return result


def list_nodes(
    conn: sqlite3.Connection,
    lesson_id: int,
    published_only: bool = False,
    offset: int = 0,
    limit: Optional[int] = None,
) -> list[Node]:
    """Return a lesson's nodes ordered by ``(level, order, created_at)``."""
    sql = "SELECT * FROM mindmap_nodes WHERE lesson_id = ?"
    params: list[Any] = [lesson_id]
    if published_only:
        sql += " AND is_published = 1"
    sql += ' ORDER BY level, "order", created_at, id'
    if limit is not None:
        sql += " LIMIT ? OFFSET ?"
        params.extend([limit, offset])
    rows = conn.execute(sql, params).fetchall()
    return [_row_to_node(r) for r in rows]


def count_nodes(
    conn: sqlite3.Connection, lesson_id: int, published_only: bool = False
) -> int:
    sql = "SELECT COUNT(*) FROM mindmap_nodes WHERE lesson_id = ?"
    if published_only:
        sql += " AND is_published = 1"
    return conn.execute(sql, (lesson_id,)).fetchone()[0]


def list_children(conn: sqlite3.Connection, node_id: str) -> list[Node]:
    rows = conn.execute(
        'SELECT * FROM mindmap_nodes WHERE parent_id = ? ORDER BY "order", created_at, id',
        (node_id,),
    ).fetchall()
    return [_row_to_node(r) for r in rows]


def update_positions(
    conn: sqlite3.Connection,
    updates: Iterable[tuple[str, float, float]],
) -> PositionResult:
    """Persist dragged coordinates for many nodes in one transaction.

    Unknown node IDs are skipped and reported in ``missing``; a lost position
    only means the node falls back to the computed layout on the next load.
    """
    result = PositionResult()
    now = int(time())
    with transaction(conn):
        for node_id, x, y in updates:
            px = _clean_value("position_x", x)
            py = _clean_value("position_y", y)
            cursor = conn.execute(
                """
                UPDATE mindmap_nodes
                SET    position_x = ?, position_y = ?, updated_at = ?
                WHERE  id = ?
                """,
                (px, py, now, node_id),
            )
            if cursor.rowcount:
                result.updated += 1
            else:
                result.missing.append(node_id)

    if result.missing:
        logger.warning("Skipped positions for unknown nodes: %s", result.missing)
    return result
