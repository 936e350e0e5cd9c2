"""Relationship Store: operations on the ``mindmap_relationships`` table.

Relationships are the non-hierarchical, styled edges an admin draws between
two nodes of a lesson.  Parent-child edges are never stored here.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from time import time
from typing import Optional

from ebad.db.connection import transaction
from ebad.db.models import LineStyle, RelationType, Relationship
from ebad.db.nodes import HEX_COLOR, get_nodes
from ebad.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_RELATIONSHIP_COLOR = "#94a3b8"
DEFAULT_LINE_WIDTH = 3

# Prefix of the synthetic IDs the graph view gives derived parent-child edges.
HIERARCHY_EDGE_PREFIX = "parent-"


def hierarchy_edge_id(parent_id: str, child_id: str) -> str:
    return f"{HIERARCHY_EDGE_PREFIX}{parent_id}-{child_id}"


def is_hierarchy_edge_id(edge_id: str) -> bool:
    return edge_id.startswith(HIERARCHY_EDGE_PREFIX)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_relationship(row: sqlite3.Row) -> Relationship:
    return Relationship(
        id=row["id"],
        lesson_id=row["lesson_id"],
        from_node_id=row["from_node_id"],
        to_node_id=row["to_node_id"],
        type=RelationType(row["type"]),
        color=row["color"],
        line_width=row["line_width"],
        line_style=LineStyle(row["line_style"]),
        label_ar=row["label_ar"],
        label_en=row["label_en"],
        source_handle=row["source_handle"],
        target_handle=row["target_handle"],
        created_at=row["created_at"],
    )


def _validate_style(
    relation_type: RelationType | str,
    color: Optional[str],
    line_width: Optional[int],
    line_style: LineStyle | str | None,
) -> tuple[str, str, int, str]:
    try:
        rtype = RelationType(relation_type).value
    except ValueError:
        raise ValidationError(f"Invalid relationship type: {relation_type!r}") from None

    color = color or DEFAULT_RELATIONSHIP_COLOR
    if not HEX_COLOR.match(color):
        raise ValidationError(f"Invalid color format: {color!r}")

    width = DEFAULT_LINE_WIDTH if line_width is None else line_width
    if isinstance(width, bool) or not isinstance(width, int) or not 1 <= width <= 10:
        raise ValidationError("lineWidth must be an integer between 1 and 10")

    try:
        style = LineStyle(line_style or LineStyle.SOLID).value
    except ValueError:
        raise ValidationError(f"Invalid line style: {line_style!r}") from None

    return rtype, color, width, style


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_relationship(
    conn: sqlite3.Connection,
    from_node_id: str,
    to_node_id: str,
    relation_type: RelationType | str = RelationType.RELATED,
    color: Optional[str] = None,
    line_width: Optional[int] = None,
    line_style: LineStyle | str | None = None,
    label_ar: Optional[str] = None,
    label_en: Optional[str] = None,
    source_handle: Optional[str] = None,
    target_handle: Optional[str] = None,
) -> Relationship:
    """Create a directed edge from *from_node_id* to *to_node_id*.

    The ``UNIQUE (from_node_id, to_node_id)`` constraint in the schema is what
    rejects duplicates, so two racing requests cannot both succeed.

    Raises:
        NotFoundError: One or both nodes do not exist.
        ConflictError: An edge already exists for the same ordered pair.
        ValidationError: Self-loop, cross-lesson pair, or bad styling.
    """
    rtype, color, width, style = _validate_style(
        relation_type, color, line_width, line_style
    )
    if from_node_id == to_node_id:
        raise ValidationError("Node cannot relate to itself")

    rid = str(uuid.uuid4())
    now = int(time())
    try:
        with transaction(conn):
            nodes = get_nodes(conn, [from_node_id, to_node_id])
            for nid in (from_node_id, to_node_id):
                if nid not in nodes:
                    raise NotFoundError("Node", nid)
            lesson_id = nodes[from_node_id].lesson_id
            if nodes[to_node_id].lesson_id != lesson_id:
                raise ValidationError("Nodes must belong to same lesson")

            conn.execute(
                """
                INSERT INTO mindmap_relationships (
                    id, lesson_id, from_node_id, to_node_id, source_handle,
                    target_handle, type, label_ar, label_en, line_style,
                    line_width, color, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    rid, lesson_id, from_node_id, to_node_id, source_handle,
                    target_handle, rtype, label_ar, label_en, style,
                    width, color, now,
                ),
            )
    except sqlite3.IntegrityError as exc:
        if "UNIQUE" not in str(exc):
            raise
        raise ConflictError(
            "This relationship already exists between these nodes"
        ) from None

    logger.info("Created relationship %s: %s -> %s", rid, from_node_id, to_node_id)
    return get_relationship(conn, rid)  # type: ignore[return-value]


def get_relationship(conn: sqlite3.Connection, rel_id: str) -> Optional[Relationship]:
    row = conn.execute(
        "SELECT * FROM mindmap_relationships WHERE id = ?", (rel_id,)
    ).fetchone()
    return _row_to_relationship(row) if row else None


def delete_relationship(conn: sqlite3.Connection, rel_id: str) -> None:
    """Delete one stored relationship.

    Raises:
        ForbiddenError: ``rel_id`` is a derived parent-child edge ID.  Those
            never exist as rows; the hierarchy changes only via re-parenting.
        NotFoundError: Any other unknown ID.
    """
    with transaction(conn):
        cursor = conn.execute(
            "DELETE FROM mindmap_relationships WHERE id = ?", (rel_id,)
        )
        deleted = cursor.rowcount

    if not deleted:
        if is_hierarchy_edge_id(rel_id):
            raise ForbiddenError("Cannot delete hierarchical relationship")
        raise NotFoundError("Relationship", rel_id)
    logger.info("Deleted relationship %s", rel_id)


def list_relationships(
    conn: sqlite3.Connection, lesson_id: int, published_only: bool = False
) -> list[Relationship]:
    """Return a lesson's relationships.

    With ``published_only`` only edges whose both endpoints are published are
    returned (what the student viewer may see).
    """
    if published_only:
        rows = conn.execute(
            """
            SELECT r.*
            FROM   mindmap_relationships r
            JOIN   mindmap_nodes f ON f.id = r.from_node_id
            JOIN   mindmap_nodes t ON t.id = r.to_node_id
            WHERE  r.lesson_id = ? AND f.is_published = 1 AND t.is_published = 1
            ORDER  BY r.created_at, r.id
            """,
            (lesson_id,),
        ).fetchall()
    else:
        rows = conn.execute(
            """
            SELECT * FROM mindmap_relationships
            WHERE  lesson_id = ?
            ORDER  BY created_at, id
            """,
            (lesson_id,),
        ).fetchall()
    return [_row_to_relationship(r) for r in rows]
