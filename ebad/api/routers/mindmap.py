"""Admin mind-map endpoints (tree editor and graph editor).

Routes
------
GET    /admin/mindmap/tree?lessonId=                 Flat sets + nested tree + meta
GET    /admin/mindmap/nodes?lessonId=&page=&limit=   Paginated node list
GET    /admin/mindmap/nodes/{id}                     Node with children and attachments
POST   /admin/mindmap/nodes                          Create a node
PUT    /admin/mindmap/nodes/{id}                     Patch a node (never its parent)
DELETE /admin/mindmap/nodes/{id}                     Delete a subtree
GET    /admin/mindmap/nodes/{id}/removal-preview     What a delete would remove
POST   /admin/mindmap/relationships                  Create a relationship
DELETE /admin/mindmap/relationships?id=              Delete a relationship
POST   /admin/mindmap/reorder                        Re-parent / reorder a node
POST   /admin/mindmap/positions                      Save dragged coordinates
POST   /admin/mindmap/bulk                           publish / unpublish / delete / export
GET    /admin/mindmap/graph?lessonId=&locale=        Positioned graph view
POST   /admin/mindmap/attachments                    Attach a reference to a node
DELETE /admin/mindmap/attachments?id=                Remove an attachment
GET    /admin/mindmap/search?lessonId=&q=            Keyword search and filters

Every error is raised as a :class:`~ebad.errors.MindMapError` and rendered by
the handler registered in :mod:`ebad.api.app`.
"""

from __future__ import annotations

import math
from typing import Any, Literal, Optional

from fastapi import APIRouter, Query, Request

from ebad.config import settings
from ebad.db.attachments import create_attachment, delete_attachment, list_attachments
from ebad.db.graph import get_tree
from ebad.db.nodes import (
    count_nodes,
    create_node,
    list_children,
    list_nodes,
    require_node,
    update_node,
    update_positions,
)
from ebad.db.relationships import create_relationship, delete_relationship
from ebad.db.search import search_nodes
from ebad.errors import ValidationError
from ebad.mindmap.bulk import run_bulk
from ebad.mindmap.mutations import preview_removal, remove_subtree, reparent
from ebad.mindmap.tree import build_forest
from ebad.mindmap.views import build_graph_view

from ebad.api.routers.schemas import (
    AttachmentCreate,
    BulkRequest,
    NodeCreate,
    NodeUpdate,
    PositionsRequest,
    RelationshipCreate,
    ReorderRequest,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Tree / nodes
# ---------------------------------------------------------------------------

@router.get("/tree")
def get_lesson_tree(
    request: Request, lesson_id: int = Query(alias="lessonId", gt=0)
) -> dict[str, Any]:
    """Return the lesson's flat node/relationship sets plus the assembled tree."""
    conn = request.app.state.db
    payload = get_tree(conn, lesson_id)
    forest = build_forest(payload.nodes, payload.relationships)
    return {**payload.to_dict(), "tree": forest.to_dict(), "meta": forest.meta}


@router.get("/nodes")
def list_lesson_nodes(
    request: Request,
    lesson_id: int = Query(alias="lessonId", gt=0),
    page: int = 1,
    limit: Optional[int] = None,
) -> dict[str, Any]:
    """Return one page of a lesson's nodes in ``(level, order)`` order."""
    conn = request.app.state.db
    limit = settings.nodes_page_limit if limit is None else limit
    if page < 1 or not 1 <= limit <= settings.nodes_page_limit:
        raise ValidationError(
            "Invalid pagination parameters. Page must be >= 1, "
            f"limit must be 1-{settings.nodes_page_limit}"
        )
    offset = (page - 1) * limit
    nodes = list_nodes(conn, lesson_id, offset=offset, limit=limit)
    total = count_nodes(conn, lesson_id)
    return {
        "nodes": [n.to_dict() for n in nodes],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit),
            "hasMore": offset + len(nodes) < total,
        },
    }


@router.get("/nodes/{node_id}")
def get_one_node(node_id: str, request: Request) -> dict[str, Any]:
    """Fetch a node with its direct children and its attachments."""
    conn = request.app.state.db
    node = require_node(conn, node_id)
    data = node.to_dict()
    data["children"] = [c.to_dict() for c in list_children(conn, node_id)]
    data["attachments"] = [a.to_dict() for a in list_attachments(conn, node_id)]
    return data


@router.post("/nodes", status_code=201)
def create_one_node(body: NodeCreate, request: Request) -> dict[str, Any]:
    """Create a node as a root or under ``parentId``."""
    conn = request.app.state.db
    node = create_node(
        conn,
        body.lesson_id,
        body.title_ar,
        body.title_en,
        body.type,
        parent_id=body.parent_id,
        **body.store_fields(),
    )
    return node.to_dict()


@router.put("/nodes/{node_id}")
def update_one_node(node_id: str, body: NodeUpdate, request: Request) -> dict[str, Any]:
    """Patch the fields present in the body."""
    conn = request.app.state.db
    node = update_node(conn, node_id, **body.model_dump(exclude_unset=True))
    return node.to_dict()


@router.delete("/nodes/{node_id}")
def delete_one_node(node_id: str, request: Request) -> dict[str, Any]:
    """Delete a node, its descendants and every incident relationship."""
    conn = request.app.state.db
    return remove_subtree(conn, node_id).to_dict()


@router.get("/nodes/{node_id}/removal-preview")
def removal_preview(node_id: str, request: Request) -> dict[str, Any]:
    """Count what deleting *node_id* would remove, without deleting."""
    conn = request.app.state.db
    require_node(conn, node_id)
    return preview_removal(conn, [node_id]).to_dict()


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------

@router.post("/relationships", status_code=201)
def create_one_relationship(body: RelationshipCreate, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    rel = create_relationship(
        conn,
        body.from_node_id,
        body.to_node_id,
        body.type,
        color=body.color,
        line_width=body.line_width,
        line_style=body.line_style,
        label_ar=body.label_ar,
        label_en=body.label_en,
        source_handle=body.source_handle,
        target_handle=body.target_handle,
    )
    return rel.to_dict()


@router.delete("/relationships")
def delete_one_relationship(
    request: Request, rel_id: str = Query(alias="id", min_length=1)
) -> dict[str, Any]:
    """Delete a stored relationship.  Derived parent-child edge IDs are refused."""
    conn = request.app.state.db
    delete_relationship(conn, rel_id)
    return {"success": True, "deletedId": rel_id}


# ---------------------------------------------------------------------------
# Structure, positions, bulk
# ---------------------------------------------------------------------------

@router.post("/reorder")
def reorder_node(body: ReorderRequest, request: Request) -> dict[str, Any]:
    """Move a node (and its subtree) under a new parent at a sibling index."""
    conn = request.app.state.db
    node = reparent(conn, body.node_id, body.new_parent_id, body.new_order)
    return {"success": True, "node": node.to_dict()}


@router.post("/positions")
def save_positions(body: PositionsRequest, request: Request) -> dict[str, Any]:
    """Persist dragged node coordinates in one transaction."""
    conn = request.app.state.db
    result = update_positions(
        conn, [(u.id, u.position_x, u.position_y) for u in body.updates]
    )
    return {"success": True, "updated": result.updated, "missing": result.missing}


@router.post("/bulk")
def bulk_operation(body: BulkRequest, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    result = run_bulk(conn, body.operation, body.node_ids, dry_run=body.dry_run)
    return {"success": True, **result.to_dict()}


# ---------------------------------------------------------------------------
# Graph view
# ---------------------------------------------------------------------------

@router.get("/graph")
def lesson_graph(
    request: Request,
    lesson_id: int = Query(alias="lessonId", gt=0),
    locale: Literal["ar", "en"] = "en",
) -> dict[str, Any]:
    """Positioned nodes with hierarchy and relationship edges for the canvas."""
    conn = request.app.state.db
    payload = get_tree(conn, lesson_id)
    view = build_graph_view(payload.nodes, payload.relationships, locale=locale)
    return view.to_dict()


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------

@router.post("/attachments", status_code=201)
def create_one_attachment(body: AttachmentCreate, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    attachment = create_attachment(
        conn,
        body.node_id,
        body.type,
        body.title_ar,
        body.title_en,
        content_ar=body.content_ar,
        content_en=body.content_en,
        url=body.url,
        order=body.order,
    )
    return attachment.to_dict()


@router.delete("/attachments")
def delete_one_attachment(
    request: Request, attachment_id: str = Query(alias="id", min_length=1)
) -> dict[str, Any]:
    conn = request.app.state.db
    delete_attachment(conn, attachment_id)
    return {"success": True, "deletedId": attachment_id}


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@router.get("/search")
def search_lesson(
    request: Request,
    lesson_id: int = Query(alias="lessonId", gt=0),
    q: Optional[str] = None,
    type: Optional[str] = None,
    location: Optional[str] = None,
    top_k: int = Query(default=50, ge=1, le=500, alias="topK"),
) -> list[dict[str, Any]]:
    """Keyword search over titles and descriptions, with type/location filters."""
    conn = request.app.state.db
    nodes = search_nodes(
        conn, lesson_id, query=q, node_type=type, location=location, top_k=top_k
    )
    return [n.to_dict() for n in nodes]
