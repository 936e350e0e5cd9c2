"""Read-only student viewer endpoints.

Routes
------
GET /student/mindmap/tree?lessonId=             Published nodes as a nested tree
GET /student/mindmap/relationships?lessonId=    Edges between published nodes
GET /student/mindmap/graph?lessonId=&locale=    Positioned, non-draggable graph
GET /student/mindmap/search?lessonId=&q=        Search within published nodes

Nothing unpublished is ever returned from here.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from fastapi import APIRouter, Query, Request

from ebad.db.graph import get_tree
from ebad.db.relationships import list_relationships
from ebad.db.search import search_nodes
from ebad.mindmap.tree import assemble
from ebad.mindmap.views import student_graph_view

router = APIRouter()


@router.get("/tree")
def published_tree(
    request: Request, lesson_id: int = Query(alias="lessonId", gt=0)
) -> dict[str, Any]:
    conn = request.app.state.db
    forest = assemble(conn, lesson_id, published_only=True)
    return {"tree": forest.to_dict(), "meta": forest.meta}


@router.get("/relationships")
def published_relationships(
    request: Request, lesson_id: int = Query(alias="lessonId", gt=0)
) -> list[dict[str, Any]]:
    conn = request.app.state.db
    rels = list_relationships(conn, lesson_id, published_only=True)
    return [r.to_dict() for r in rels]


@router.get("/graph")
def published_graph(
    request: Request,
    lesson_id: int = Query(alias="lessonId", gt=0),
    locale: Literal["ar", "en"] = "en",
) -> dict[str, Any]:
    """Graph view for the student viewer; same layout as the admin editor.

    The full lesson is loaded so the layout matches the editor; only
    published nodes and the edges between them are returned.
    """
    conn = request.app.state.db
    payload = get_tree(conn, lesson_id)
    return student_graph_view(payload.nodes, payload.relationships, locale=locale).to_dict()


@router.get("/search")
def search_published(
    request: Request,
    lesson_id: int = Query(alias="lessonId", gt=0),
    q: Optional[str] = None,
    type: Optional[str] = None,
    location: Optional[str] = None,
) -> list[dict[str, Any]]:
    conn = request.app.state.db
    nodes = search_nodes(
        conn,
        lesson_id,
        query=q,
        node_type=type,
        location=location,
        published_only=True,
    )
    return [n.to_dict() for n in nodes]
