"""Flat lesson graph fetch: every node and relationship of one lesson."""

from __future__ import annotations

import sqlite3

from ebad.db.models import TreePayload
from ebad.db.nodes import list_nodes
from ebad.db.relationships import list_relationships


def get_tree(
    conn: sqlite3.Connection, lesson_id: int, published_only: bool = False
) -> TreePayload:
    """Return the flat node and relationship sets for *lesson_id*.

    Tree reconstruction is left to :mod:`ebad.mindmap.tree`.  With
    ``published_only`` both sets are restricted to what students may see.
    """
    return TreePayload(
        nodes=list_nodes(conn, lesson_id, published_only=published_only),
        relationships=list_relationships(
            conn, lesson_id, published_only=published_only
        ),
    )
