"""Keyword search and filtering over a lesson's mind-map nodes.

``search_nodes`` combines an FTS5 match on the bilingual display text (titles,
descriptions, location) with exact filters on node type and location, the
filters the student viewer offers.
"""

from __future__ import annotations

import re
import sqlite3
from typing import Any, Optional

from ebad.db.models import Node, NodeType
from ebad.db.nodes import _row_to_node
from ebad.errors import ValidationError


# ---------------------------------------------------------------------------
# FTS5 helpers
# ---------------------------------------------------------------------------

def _sanitize_fts_query(text: str) -> Optional[str]:
    """Convert free text into a safe FTS5 query expression.

    FTS5 treats punctuation as query operators, so a raw sentence can raise
    ``OperationalError: fts5: syntax error``.  Word tokens (Arabic or Latin,
    two characters or more) are wrapped in double quotes and joined with
    spaces (implicit AND).  Returns ``None`` when no token survives.
    """
    tokens = re.findall(r"\w{2,}", text)
    seen: set[str] = set()
    unique = []
    for token in tokens:
        if token.lower() not in seen:
            seen.add(token.lower())
            unique.append(token)
    if not unique:
        return None
    # Trailing * makes each token a prefix match.
    return " ".join(f'"{t}"*' for t in unique)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def search_nodes(
    conn: sqlite3.Connection,
    lesson_id: int,
    query: Optional[str] = None,
    node_type: Optional[str] = None,
    location: Optional[str] = None,
    published_only: bool = False,
    top_k: int = 50,
) -> list[Node]:
    """Return up to *top_k* nodes of *lesson_id* matching every given filter.

    With a text query results are ranked by ``bm25``; otherwise they keep the
    usual ``(level, order)`` ordering.  A query with no word of two or more
    characters matches nothing.
    """
    clauses = ["n.lesson_id = ?"]
    params: list[Any] = [lesson_id]

    if node_type:
        try:
            clauses.append("n.type = ?")
            params.append(NodeType(node_type).value)
        except ValueError:
            raise ValidationError(f"Invalid node type: {node_type!r}") from None
    if location:
        clauses.append("n.location = ?")
        params.append(location)
    if published_only:
        clauses.append("n.is_published = 1")

    fts_query = _sanitize_fts_query(query) if query else None
    if query and query.strip() and fts_query is None:
        return []
    if fts_query:
        sql = f"""
            SELECT n.*
            FROM   mindmap_nodes n
            JOIN   mindmap_nodes_fts f ON n.id = f.id
            WHERE  mindmap_nodes_fts MATCH ? AND {" AND ".join(clauses)}
            ORDER  BY bm25(mindmap_nodes_fts)
            LIMIT  ?
        """  # noqa: S608
        params = [fts_query, *params, top_k]
    else:
        sql = f"""
            SELECT n.*
            FROM   mindmap_nodes n
            WHERE  {" AND ".join(clauses)}
            ORDER  BY n.level, n."order", n.created_at
            LIMIT  ?
        """  # noqa: S608
        params.append(top_k)

    rows = conn.execute(sql, params).fetchall()
    return [_row_to_node(r) for r in rows]
