"""Operations on the ``mindmap_attachments`` table (ayat, hadith, links...)."""

from __future__ import annotations

import sqlite3
import uuid
from time import time
from typing import Optional
from urllib.parse import urlparse

from ebad.db.connection import transaction
from ebad.db.models import Attachment, AttachmentType
from ebad.db.nodes import require_node
from ebad.errors import NotFoundError, ValidationError


def _row_to_attachment(row: sqlite3.Row) -> Attachment:
    return Attachment(
        id=row["id"],
        node_id=row["node_id"],
        type=AttachmentType(row["type"]),
        title_ar=row["title_ar"],
        title_en=row["title_en"],
        content_ar=row["content_ar"],
        content_en=row["content_en"],
        url=row["url"],
        order=row["order"],
        created_at=row["created_at"],
    )


def create_attachment(
    conn: sqlite3.Connection,
    node_id: str,
    attachment_type: AttachmentType | str,
    title_ar: str,
    title_en: str,
    content_ar: Optional[str] = None,
    content_en: Optional[str] = None,
    url: Optional[str] = None,
    order: int = 0,
) -> Attachment:
    """Attach a reference to a node.

    Raises:
        NotFoundError: The node does not exist.
        ValidationError: Bad type, empty titles, or a non-http(s) URL.
    """
    try:
        atype = AttachmentType(attachment_type).value
    except ValueError:
        raise ValidationError(f"Invalid attachment type: {attachment_type!r}") from None
    if not title_ar or not title_ar.strip() or not title_en or not title_en.strip():
        raise ValidationError("Attachment titles are required")
    if url is not None:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"Invalid URL: {url!r}")

    aid = str(uuid.uuid4())
    with transaction(conn):
        require_node(conn, node_id)
        conn.execute(
            """
            INSERT INTO mindmap_attachments (
                id, node_id, type, title_ar, title_en, content_ar, content_en,
                url, "order", created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                aid, node_id, atype, title_ar.strip(), title_en.strip(),
                content_ar, content_en, url, order, int(time()),
            ),
        )

    row = conn.execute(
        "SELECT * FROM mindmap_attachments WHERE id = ?", (aid,)
    ).fetchone()
    return _row_to_attachment(row)


def delete_attachment(conn: sqlite3.Connection, attachment_id: str) -> None:
    with transaction(conn):
        cursor = conn.execute(
            "DELETE FROM mindmap_attachments WHERE id = ?", (attachment_id,)
        )
        if cursor.rowcount == 0:
            raise NotFoundError("Attachment", attachment_id)


def list_attachments(conn: sqlite3.Connection, node_id: str) -> list[Attachment]:
    """Return a node's attachments in display order."""
    rows = conn.execute(
        """
        SELECT * FROM mindmap_attachments
        WHERE  node_id = ?
        ORDER  BY "order", created_at, id
        """,
        (node_id,),
    ).fetchall()
    return [_row_to_attachment(r) for r in rows]
