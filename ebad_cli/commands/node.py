"""Node authoring commands: add, edit, move, remove, publish."""

from typing import List, Optional

import typer

from ebad.db import get_connection, init_db
from ebad.db.attachments import list_attachments
from ebad.db.nodes import create_node, list_children, require_node, update_node
from ebad.mindmap.bulk import BulkOperation, run_bulk
from ebad.mindmap.mutations import add_child, preview_removal, remove_subtree, reparent
from ebad_cli.context import handle_errors, load_context, resolve_lesson

node_app = typer.Typer(help="Create, edit, move and remove mind-map nodes.")


@node_app.command("add")
@handle_errors
def node_add(
    title_ar: str = typer.Option(..., "--title-ar", help="Arabic title."),
    title_en: str = typer.Option(..., "--title-en", help="English title."),
    parent: Optional[str] = typer.Option(None, "--parent", help="Parent node ID (omit for a root)."),
    lesson: Optional[int] = typer.Option(None, "--lesson", help="Lesson ID (defaults to the active lesson)."),
    type: str = typer.Option("TOPIC", "--type", help="Node type (ROOT, CATEGORY, TOPIC, EVENT...)."),
    description_en: Optional[str] = typer.Option(None, "--description-en"),
    description_ar: Optional[str] = typer.Option(None, "--description-ar"),
    color: Optional[str] = typer.Option(None, "--color", help="Hex colour, e.g. #4F46E5."),
    published: bool = typer.Option(False, "--published", help="Publish immediately."),
) -> None:
    """Create a node as a root of the lesson or under --parent."""
    extra = {
        key: value
        for key, value in (
            ("description_en", description_en),
            ("description_ar", description_ar),
            ("color", color),
        )
        if value is not None
    }
    conn = get_connection()
    init_db(conn)
    try:
        if parent:
            node = add_child(
                conn, parent, title_ar, title_en, type, is_published=published, **extra
            )
        else:
            node = create_node(
                conn,
                resolve_lesson(lesson),
                title_ar,
                title_en,
                type,
                is_published=published,
                **extra,
            )
    finally:
        conn.close()
    typer.echo(f"Created node {node.id}  level={node.level}  order={node.order}")


@node_app.command("show")
@handle_errors
def node_show(node_id: str = typer.Argument(..., help="Node ID")) -> None:
    """Print a node's fields, children and attachments."""
    locale = load_context().locale
    conn = get_connection()
    init_db(conn)
    try:
        node = require_node(conn, node_id)
        children = list_children(conn, node_id)
        attachments = list_attachments(conn, node_id)
    finally:
        conn.close()

    typer.echo(f"{node.title(locale)}  [{node.type.value}]")
    typer.echo(f"  id        : {node.id}")
    typer.echo(f"  lesson    : {node.lesson_id}")
    typer.echo(f"  parent    : {node.parent_id or '-'}")
    typer.echo(f"  level     : {node.level}   order: {node.order}")
    typer.echo(f"  published : {'yes' if node.is_published else 'no'}")
    if node.has_saved_position:
        typer.echo(f"  position  : ({node.position_x}, {node.position_y})")
    for child in children:
        typer.echo(f"  - {child.title(locale)}  ({child.id[:8]})")
    for att in attachments:
        title = att.title_ar if locale == "ar" else att.title_en
        typer.echo(f"  * {att.type.value}: {title}")


@node_app.command("edit")
@handle_errors
def node_edit(
    node_id: str = typer.Argument(..., help="Node ID"),
    title_ar: Optional[str] = typer.Option(None, "--title-ar"),
    title_en: Optional[str] = typer.Option(None, "--title-en"),
    type: Optional[str] = typer.Option(None, "--type"),
    description_en: Optional[str] = typer.Option(None, "--description-en"),
    description_ar: Optional[str] = typer.Option(None, "--description-ar"),
    color: Optional[str] = typer.Option(None, "--color"),
    order: Optional[int] = typer.Option(None, "--order", min=0),
) -> None:
    """Change display fields of a node.  Use 'node move' to change its parent."""
    updates = {
        key: value
        for key, value in (
            ("title_ar", title_ar),
            ("title_en", title_en),
            ("type", type),
            ("description_en", description_en),
            ("description_ar", description_ar),
            ("color", color),
            ("order", order),
        )
        if value is not None
    }
    conn = get_connection()
    init_db(conn)
    try:
        node = update_node(conn, node_id, **updates)
    finally:
        conn.close()
    typer.echo(f"Updated node {node.id}")


@node_app.command("move")
@handle_errors
def node_move(
    node_id: str = typer.Argument(..., help="Node to move"),
    parent: Optional[str] = typer.Option(None, "--parent", help="New parent ID (omit to make it a root)."),
    order: int = typer.Option(0, "--order", min=0, help="Position among the new siblings."),
) -> None:
    """Re-parent a node together with its subtree."""
    conn = get_connection()
    init_db(conn)
    try:
        node = reparent(conn, node_id, parent, order)
    finally:
        conn.close()
    where = f"under {node.parent_id}" if node.parent_id else "to the root"
    typer.echo(f"Moved {node.id} {where} (level {node.level}, order {node.order})")


@node_app.command("rm")
@handle_errors
def node_rm(
    node_id: str = typer.Argument(..., help="Node to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete a node, its whole subtree and every attached relationship."""
    conn = get_connection()
    init_db(conn)
    try:
        require_node(conn, node_id)
        if not yes:
            preview = preview_removal(conn, [node_id])
            typer.confirm(
                f"Delete {len(preview.node_ids)} node(s) and "
                f"{len(preview.relationship_ids)} relationship(s)?",
                abort=True,
            )
        result = remove_subtree(conn, node_id)
    finally:
        conn.close()
    typer.echo(
        f"Deleted {len(result.deleted_node_ids)} node(s) and "
        f"{len(result.deleted_relationship_ids)} relationship(s)"
    )


def _set_published(node_ids: List[str], operation: BulkOperation) -> None:
    conn = get_connection()
    init_db(conn)
    try:
        result = run_bulk(conn, operation, node_ids)
    finally:
        conn.close()
    typer.echo(f"{operation.value.capitalize()}ed {result.affected} node(s)")
    for missing in result.not_found:
        typer.echo(f"  not found: {missing}")


@node_app.command("publish")
@handle_errors
def node_publish(node_ids: List[str] = typer.Argument(..., help="Node IDs")) -> None:
    """Make nodes visible to students."""
    _set_published(node_ids, BulkOperation.PUBLISH)


@node_app.command("unpublish")
@handle_errors
def node_unpublish(node_ids: List[str] = typer.Argument(..., help="Node IDs")) -> None:
    """Hide nodes from students."""
    _set_published(node_ids, BulkOperation.UNPUBLISH)
