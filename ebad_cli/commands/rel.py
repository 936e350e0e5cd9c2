"""Cross-link commands between nodes of one lesson."""

from typing import Optional

import typer

from ebad.db import get_connection, init_db
from ebad.db.relationships import create_relationship, delete_relationship, list_relationships
from ebad_cli.context import handle_errors, load_context, resolve_lesson

rel_app = typer.Typer(help="Add, list and remove relationships.")


@rel_app.command("add")
@handle_errors
def rel_add(
    from_id: str = typer.Argument(..., help="Source node ID"),
    to_id: str = typer.Argument(..., help="Target node ID"),
    type: str = typer.Option("RELATED", "--type", help="RELATED, PREREQUISITE, LEADS_TO, ..."),
    label_en: Optional[str] = typer.Option(None, "--label-en"),
    label_ar: Optional[str] = typer.Option(None, "--label-ar"),
    color: Optional[str] = typer.Option(None, "--color"),
    width: Optional[int] = typer.Option(None, "--width", help="Line width, 1-10."),
    dashed: bool = typer.Option(False, "--dashed"),
) -> None:
    """Connect two nodes of the same lesson."""
    conn = get_connection()
    init_db(conn)
    try:
        rel = create_relationship(
            conn,
            from_id,
            to_id,
            type,
            color=color,
            line_width=width,
            line_style="dashed" if dashed else None,
            label_ar=label_ar,
            label_en=label_en,
        )
    finally:
        conn.close()
    typer.echo(f"Connected {from_id[:8]} --[{rel.type.value}]--> {to_id[:8]}  ({rel.id})")


@rel_app.command("list")
def rel_list(
    lesson: Optional[int] = typer.Option(None, "--lesson"),
) -> None:
    """List the lesson's relationships."""
    lesson_id = resolve_lesson(lesson)
    locale = load_context().locale
    conn = get_connection()
    init_db(conn)
    try:
        rels = list_relationships(conn, lesson_id)
    finally:
        conn.close()
    if not rels:
        typer.echo("No relationships.")
        return
    for r in rels:
        label = r.label(locale) or ""
        typer.echo(f"  {r.id}  {r.from_node_id[:8]} --[{r.type.value}]--> {r.to_node_id[:8]}  {label}")


@rel_app.command("rm")
@handle_errors
def rel_rm(rel_id: str = typer.Argument(..., help="Relationship ID")) -> None:
    """Delete a relationship.  Parent-child links cannot be removed here."""
    conn = get_connection()
    init_db(conn)
    try:
        delete_relationship(conn, rel_id)
    finally:
        conn.close()
    typer.echo(f"Deleted relationship {rel_id}")
