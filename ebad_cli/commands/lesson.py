"""Lesson selection commands."""

import typer

from ebad.db import get_connection, init_db
from ebad.db.nodes import count_nodes
from ebad.db.relationships import list_relationships
from ebad_cli.context import load_context, resolve_lesson, save_context

lesson_app = typer.Typer(help="Select the lesson other commands operate on.")


@lesson_app.command("use")
def lesson_use(
    lesson_id: int = typer.Argument(..., min=1, help="Lesson ID to make active."),
) -> None:
    """Make *lesson_id* the active lesson."""
    ctx = load_context()
    ctx.active_lesson_id = lesson_id
    save_context(ctx)
    typer.echo(f"Switched to lesson {lesson_id}")


@lesson_app.command("locale")
def lesson_locale(
    locale: str = typer.Argument(..., help="Display locale: ar | en"),
) -> None:
    """Set the locale used to print titles and labels."""
    if locale not in ("ar", "en"):
        typer.echo(f"Unknown locale {locale!r}. Use: ar | en")
        raise typer.Exit(code=1)
    ctx = load_context()
    ctx.locale = locale
    save_context(ctx)
    typer.echo(f"Locale set to {locale}")


@lesson_app.command("status")
def lesson_status() -> None:
    """Show the active lesson and how many nodes it holds."""
    lesson_id = resolve_lesson(None)
    conn = get_connection()
    init_db(conn)
    try:
        total = count_nodes(conn, lesson_id)
        published = count_nodes(conn, lesson_id, published_only=True)
        rels = len(list_relationships(conn, lesson_id))
    finally:
        conn.close()
    typer.echo(f"Lesson {lesson_id}: {total} node(s), {published} published, {rels} relationship(s)")
