"""Ebad mind-map CLI: entry-point for authoring lesson mind maps.

Usage:
    python ebad_cli/main.py --help
    ebad --help                      (when installed)

Command groups:
    db      → schema initialisation
    lesson  → select the active lesson and display locale
    node    → create / edit / move / remove / publish nodes
    rel     → cross-links between nodes
    tree    → ASCII view of the lesson hierarchy
    bulk, layout, search → batch edits, computed positions, keyword search
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from ebad.xxx import ...`
# works when the CLI is invoked as `python ebad_cli/main.py`.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import json
from typing import List, Optional

import typer

from ebad.config import configure_logging, settings
from ebad.db import get_connection, init_db
from ebad.db.graph import get_tree
from ebad.db.search import search_nodes
from ebad.mindmap.bulk import BulkOperation, run_bulk
from ebad.mindmap.layout import radial_layout
from ebad.mindmap.tree import assemble
from ebad_cli.commands.lesson import lesson_app
from ebad_cli.commands.node import node_app
from ebad_cli.commands.rel import rel_app
from ebad_cli.context import handle_errors, load_context, resolve_lesson
from ebad_cli.rendering import render_forest, render_positions

app = typer.Typer(
    name="ebad",
    help="Ebad Academy mind-map CLI.",
    no_args_is_help=True,
)
app.add_typer(lesson_app, name="lesson")
app.add_typer(node_app, name="node")
app.add_typer(rel_app, name="rel")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL."),
) -> None:
    """Ebad Academy mind-map CLI."""
    configure_logging(log_level or "WARNING")


# ---------------------------------------------------------------------------
# db
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# tree
# ---------------------------------------------------------------------------
tree_app = typer.Typer(help="View a lesson's hierarchy.", no_args_is_help=True)
app.add_typer(tree_app, name="tree")


@tree_app.command("show")
def tree_show(
    lesson: Optional[int] = typer.Option(None, "--lesson", help="Lesson ID (defaults to the active lesson)."),
    published: bool = typer.Option(False, "--published", help="Only what students see."),
    ids: bool = typer.Option(False, "--ids", help="Show short node IDs."),
) -> None:
    """Print the lesson's forest as an ASCII tree."""
    lesson_id = resolve_lesson(lesson)
    locale = load_context().locale
    conn = get_connection()
    init_db(conn)
    try:
        forest = assemble(conn, lesson_id, published_only=published)
    finally:
        conn.close()
    typer.echo(render_forest(forest, locale=locale, show_ids=ids))
    meta = forest.meta
    typer.echo(
        f"\n{meta['totalNodes']} node(s), {meta['rootNodes']} root(s), max depth {meta['maxDepth']}"
    )


# ---------------------------------------------------------------------------
# bulk / layout / search
# ---------------------------------------------------------------------------
@app.command("bulk")
@handle_errors
def bulk(
    operation: str = typer.Argument(..., help="publish | unpublish | delete | export"),
    node_ids: List[str] = typer.Argument(..., help="Node IDs"),
    dry_run: bool = typer.Option(False, "--dry-run", help="For delete: only report the count."),
    output: Optional[Path] = typer.Option(None, "--output", help="For export: write JSON here."),
) -> None:
    """Apply one operation to many nodes in a single transaction."""
    conn = get_connection()
    init_db(conn)
    try:
        result = run_bulk(conn, operation, node_ids, dry_run=dry_run)
    finally:
        conn.close()

    if result.operation is BulkOperation.EXPORT:
        data = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
        if output:
            output.write_text(data, encoding="utf-8")
            typer.echo(f"[bulk] Exported {result.affected} node(s) to {output}")
        else:
            typer.echo(data)
    else:
        verb = "would affect" if result.dry_run else "affected"
        typer.echo(f"[bulk] {result.operation.value}: {verb} {result.affected} node(s)")
    for missing in result.not_found:
        typer.echo(f"  not found: {missing}")


@app.command("layout")
def layout(
    lesson: Optional[int] = typer.Option(None, "--lesson"),
) -> None:
    """Print the position every node is drawn at (saved or computed)."""
    lesson_id = resolve_lesson(lesson)
    locale = load_context().locale
    conn = get_connection()
    init_db(conn)
    try:
        payload = get_tree(conn, lesson_id)
    finally:
        conn.close()
    positions = radial_layout(payload.nodes)
    titles = {n.id: n.title(locale) for n in payload.nodes}
    typer.echo(render_positions(titles, positions) or "(empty)")


@app.command("search")
@handle_errors
def search(
    query: Optional[str] = typer.Argument(None, help="Keywords (Arabic or English)."),
    lesson: Optional[int] = typer.Option(None, "--lesson"),
    type: Optional[str] = typer.Option(None, "--type", help="Filter by node type."),
    location: Optional[str] = typer.Option(None, "--location", help="Filter by location."),
) -> None:
    """Search a lesson's nodes by keyword, type and location."""
    lesson_id = resolve_lesson(lesson)
    locale = load_context().locale
    conn = get_connection()
    init_db(conn)
    try:
        results = search_nodes(conn, lesson_id, query=query, node_type=type, location=location)
    finally:
        conn.close()
    if not results:
        typer.echo(f"[search] No results for {query!r}.")
        return
    for n in results:
        typer.echo(f"  {n.id}  [{n.type.value}]  {n.title(locale)}")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
