"""Utilities for rendering lesson mind maps in the CLI."""

from __future__ import annotations

from ebad.mindmap.layout import Position
from ebad.mindmap.tree import Forest, ForestNode


def render_forest(forest: Forest, locale: str = "en", show_ids: bool = False) -> str:
    """Render a lesson's forest as an ASCII tree.

    Args:
        forest: Assembled forest (see :func:`ebad.mindmap.tree.assemble`).
        locale: ``"ar"`` or ``"en"``; picks the title to print.
        show_ids: Append the first 8 characters of each node ID.

    Returns:
        String representation of the tree, one node per line.
    """
    lines: list[str] = []
    visited: set[str] = set()

    def _label(fn: ForestNode) -> str:
        node = fn.node
        marker = "" if node.is_published else " (draft)"
        suffix = f"  [{node.id[:8]}]" if show_ids else ""
        return f"[{node.type.value}] {node.title(locale)}{marker}{suffix}"

    def _render(fn: ForestNode, prefix: str, is_last: bool, is_root: bool) -> None:
        if fn.id in visited:
            return
        visited.add(fn.id)

        if is_root:
            lines.append(_label(fn))
            child_prefix = ""
        else:
            connector = "└── " if is_last else "├── "
            lines.append(f"{prefix}{connector}{_label(fn)}")
            child_prefix = prefix + ("    " if is_last else "│   ")

        count = len(fn.children)
        for i, child in enumerate(fn.children):
            _render(child, child_prefix, i == count - 1, False)

    for root in forest.roots:
        _render(root, "", True, True)

    if not lines:
        lines.append("(empty)")
    if forest.orphans:
        lines.append(f"! {len(forest.orphans)} orphaned node(s) not shown")
    if forest.unreachable:
        lines.append(f"! {len(forest.unreachable)} node(s) in a parent cycle not shown")
    return "\n".join(lines)


def render_positions(titles: dict[str, str], positions: dict[str, Position]) -> str:
    """One ``x, y  title`` line per node, in the order of *titles*."""
    return "\n".join(
        f"{positions[nid].x:8.1f} {positions[nid].y:8.1f}  {title}"
        for nid, title in titles.items()
        if nid in positions
    )
