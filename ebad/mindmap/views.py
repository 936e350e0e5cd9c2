"""View models for the two admin editors and the student viewer.

Both are projections of the same ``{nodes, relationships}`` payload:

* :class:`TreeEditorState` is the admin tree editor's state, kept as a flat
  cache keyed by node ID and patched from mutation responses
  (``deletedNodeIds``, created/updated nodes) instead of rewriting nested
  structures.
* :func:`build_graph_view` turns the payload into positioned graph nodes and
  edges.  Parent-child edges are derived, tagged ``EdgeKind.HIERARCHY`` and can
  never be sent to the relationship delete path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from ebad.db.models import Node, Relationship, TreePayload
from ebad.db.relationships import hierarchy_edge_id
from ebad.errors import ForbiddenError, NotFoundError
from ebad.mindmap.layout import Position, radial_layout

HIERARCHY_EDGE_COLOR = "#94a3b8"
HIERARCHY_EDGE_WIDTH = 2


# ---------------------------------------------------------------------------
# Admin tree editor
# ---------------------------------------------------------------------------

@dataclass
class TreeRow:
    node: Node
    depth: int
    has_children: bool
    expanded: bool
    selected: bool


class TreeEditorState:
    """Expand/collapse, selection and drag-drop state of the tree editor."""

    def __init__(self) -> None:
        self.nodes: dict[str, Node] = {}
        self.expanded: set[str] = set()
        self.selected: set[str] = set()
        self.version = 0

    # -- loading ---------------------------------------------------------

    def load(self, payload: TreePayload) -> None:
        """Replace the cache with a fresh payload; everything starts expanded."""
        self.nodes = {n.id: n for n in payload.nodes}
        self.expanded = set(self.nodes)
        self.selected &= set(self.nodes)
        self._bump()

    def _bump(self) -> None:
        self.version += 1

    # -- structure -------------------------------------------------------

    def children_of(self, parent_id: Optional[str]) -> list[Node]:
        """Children in display order; ``None`` gives the roots."""
        kids = [n for n in self.nodes.values() if n.parent_id == parent_id]
        return sorted(kids, key=lambda n: (n.order, n.created_at, n.id))

    def descendant_ids(self, node_id: str) -> set[str]:
        found: set[str] = set()
        stack = [node_id]
        while stack:
            current = stack.pop()
            for child in self.children_of(current):
                if child.id not in found:
                    found.add(child.id)
                    stack.append(child.id)
        return found

    def rows(self) -> list[TreeRow]:
        """Visible rows, depth-first; collapsed nodes hide their subtree."""
        out: list[TreeRow] = []
        seen: set[str] = set()
        stack = [(n, 0) for n in reversed(self.children_of(None))]
        while stack:
            node, depth = stack.pop()
            if node.id in seen:
                continue
            seen.add(node.id)
            children = self.children_of(node.id)
            expanded = node.id in self.expanded
            out.append(
                TreeRow(
                    node=node,
                    depth=depth,
                    has_children=bool(children),
                    expanded=expanded,
                    selected=node.id in self.selected,
                )
            )
            if expanded:
                stack.extend((c, depth + 1) for c in reversed(children))
        return out

    # -- expand / collapse -------------------------------------------------

    def toggle(self, node_id: str) -> bool:
        """Flip a node's expanded flag; returns the new value."""
        if node_id not in self.nodes:
            raise NotFoundError("Node", node_id)
        if node_id in self.expanded:
            self.expanded.discard(node_id)
        else:
            self.expanded.add(node_id)
        self._bump()
        return node_id in self.expanded

    def collapse_all(self) -> None:
        self.expanded.clear()
        self._bump()

    def expand_all(self) -> None:
        self.expanded = set(self.nodes)
        self._bump()

    # -- selection (bulk mode) ---------------------------------------------

    def toggle_selection(self, node_id: str) -> None:
        if node_id in self.selected:
            self.selected.discard(node_id)
        elif node_id in self.nodes:
            self.selected.add(node_id)
        self._bump()

    def select_all(self) -> None:
        self.selected = set(self.nodes)
        self._bump()

    def clear_selection(self) -> None:
        self.selected.clear()
        self._bump()

    # -- drag and drop -------------------------------------------------------

    def can_drop(self, dragged_id: str, target_id: Optional[str]) -> bool:
        """Whether dropping *dragged_id* onto *target_id* keeps a forest.

        A client-side pre-check only; the server repeats it on reparent.
        """
        if dragged_id not in self.nodes:
            return False
        if target_id is None:
            return True
        if target_id == dragged_id or target_id not in self.nodes:
            return False
        return target_id not in self.descendant_ids(dragged_id)

    # -- patching from server responses -------------------------------------

    def apply_created(self, node: Node) -> None:
        self.nodes[node.id] = node
        self.expanded.add(node.id)
        if node.parent_id:
            self.expanded.add(node.parent_id)
        self._bump()

    def apply_updated(self, node: Node) -> None:
        self.nodes[node.id] = node
        self._bump()

    def apply_reparented(self, node: Node) -> None:
        """Store the moved node and re-derive its descendants' levels."""
        self.nodes[node.id] = node
        stack = [node]
        seen = {node.id}
        while stack:
            parent = stack.pop()
            for child in self.children_of(parent.id):
                if child.id in seen:
                    continue
                seen.add(child.id)
                child.level = parent.level + 1
                stack.append(child)
        self._bump()

    def apply_deleted(self, node_ids: Iterable[str]) -> None:
        for nid in node_ids:
            self.nodes.pop(nid, None)
            self.expanded.discard(nid)
            self.selected.discard(nid)
        self._bump()


# ---------------------------------------------------------------------------
# Graph editor / viewer
# ---------------------------------------------------------------------------

class EdgeKind(str, Enum):
    HIERARCHY = "hierarchy"
    RELATIONSHIP = "relationship"


@dataclass
class GraphNode:
    node: Node
    position: Position
    draggable: bool

    @property
    def id(self) -> str:
        return self.node.id

    def to_dict(self, locale: str = "en") -> dict[str, Any]:
        return {
            "id": self.node.id,
            "type": "mindMapNode",
            "position": self.position.to_dict(),
            "draggable": self.draggable,
            "label": self.node.title(locale),
            "data": self.node.to_dict(),
        }


@dataclass
class GraphEdge:
    id: str
    source: str
    target: str
    kind: EdgeKind
    color: str
    width: int
    dashed: bool = False
    label: Optional[str] = None

    @property
    def deletable(self) -> bool:
        return self.kind is EdgeKind.RELATIONSHIP

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "kind": self.kind.value,
            "color": self.color,
            "width": self.width,
            "dashed": self.dashed,
            "label": self.label,
            "deletable": self.deletable,
        }


@dataclass
class GraphView:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    locale: str = "en"

    def edge(self, edge_id: str) -> GraphEdge:
        for e in self.edges:
            if e.id == edge_id:
                return e
        raise NotFoundError("Edge", edge_id)

    def relationship_id_for(self, edge_id: str) -> str:
        """Map a graph edge to the relationship row a delete should target.

        Raises:
            ForbiddenError: The edge is a derived parent-child edge.
        """
        edge = self.edge(edge_id)
        if edge.kind is EdgeKind.HIERARCHY:
            raise ForbiddenError("Cannot delete hierarchical relationship")
        return edge.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict(self.locale) for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


def build_graph_view(
    nodes: Iterable[Node],
    relationships: Iterable[Relationship],
    locale: str = "en",
    editable: bool = True,
    center: Optional[tuple[float, float]] = None,
    radius_increment: Optional[float] = None,
    positions: Optional[dict[str, Position]] = None,
) -> GraphView:
    """Position every node and derive hierarchy plus relationship edges.

    *positions* overrides the layout computed from *nodes* alone.  Edges whose
    endpoints are not both in *nodes* are left out.
    """
    node_list = list(nodes)
    if positions is None:
        positions = radial_layout(
            node_list, center=center, radius_increment=radius_increment
        )
    present = {n.id for n in node_list}

    view = GraphView(locale=locale)
    view.nodes = [
        GraphNode(node=n, position=positions[n.id], draggable=editable)
        for n in node_list
    ]
    for n in node_list:
        if n.parent_id and n.parent_id in present:
            view.edges.append(
                GraphEdge(
                    id=hierarchy_edge_id(n.parent_id, n.id),
                    source=n.parent_id,
                    target=n.id,
                    kind=EdgeKind.HIERARCHY,
                    color=HIERARCHY_EDGE_COLOR,
                    width=HIERARCHY_EDGE_WIDTH,
                )
            )
    for rel in relationships:
        if rel.from_node_id not in present or rel.to_node_id not in present:
            continue
        view.edges.append(
            GraphEdge(
                id=rel.id,
                source=rel.from_node_id,
                target=rel.to_node_id,
                kind=EdgeKind.RELATIONSHIP,
                color=rel.color,
                width=rel.line_width,
                dashed=rel.line_style.value == "dashed",
                label=rel.label(locale),
            )
        )
    return view


def student_graph_view(
    nodes: Iterable[Node],
    relationships: Iterable[Relationship],
    locale: str = "en",
) -> GraphView:
    """Read-only view restricted to published nodes and the edges between them.

    *nodes* must be the lesson's full node set: positions are laid out over
    all of it, exactly as the admin editor does, and only then filtered, so
    a draft sibling does not shift where published nodes are drawn.
    """
    node_list = list(nodes)
    positions = radial_layout(node_list)
    published = [n for n in node_list if n.is_published]
    return build_graph_view(
        published,
        relationships,
        locale=locale,
        editable=False,
        positions=positions,
    )
