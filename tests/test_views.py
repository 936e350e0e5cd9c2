"""Editor view-model tests: tree editor state and graph projections."""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from ebad.db.connection import get_connection
from ebad.db.graph import get_tree
from ebad.db.migrations import init_db
from ebad.db.models import Node
from ebad.db.nodes import create_node, get_node
from ebad.db.relationships import create_relationship
from ebad.errors import ForbiddenError, NotFoundError
from ebad.mindmap.bulk import run_bulk
from ebad.mindmap.mutations import add_child, remove_subtree, reparent
from ebad.mindmap.views import (
    EdgeKind,
    TreeEditorState,
    build_graph_view,
    student_graph_view,
)


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def lesson(conn: sqlite3.Connection) -> dict[str, Node]:
    root = create_node(conn, 1, "العلوم الإسلامية", "Islamic Knowledge", "ROOT")
    aqeedah = add_child(conn, root.id, "العقيدة", "Aqeedah", "CATEGORY")
    tawheed = add_child(conn, aqeedah.id, "التوحيد", "Tawheed")
    fiqh = add_child(conn, root.id, "الفقه", "Fiqh", "CATEGORY")
    return {"root": root, "aqeedah": aqeedah, "tawheed": tawheed, "fiqh": fiqh}


# ---------------------------------------------------------------------------
# Tree editor
# ---------------------------------------------------------------------------

class TestTreeEditorState:
    def test_load_expands_all(self, conn: sqlite3.Connection, lesson: dict[str, Node]) -> None:
        state = TreeEditorState()
        state.load(get_tree(conn, 1))
        rows = state.rows()
        assert [(r.node.title_en, r.depth) for r in rows] == [
            ("Islamic Knowledge", 0),
            ("Aqeedah", 1),
            ("Tawheed", 2),
            ("Fiqh", 1),
        ]
        assert rows[0].has_children and rows[0].expanded

    def test_collapse_hides_subtree(self, conn: sqlite3.Connection, lesson: dict[str, Node]) -> None:
        state = TreeEditorState()
        state.load(get_tree(conn, 1))
        assert state.toggle(lesson["aqeedah"].id) is False
        assert [r.node.title_en for r in state.rows()] == ["Islamic Knowledge", "Aqeedah", "Fiqh"]
        with pytest.raises(NotFoundError):
            state.toggle("ghost")

    def test_can_drop(self, conn: sqlite3.Connection, lesson: dict[str, Node]) -> None:
        state = TreeEditorState()
        state.load(get_tree(conn, 1))
        assert not state.can_drop(lesson["aqeedah"].id, lesson["aqeedah"].id)
        assert not state.can_drop(lesson["aqeedah"].id, lesson["tawheed"].id)
        assert state.can_drop(lesson["tawheed"].id, lesson["fiqh"].id)
        assert state.can_drop(lesson["tawheed"].id, None)

    def test_patch_from_mutations(self, conn: sqlite3.Connection, lesson: dict[str, Node]) -> None:
        state = TreeEditorState()
        state.load(get_tree(conn, 1))
        version = state.version

        state.apply_reparented(reparent(conn, lesson["aqeedah"].id, lesson["fiqh"].id))
        assert state.nodes[lesson["tawheed"].id].level == 3
        assert state.nodes[lesson["tawheed"].id].level == get_node(conn, lesson["tawheed"].id).level

        removed = remove_subtree(conn, lesson["aqeedah"].id)
        state.apply_deleted(removed.deleted_node_ids)
        assert set(state.nodes) == {lesson["root"].id, lesson["fiqh"].id}

        state.apply_created(add_child(conn, lesson["fiqh"].id, "الطهارة", "Taharah"))
        assert [r.node.title_en for r in state.rows()] == ["Islamic Knowledge", "Fiqh", "Taharah"]
        assert state.version > version

    def test_selection(self, conn: sqlite3.Connection, lesson: dict[str, Node]) -> None:
        state = TreeEditorState()
        state.load(get_tree(conn, 1))
        state.toggle_selection(lesson["fiqh"].id)
        state.toggle_selection("ghost")
        assert state.selected == {lesson["fiqh"].id}
        state.select_all()
        assert len(state.selected) == 4
        state.apply_deleted([lesson["fiqh"].id])
        assert lesson["fiqh"].id not in state.selected
        state.clear_selection()
        assert state.selected == set()


# ---------------------------------------------------------------------------
# Graph editor / viewer
# ---------------------------------------------------------------------------

class TestGraphView:
    def test_edges_are_tagged(self, conn: sqlite3.Connection, lesson: dict[str, Node]) -> None:
        rel = create_relationship(
            conn, lesson["tawheed"].id, lesson["fiqh"].id, label_en="grounds", label_ar="يؤسس"
        )
        payload = get_tree(conn, 1)
        view = build_graph_view(payload.nodes, payload.relationships, locale="ar")

        hierarchy = [e for e in view.edges if e.kind is EdgeKind.HIERARCHY]
        assert len(hierarchy) == 3
        assert {e.id for e in hierarchy} == {
            f"parent-{lesson['root'].id}-{lesson['aqeedah'].id}",
            f"parent-{lesson['aqeedah'].id}-{lesson['tawheed'].id}",
            f"parent-{lesson['root'].id}-{lesson['fiqh'].id}",
        }
        relationship = view.edge(rel.id)
        assert relationship.kind is EdgeKind.RELATIONSHIP
        assert relationship.label == "يؤسس"
        assert relationship.width == 3

    def test_hierarchy_edge_never_maps_to_delete(self, conn: sqlite3.Connection, lesson: dict[str, Node]) -> None:
        rel = create_relationship(conn, lesson["tawheed"].id, lesson["fiqh"].id)
        payload = get_tree(conn, 1)
        view = build_graph_view(payload.nodes, payload.relationships)
        hierarchy = next(e for e in view.edges if e.kind is EdgeKind.HIERARCHY)
        with pytest.raises(ForbiddenError):
            view.relationship_id_for(hierarchy.id)
        assert view.relationship_id_for(rel.id) == rel.id

    def test_positions_from_layout(self, conn: sqlite3.Connection, lesson: dict[str, Node]) -> None:
        payload = get_tree(conn, 1)
        data = build_graph_view(payload.nodes, payload.relationships).to_dict()
        root = next(n for n in data["nodes"] if n["id"] == lesson["root"].id)
        assert root["position"] == {"x": 400, "y": 300}
        assert root["draggable"] is True
        assert root["label"] == "Islamic Knowledge"

    def test_student_view_published_only(self, conn: sqlite3.Connection, lesson: dict[str, Node]) -> None:
        create_relationship(conn, lesson["tawheed"].id, lesson["fiqh"].id)
        run_bulk(conn, "publish", [lesson["root"].id, lesson["fiqh"].id])
        payload = get_tree(conn, 1)

        view = student_graph_view(payload.nodes, payload.relationships)
        assert {n.id for n in view.nodes} == {lesson["root"].id, lesson["fiqh"].id}
        assert all(not n.draggable for n in view.nodes)
        assert [e.kind for e in view.edges] == [EdgeKind.HIERARCHY]

    def test_student_positions_match_editor(self, conn: sqlite3.Connection) -> None:
        root = create_node(conn, 1, "جذر", "Root", "ROOT", is_published=True)
        add_child(conn, root.id, "مسودة", "Draft")
        published = add_child(conn, root.id, "منشور", "Published", is_published=True)
        payload = get_tree(conn, 1)

        admin = build_graph_view(payload.nodes, payload.relationships)
        student = student_graph_view(payload.nodes, payload.relationships)

        admin_pos = next(n.position for n in admin.nodes if n.id == published.id)
        student_pos = next(n.position for n in student.nodes if n.id == published.id)
        assert student_pos == admin_pos
        assert student_pos.x == pytest.approx(200)
        assert len(student.nodes) == 2
