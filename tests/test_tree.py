"""Tree assembly tests: forest shape, ordering, orphans and cycles."""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from ebad.db.connection import get_connection
from ebad.db.migrations import init_db
from ebad.db.models import Node, NodeShape, NodeType
from ebad.db.nodes import create_node, update_node
from ebad.mindmap.mutations import add_child
from ebad.mindmap.tree import assemble, build_forest


def _node(node_id: str, parent_id: str | None = None, order: int = 0, level: int = 0) -> Node:
    return Node(
        id=node_id,
        lesson_id=1,
        parent_id=parent_id,
        level=level,
        order=order,
        title_ar=node_id,
        title_en=node_id,
        type=NodeType.TOPIC,
        color="#4F46E5",
        shape=NodeShape.CIRCLE,
        is_published=False,
        created_at=0,
        updated_at=0,
    )


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


class TestBuildForest:
    def test_children_sorted_by_order(self) -> None:
        forest = build_forest(
            [_node("r"), _node("b", "r", order=1, level=1), _node("a", "r", order=0, level=1)]
        )
        assert [c.id for c in forest.roots[0].children] == ["a", "b"]

    def test_every_node_appears_once(self) -> None:
        nodes = [
            _node("r1"),
            _node("r2", order=1),
            _node("a", "r1", level=1),
            _node("b", "a", level=2),
            _node("c", "r2", level=1),
        ]
        forest = build_forest(nodes)
        walked = [fn.id for fn, _ in forest.walk()]
        assert sorted(walked) == sorted(n.id for n in nodes)
        assert forest.meta == {"totalNodes": 5, "maxDepth": 2, "rootNodes": 2}

    def test_orphans_reported_and_dropped(self) -> None:
        forest = build_forest([_node("r"), _node("x", "missing", level=1), _node("y", "x", level=2)])
        assert forest.orphans == ["x"]
        assert [fn.id for fn, _ in forest.walk()] == ["r"]
        assert forest.unreachable == []

    def test_cycle_reported_not_looping(self) -> None:
        forest = build_forest([_node("r"), _node("p", "q"), _node("q", "p")])
        assert sorted(forest.unreachable) == ["p", "q"]
        assert [fn.id for fn, _ in forest.walk()] == ["r"]

    def test_to_dict_nests_children(self) -> None:
        forest = build_forest([_node("r"), _node("a", "r", level=1)])
        data = forest.to_dict()
        assert data[0]["id"] == "r"
        assert data[0]["children"][0]["id"] == "a"
        assert data[0]["children"][0]["children"] == []

    def test_find(self) -> None:
        forest = build_forest([_node("r"), _node("a", "r", level=1)])
        assert forest.find("a").node.parent_id == "r"
        assert forest.find("zzz") is None


class TestAssemble:
    def test_admin_and_student_views(self, conn: sqlite3.Connection) -> None:
        root = create_node(conn, 1, "جذر", "Root", "ROOT", is_published=True)
        pub = add_child(conn, root.id, "منشور", "Published", is_published=True)
        add_child(conn, root.id, "مسودة", "Draft")
        create_node(conn, 2, "درس آخر", "Other lesson")

        admin = assemble(conn, 1)
        assert admin.meta["totalNodes"] == 3

        student = assemble(conn, 1, published_only=True)
        assert [c.id for c in student.roots[0].children] == [pub.id]

    def test_unpublished_parent_hides_subtree_for_students(self, conn: sqlite3.Connection) -> None:
        root = create_node(conn, 1, "جذر", "Root", "ROOT")
        child = add_child(conn, root.id, "فرع", "Child", is_published=True)
        student = assemble(conn, 1, published_only=True)
        assert student.roots == []
        assert student.orphans == [child.id]

        update_node(conn, root.id, is_published=True)
        assert assemble(conn, 1, published_only=True).meta["totalNodes"] == 2
