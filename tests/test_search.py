"""Keyword search and filter tests."""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from ebad.db.connection import get_connection
from ebad.db.migrations import init_db
from ebad.db.nodes import create_node, delete_node, update_node
from ebad.db.search import _sanitize_fts_query, search_nodes
from ebad.errors import ValidationError


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    create_node(
        connection,
        1,
        "غزوة بدر",
        "Battle of Badr",
        "BATTLE",
        location="Badr",
        description_en="The first major battle, in Ramadan 2 AH.",
        is_published=True,
    )
    create_node(connection, 1, "صلح الحديبية", "Treaty of Hudaybiyyah", "TREATY", location="Hudaybiyyah")
    create_node(connection, 2, "بدر", "Badr in another lesson", "BATTLE")
    yield connection
    connection.close()


class TestSanitize:
    def test_punctuation_dropped(self) -> None:
        assert _sanitize_fts_query('badr: "battle" (AND) -') == '"badr"* "battle"* "AND"*'

    def test_duplicates_and_short_tokens(self) -> None:
        assert _sanitize_fts_query("a Badr badr") == '"Badr"*'

    def test_nothing_left(self) -> None:
        assert _sanitize_fts_query("? ! -") is None


class TestSearchNodes:
    def test_english_prefix(self, conn: sqlite3.Connection) -> None:
        results = search_nodes(conn, 1, "bat")
        assert [n.title_en for n in results] == ["Battle of Badr"]

    def test_arabic(self, conn: sqlite3.Connection) -> None:
        results = search_nodes(conn, 1, "الحديبية")
        assert [n.title_en for n in results] == ["Treaty of Hudaybiyyah"]

    def test_description_matched(self, conn: sqlite3.Connection) -> None:
        assert [n.title_en for n in search_nodes(conn, 1, "ramadan")] == ["Battle of Badr"]

    def test_scoped_to_lesson(self, conn: sqlite3.Connection) -> None:
        assert all(n.lesson_id == 1 for n in search_nodes(conn, 1, "badr"))

    def test_filters_without_query(self, conn: sqlite3.Connection) -> None:
        assert [n.title_en for n in search_nodes(conn, 1, node_type="TREATY")] == [
            "Treaty of Hudaybiyyah"
        ]
        assert [n.title_en for n in search_nodes(conn, 1, location="Badr")] == ["Battle of Badr"]

    def test_published_only(self, conn: sqlite3.Connection) -> None:
        results = search_nodes(conn, 1, published_only=True)
        assert [n.title_en for n in results] == ["Battle of Badr"]

    def test_only_short_tokens_match_nothing(self, conn: sqlite3.Connection) -> None:
        assert search_nodes(conn, 1, "a b") == []
        assert search_nodes(conn, 1, "?") == []
        assert len(search_nodes(conn, 1, "   ")) == len(search_nodes(conn, 1))

    def test_invalid_type(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ValidationError):
            search_nodes(conn, 1, node_type="PLANET")

    def test_index_follows_edits(self, conn: sqlite3.Connection) -> None:
        node = search_nodes(conn, 1, "treaty")[0]
        update_node(conn, node.id, title_en="Truce of Hudaybiyyah")
        assert search_nodes(conn, 1, "treaty") == []
        assert len(search_nodes(conn, 1, "truce")) == 1
        delete_node(conn, node.id)
        assert search_nodes(conn, 1, "truce") == []
