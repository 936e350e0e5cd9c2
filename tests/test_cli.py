"""Tests for the ebad CLI (lesson, node, rel, tree, bulk, layout, search)."""

import json

import pytest
from typer.testing import CliRunner

from ebad.db import get_connection, init_db
from ebad.db.nodes import get_node
from ebad_cli.context import CliContext, load_context, save_context
from ebad_cli.main import app

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Point the DB and the CLI context at a fresh temporary workspace."""
    monkeypatch.setattr("ebad.config.settings.workspace_dir", tmp_path)
    return tmp_path


@pytest.fixture
def active_lesson(workspace):
    save_context(CliContext(active_lesson_id=1))
    return 1


def _add(*args: str) -> str:
    """Run ``node add`` and return the new node's ID."""
    result = runner.invoke(app, ["node", "add", *args])
    assert result.exit_code == 0, result.output
    return result.output.split()[2]


def _fetch(node_id: str):
    conn = get_connection()
    init_db(conn)
    try:
        return get_node(conn, node_id)
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

class TestContext:
    def test_defaults_when_missing(self, workspace):
        ctx = load_context()
        assert ctx.active_lesson_id is None
        assert ctx.locale == "en"

    def test_corrupt_file(self, workspace):
        path = workspace / ".ebad_cli"
        path.mkdir()
        (path / "context.json").write_text("{not json", encoding="utf-8")
        assert load_context().active_lesson_id is None

    def test_lesson_use_and_locale(self, workspace):
        assert runner.invoke(app, ["lesson", "use", "3"]).exit_code == 0
        assert runner.invoke(app, ["lesson", "locale", "ar"]).exit_code == 0
        ctx = load_context()
        assert (ctx.active_lesson_id, ctx.locale) == (3, "ar")

    def test_unknown_locale(self, workspace):
        result = runner.invoke(app, ["lesson", "locale", "fr"])
        assert result.exit_code == 1

    def test_no_active_lesson(self, workspace):
        result = runner.invoke(app, ["tree", "show"])
        assert result.exit_code == 1
        assert "No lesson selected" in result.output


# ---------------------------------------------------------------------------
# db / lesson status
# ---------------------------------------------------------------------------

def test_db_init(workspace):
    result = runner.invoke(app, ["db", "init"])
    assert result.exit_code == 0
    assert (workspace / "mindmap.db").exists()


def test_lesson_status(active_lesson):
    root = _add("--title-ar", "جذر", "--title-en", "Root", "--type", "ROOT", "--published")
    _add("--title-ar", "فرع", "--title-en", "Branch", "--parent", root)
    result = runner.invoke(app, ["lesson", "status"])
    assert result.exit_code == 0
    assert "Lesson 1: 2 node(s), 1 published, 0 relationship(s)" in result.output


# ---------------------------------------------------------------------------
# node
# ---------------------------------------------------------------------------

class TestNodeCommands:
    def test_add_child_inherits_lesson(self, workspace):
        root = _add("--title-ar", "جذر", "--title-en", "Root", "--lesson", "5")
        child = _add("--title-ar", "فرع", "--title-en", "Branch", "--parent", root)
        node = _fetch(child)
        assert node.lesson_id == 5
        assert node.level == 1

    def test_add_invalid_color(self, active_lesson):
        result = runner.invoke(
            app, ["node", "add", "--title-ar", "أ", "--title-en", "A", "--color", "blue"]
        )
        assert result.exit_code == 1
        assert "Error (Validation)" in result.output

    def test_show(self, active_lesson):
        root = _add("--title-ar", "جذر", "--title-en", "Root")
        _add("--title-ar", "فرع", "--title-en", "Branch", "--parent", root)
        result = runner.invoke(app, ["node", "show", root])
        assert result.exit_code == 0
        assert "Root  [TOPIC]" in result.output
        assert "- Branch" in result.output

    def test_show_missing(self, active_lesson):
        result = runner.invoke(app, ["node", "show", "ghost"])
        assert result.exit_code == 1
        assert "Error (NotFound)" in result.output

    def test_edit(self, active_lesson):
        node_id = _add("--title-ar", "جذر", "--title-en", "Root")
        result = runner.invoke(app, ["node", "edit", node_id, "--title-en", "Seerah"])
        assert result.exit_code == 0
        assert _fetch(node_id).title_en == "Seerah"

    def test_move_and_cycle(self, active_lesson):
        a = _add("--title-ar", "أ", "--title-en", "A")
        b = _add("--title-ar", "ب", "--title-en", "B")
        result = runner.invoke(app, ["node", "move", b, "--parent", a])
        assert result.exit_code == 0
        assert _fetch(b).parent_id == a

        result = runner.invoke(app, ["node", "move", a, "--parent", b])
        assert result.exit_code == 1
        assert "Error (CycleRejected)" in result.output
        assert _fetch(a).parent_id is None

    def test_rm_confirm_declined(self, active_lesson):
        node_id = _add("--title-ar", "أ", "--title-en", "A")
        result = runner.invoke(app, ["node", "rm", node_id], input="n\n")
        assert result.exit_code == 1
        assert "Delete 1 node(s) and 0 relationship(s)?" in result.output
        assert _fetch(node_id) is not None

    def test_rm_yes(self, active_lesson):
        root = _add("--title-ar", "أ", "--title-en", "A")
        child = _add("--title-ar", "ب", "--title-en", "B", "--parent", root)
        result = runner.invoke(app, ["node", "rm", root, "--yes"])
        assert result.exit_code == 0
        assert "Deleted 2 node(s)" in result.output
        assert _fetch(child) is None

    def test_publish_unpublish(self, active_lesson):
        node_id = _add("--title-ar", "أ", "--title-en", "A")
        result = runner.invoke(app, ["node", "publish", node_id, "ghost"])
        assert result.exit_code == 0
        assert "Published 1 node(s)" in result.output
        assert "not found: ghost" in result.output
        assert _fetch(node_id).is_published

        runner.invoke(app, ["node", "unpublish", node_id])
        assert not _fetch(node_id).is_published


# ---------------------------------------------------------------------------
# rel
# ---------------------------------------------------------------------------

class TestRelCommands:
    def test_add_list_rm(self, active_lesson):
        a = _add("--title-ar", "أ", "--title-en", "A")
        b = _add("--title-ar", "ب", "--title-en", "B")
        result = runner.invoke(
            app, ["rel", "add", a, b, "--type", "PREREQUISITE", "--label-en", "before", "--dashed"]
        )
        assert result.exit_code == 0
        rel_id = result.output.strip().rsplit("(", 1)[1].rstrip(")")

        listing = runner.invoke(app, ["rel", "list"])
        assert "PREREQUISITE" in listing.output
        assert "before" in listing.output

        duplicate = runner.invoke(app, ["rel", "add", a, b])
        assert duplicate.exit_code == 1
        assert "Error (Conflict)" in duplicate.output

        assert runner.invoke(app, ["rel", "rm", rel_id]).exit_code == 0
        assert "No relationships." in runner.invoke(app, ["rel", "list"]).output

    def test_rm_hierarchy_edge_refused(self, active_lesson):
        root = _add("--title-ar", "أ", "--title-en", "A")
        child = _add("--title-ar", "ب", "--title-en", "B", "--parent", root)
        result = runner.invoke(app, ["rel", "rm", f"parent-{root}-{child}"])
        assert result.exit_code == 1
        assert "Error (Forbidden)" in result.output


# ---------------------------------------------------------------------------
# tree / bulk / layout / search
# ---------------------------------------------------------------------------

class TestTreeShow:
    def test_ascii_tree(self, active_lesson):
        root = _add("--title-ar", "العلوم", "--title-en", "Knowledge", "--type", "ROOT")
        aqeedah = _add("--title-ar", "العقيدة", "--title-en", "Aqeedah", "--parent", root)
        _add("--title-ar", "التوحيد", "--title-en", "Tawheed", "--parent", aqeedah)
        _add("--title-ar", "الفقه", "--title-en", "Fiqh", "--parent", root)

        result = runner.invoke(app, ["tree", "show"])
        assert result.exit_code == 0
        assert "[ROOT] Knowledge (draft)" in result.output
        assert "├── [TOPIC] Aqeedah" in result.output
        assert "│   └── [TOPIC] Tawheed" in result.output
        assert "└── [TOPIC] Fiqh" in result.output
        assert "4 node(s), 1 root(s), max depth 2" in result.output

    def test_arabic_locale(self, active_lesson):
        _add("--title-ar", "العلوم", "--title-en", "Knowledge")
        runner.invoke(app, ["lesson", "locale", "ar"])
        assert "العلوم" in runner.invoke(app, ["tree", "show"]).output

    def test_published_only(self, active_lesson):
        _add("--title-ar", "أ", "--title-en", "Draft root")
        result = runner.invoke(app, ["tree", "show", "--published"])
        assert "(empty)" in result.output


class TestBulkCommand:
    def test_export_json(self, active_lesson, workspace):
        node_id = _add("--title-ar", "أ", "--title-en", "A")
        out = workspace / "export.json"
        result = runner.invoke(app, ["bulk", "export", node_id, "--output", str(out)])
        assert result.exit_code == 0
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["count"] == 1
        assert data["data"][0]["titleAr"] == "أ"

    def test_delete_dry_run(self, active_lesson):
        root = _add("--title-ar", "أ", "--title-en", "A")
        _add("--title-ar", "ب", "--title-en", "B", "--parent", root)
        result = runner.invoke(app, ["bulk", "delete", root, "--dry-run"])
        assert "[bulk] delete: would affect 2 node(s)" in result.output
        assert _fetch(root) is not None

    def test_unknown_operation(self, active_lesson):
        result = runner.invoke(app, ["bulk", "archive", "x"])
        assert result.exit_code == 1
        assert "Error (Validation)" in result.output


def test_layout(active_lesson):
    _add("--title-ar", "أ", "--title-en", "Center")
    result = runner.invoke(app, ["layout"])
    assert result.exit_code == 0
    assert "400.0" in result.output
    assert "300.0" in result.output
    assert "Center" in result.output


def test_search(active_lesson):
    _add("--title-ar", "غزوة بدر", "--title-en", "Battle of Badr", "--type", "BATTLE")
    result = runner.invoke(app, ["search", "badr"])
    assert result.exit_code == 0
    assert "[BATTLE]  Battle of Badr" in result.output
    assert "No results" in runner.invoke(app, ["search", "uhud"]).output
