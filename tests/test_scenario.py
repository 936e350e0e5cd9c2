"""End-to-end lesson authoring flow through the HTTP API.

An admin builds a small hierarchy, links two branches, restructures it,
publishes part of it and finally removes a branch; the student endpoints are
checked along the way.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ebad.api.app import create_app
from ebad.db.connection import get_connection
from ebad.db.migrations import init_db

ADMIN = "/admin/mindmap"
STUDENT = "/student/mindmap"


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setattr("ebad.config.settings.workspace_dir", tmp_path)
    conn = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(conn)
    with TestClient(create_app()) as c:
        c.app.state.db = conn
        yield c
    conn.close()


def _post(client, path: str, body: dict, status: int = 201) -> dict:
    resp = client.post(f"{ADMIN}{path}", json=body)
    assert resp.status_code == status, resp.text
    return resp.json()


def test_author_publish_and_remove(client):
    root = _post(client, "/nodes", {
        "lessonId": 1, "titleAr": "العلوم الإسلامية", "titleEn": "Islamic Knowledge", "type": "ROOT",
    })
    aqeedah = _post(client, "/nodes", {
        "lessonId": 1, "parentId": root["id"], "titleAr": "العقيدة", "titleEn": "Aqeedah", "type": "CATEGORY",
    })
    tawheed = _post(client, "/nodes", {
        "lessonId": 1, "parentId": aqeedah["id"], "titleAr": "التوحيد", "titleEn": "Tawheed",
    })
    fiqh = _post(client, "/nodes", {
        "lessonId": 1, "parentId": root["id"], "titleAr": "الفقه", "titleEn": "Fiqh", "type": "CATEGORY",
    })
    assert (root["level"], aqeedah["level"], tawheed["level"]) == (0, 1, 2)
    assert (aqeedah["order"], fiqh["order"]) == (0, 1)

    rel = _post(client, "/relationships", {
        "fromNodeId": tawheed["id"], "toNodeId": fiqh["id"], "type": "PREREQUISITE",
    })

    # The editor graph shows three hierarchy edges and one relationship.
    graph = client.get(f"{ADMIN}/graph", params={"lessonId": 1}).json()
    kinds = sorted(e["kind"] for e in graph["edges"])
    assert kinds == ["hierarchy", "hierarchy", "hierarchy", "relationship"]

    # Move Aqeedah under Fiqh; Tawheed follows one level deeper.
    moved = _post(client, "/reorder", {"nodeId": aqeedah["id"], "newParentId": fiqh["id"]}, 200)
    assert moved["node"]["level"] == 2
    tree = client.get(f"{ADMIN}/tree", params={"lessonId": 1}).json()
    levels = {n["id"]: n["level"] for n in tree["nodes"]}
    assert levels[tawheed["id"]] == 3
    assert tree["meta"]["maxDepth"] == 3

    # Fiqh cannot be moved under its own descendant.
    resp = client.post(f"{ADMIN}/reorder", json={"nodeId": fiqh["id"], "newParentId": tawheed["id"]})
    assert resp.status_code == 400
    assert resp.json()["kind"] == "CycleRejected"

    # Students see nothing until something is published.
    assert client.get(f"{STUDENT}/tree", params={"lessonId": 1}).json()["tree"] == []
    _post(client, "/bulk", {"operation": "publish", "nodeIds": [root["id"], fiqh["id"]]}, 200)
    student = client.get(f"{STUDENT}/tree", params={"lessonId": 1}).json()
    assert student["meta"]["totalNodes"] == 2
    assert student["tree"][0]["children"][0]["titleEn"] == "Fiqh"
    assert client.get(f"{STUDENT}/relationships", params={"lessonId": 1}).json() == []

    # Removing Fiqh takes its subtree and the relationship with it.
    removed = client.delete(f"{ADMIN}/nodes/{fiqh['id']}").json()
    assert set(removed["deletedNodeIds"]) == {fiqh["id"], aqeedah["id"], tawheed["id"]}
    assert removed["deletedRelationshipIds"] == [rel["id"]]

    tree = client.get(f"{ADMIN}/tree", params={"lessonId": 1}).json()
    assert [n["id"] for n in tree["nodes"]] == [root["id"]]
    assert tree["relationships"] == []
