"""Tests for the Flask REST API over a workspace."""

import io
import json

import pytest

from kpitree.codec.json_codec import serialize
from kpitree.server.app import create_app
from kpitree.tree.store import ROOT_SENTINEL
from kpitree.workspace import MemoryBlobStore, Workspace

# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def workspace(forest):
    """Workspace whose active tab is the sample forest."""
    ws = Workspace(MemoryBlobStore())
    ws.new_tab("Sample", forest)
    return ws


@pytest.fixture
def app(workspace):
    app = create_app(workspace, {})
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


def _tree(client) -> dict:
    return client.get("/api/tree").get_json()


def _ids(nodes: list) -> list:
    ids = []
    for node in nodes:
        ids.append(node["id"])
        ids.extend(_ids(node.get("children", [])))
    return ids


# ─────────────────────────────────────────────────────────────────────────────
# App Factory
# ─────────────────────────────────────────────────────────────────────────────


class TestAppFactory:
    def test_create_app_returns_flask_instance(self, workspace):
        from flask import Flask

        assert isinstance(create_app(workspace), Flask)

    def test_cors_headers(self, client):
        resp = client.get("/api/tree", headers={"Origin": "http://localhost:5173"})
        assert resp.headers.get("Access-Control-Allow-Origin") in ("*", "http://localhost:5173")


# ─────────────────────────────────────────────────────────────────────────────
# Tabs
# ─────────────────────────────────────────────────────────────────────────────


class TestTabs:
    def test_list_tabs(self, client, workspace):
        data = client.get("/api/tabs").get_json()
        assert data["activeTabId"] == workspace.active_tab.id
        assert [t["id"] for t in data["tabs"]][:4] == [
            "consolidated",
            "financial",
            "operational",
            "buma",
        ]
        active = [t for t in data["tabs"] if t["active"]]
        assert [t["name"] for t in active] == ["Sample"]

    def test_create_tab(self, client):
        resp = client.post("/api/tabs", json={"name": "Blank"})
        assert resp.status_code == 200
        assert _tree(client)["tabId"] == resp.get_json()["tab_id"]
        assert _tree(client)["count"] == 0

    def test_create_tab_requires_name(self, client):
        assert client.post("/api/tabs", json={}).status_code == 400

    def test_activate(self, client):
        resp = client.post("/api/tabs/buma/activate")
        assert resp.status_code == 200
        assert _tree(client)["nodes"][0]["id"] == "ebitda-buma"

    def test_activate_unknown(self, client):
        resp = client.post("/api/tabs/nope/activate")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Tab not found: nope"

    def test_rename_preset_refused(self, client):
        resp = client.post("/api/tabs/financial/rename", json={"name": "Money"})
        assert resp.status_code == 400

    def test_rename_custom(self, client, workspace):
        tab_id = workspace.active_tab.id
        resp = client.post(f"/api/tabs/{tab_id}/rename", json={"name": "Plan B"})
        assert resp.status_code == 200
        assert workspace.active_tab.name == "Plan B"

    def test_duplicate(self, client, workspace):
        tab_id = workspace.active_tab.id
        resp = client.post(f"/api/tabs/{tab_id}/duplicate")
        assert resp.status_code == 200
        assert workspace.active_tab.name == "Sample (Copy)"

    def test_close_preset_refused(self, client):
        assert client.delete("/api/tabs/consolidated").status_code == 400

    def test_close_custom(self, client, workspace):
        tab_id = workspace.active_tab.id
        resp = client.delete(f"/api/tabs/{tab_id}")
        assert resp.status_code == 200
        assert resp.get_json()["activeTabId"] == "buma"

    def test_view_state(self, client, workspace):
        tab_id = workspace.active_tab.id
        resp = client.post(
            f"/api/tabs/{tab_id}/view",
            json={"expandedNodes": ["ebitda-root"], "searchTerm": "fuel", "showESGOnly": True},
        )
        assert resp.status_code == 200
        tab = workspace.active_tab
        assert tab.expanded_nodes == {"ebitda-root"}
        assert tab.search_term == "fuel"
        assert tab.show_esg_only is True


# ─────────────────────────────────────────────────────────────────────────────
# Tree queries
# ─────────────────────────────────────────────────────────────────────────────


class TestQueries:
    def test_tree(self, client):
        data = _tree(client)
        assert data["count"] == 13
        assert data["esg"] == {"E": 2, "S": 1, "G": 0}
        assert data["scopes"] == {"1": 2, "2": 0, "3": 0}
        assert data["hasUnsavedChanges"] is False
        assert data["moveError"] is None
        assert data["nodes"][0]["inferredCategory"] == "root"

    def test_inferred_category_on_children(self, client):
        cash_cost = _tree(client)["nodes"][0]["children"][1]
        assert cash_cost["id"] == "cash-cost"
        assert cash_cost["inferredCategory"] == "cost"

    def test_node_list_starts_with_root_sentinel(self, client):
        nodes = client.get("/api/nodes").get_json()
        assert nodes[0]["id"] == ROOT_SENTINEL
        assert nodes[0]["name"] == "Root Level"
        fuel = [n for n in nodes if n["id"] == "fuel-cost"][0]
        assert fuel["path"] == "EBITDA > Cash Cost > Fuel Cost"
        assert fuel["hasChildren"] is True

    def test_search(self, client):
        data = client.get("/api/search?q=diesel").get_json()
        assert data["matchingIds"] == ["diesel-use"]
        assert data["ancestorIds"] == ["cash-cost", "ebitda-root", "fuel-cost"]

    def test_search_empty_query(self, client):
        data = client.get("/api/search?q=").get_json()
        assert data == {"matchingIds": [], "ancestorIds": []}

    def test_validate_move(self, client):
        resp = client.get("/api/move/validate?node_id=coal-sales&target_id=cash-cost")
        assert resp.get_json()["valid"] is False
        resp = client.get("/api/move/validate?node_id=capex")
        assert resp.get_json() == {"valid": True}

    def test_validate_move_requires_node(self, client):
        assert client.get("/api/move/validate").status_code == 400


# ─────────────────────────────────────────────────────────────────────────────
# Tree mutations
# ─────────────────────────────────────────────────────────────────────────────


class TestMutations:
    def test_add_node(self, client):
        resp = client.post(
            "/api/nodes/add", json={"parent_id": "capex", "name": "Sustaining", "unit": "$M"}
        )
        assert resp.status_code == 200
        new_id = resp.get_json()["node_id"]
        capex = _tree(client)["nodes"][0]["children"][2]
        assert capex["children"][0]["id"] == new_id
        assert capex["children"][0]["category"] == "metric"

    def test_add_top_level_node(self, client):
        resp = client.post("/api/nodes/add", json={"name": "Loose"})
        assert resp.status_code == 200
        assert _tree(client)["nodes"][-1]["name"] == "Loose"

    def test_add_node_unknown_parent(self, client):
        resp = client.post("/api/nodes/add", json={"parent_id": "nope", "name": "X"})
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Node not found: nope"

    def test_add_node_requires_name(self, client):
        resp = client.post("/api/nodes/add", json={"parent_id": "capex"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "name required"

    def test_add_node_rejects_bad_esg(self, client):
        resp = client.post("/api/nodes/add", json={"name": "X", "esg": "Q"})
        assert resp.status_code == 400
        assert resp.get_json()["error"].startswith("Invalid node data")

    def test_add_sibling_before(self, client):
        resp = client.post(
            "/api/nodes/sibling",
            json={"anchor_id": "capex", "position": "before", "name": "Royalties"},
        )
        assert resp.status_code == 200
        names = [c["name"] for c in _tree(client)["nodes"][0]["children"]]
        assert names.index("Royalties") == names.index("Capex") - 1

    def test_add_sibling_bad_position(self, client):
        resp = client.post(
            "/api/nodes/sibling", json={"anchor_id": "capex", "position": "inside", "name": "X"}
        )
        assert resp.status_code == 400

    def test_edit_node(self, client):
        resp = client.post(
            "/api/nodes/capex/edit", json={"name": "Growth Capex", "esg": "G", "scope": 3}
        )
        assert resp.status_code == 200
        capex = _tree(client)["nodes"][0]["children"][2]
        assert (capex["name"], capex["esg"], capex["scope"]) == ("Growth Capex", "G", 3)

    def test_delete_node(self, client):
        assert client.delete("/api/nodes/cash-cost").status_code == 200
        data = _tree(client)
        assert "fuel-cost" not in _ids(data["nodes"])
        assert data["count"] == 9
        assert data["hasUnsavedChanges"] is True

    def test_delete_unknown(self, client):
        assert client.delete("/api/nodes/nope").status_code == 404

    def test_duplicate_node(self, client):
        resp = client.post("/api/nodes/fuel-cost/duplicate")
        assert resp.status_code == 200
        cash_cost = _tree(client)["nodes"][0]["children"][1]
        assert [c["name"] for c in cash_cost["children"]] == [
            "Employee Cost",
            "Fuel Cost",
            "Fuel Cost (copy)",
        ]

    def test_toggle_marker(self, client):
        resp = client.post("/api/nodes/capex/marker", json={"marker": "flag-red"})
        assert resp.get_json()["markers"] == ["flag-red"]
        resp = client.post("/api/nodes/capex/marker", json={"marker": "flag-red"})
        assert resp.get_json()["markers"] == []

    def test_marker_required(self, client):
        assert client.post("/api/nodes/capex/marker", json={}).status_code == 400

    def test_move(self, client):
        resp = client.post("/api/move", json={"node_id": "fuel-cost", "target_id": "ob-removal"})
        assert resp.status_code == 200
        production = _tree(client)["nodes"][0]["children"][0]
        assert production["children"][1]["children"][0]["id"] == "fuel-cost"

    def test_rejected_move_sets_move_error(self, client):
        resp = client.post("/api/move", json={"node_id": "coal-sales", "target_id": "cash-cost"})
        assert resp.status_code == 400
        reason = resp.get_json()["error"]
        assert reason == "production items cannot be moved under cost items."
        assert _tree(client)["moveError"] == reason

    def test_reset(self, client):
        client.delete("/api/nodes/capex")
        resp = client.post("/api/reset")
        assert resp.get_json()["count"] == 13
        assert _tree(client)["hasUnsavedChanges"] is False


# ─────────────────────────────────────────────────────────────────────────────
# Relationships
# ─────────────────────────────────────────────────────────────────────────────


class TestLinks:
    def _create(self, client, label="Drives"):
        return client.post(
            "/api/links",
            json={"source_id": "fuel-cost", "target_id": "ghg-total", "label": label},
        )

    def test_create_and_list(self, client):
        assert self._create(client).status_code == 200
        links = client.get("/api/links").get_json()
        assert links == [
            {
                "source": "fuel-cost",
                "sourceName": "Fuel Cost",
                "target": "ghg-total",
                "targetName": "GHG Emissions",
                "label": "Drives",
                "hidden": False,
            }
        ]

    def test_duplicate_link_rejected(self, client):
        self._create(client)
        assert self._create(client).status_code == 400

    def test_self_link_rejected(self, client):
        resp = client.post("/api/links", json={"source_id": "capex", "target_id": "capex"})
        assert resp.status_code == 400

    def test_unknown_source(self, client):
        resp = client.post("/api/links", json={"source_id": "nope", "target_id": "capex"})
        assert resp.status_code == 404

    def test_relabel(self, client):
        self._create(client)
        resp = client.post(
            "/api/links",
            json={
                "action": "label",
                "source_id": "fuel-cost",
                "target_id": "ghg-total",
                "label": "Emits",
            },
        )
        assert resp.status_code == 200
        assert client.get("/api/links").get_json()[0]["label"] == "Emits"

    def test_visibility(self, client):
        self._create(client)
        payload = {"action": "visibility", "source_id": "fuel-cost", "target_id": "ghg-total"}
        assert client.post("/api/links", json=payload).get_json()["hidden"] is True
        assert client.get("/api/links").get_json()[0]["hidden"] is True

    def test_delete(self, client):
        self._create(client)
        payload = {"action": "delete", "source_id": "fuel-cost", "target_id": "ghg-total"}
        assert client.post("/api/links", json=payload).status_code == 200
        assert client.get("/api/links").get_json() == []

    def test_unknown_action(self, client):
        payload = {"action": "teleport", "source_id": "a", "target_id": "b"}
        assert client.post("/api/links", json=payload).status_code == 400

    def test_ids_required(self, client):
        assert client.post("/api/links", json={"source_id": "a"}).status_code == 400


# ─────────────────────────────────────────────────────────────────────────────
# Import / export
# ─────────────────────────────────────────────────────────────────────────────


class TestImportExport:
    def test_import_json_upload(self, client, forest):
        data = {"file": (io.BytesIO(serialize(forest).encode("utf-8")), "uploaded.json")}
        resp = client.post("/api/import", data=data, content_type="multipart/form-data")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["name"] == "uploaded"
        assert body["count"] == 13
        assert _tree(client)["tabId"] == body["tab_id"]

    def test_import_bad_json(self, client):
        data = {"file": (io.BytesIO(b"{}"), "bad.json")}
        resp = client.post("/api/import", data=data, content_type="multipart/form-data")
        assert resp.status_code == 400
        assert "expected an array" in resp.get_json()["error"]

    def test_import_requires_file(self, client):
        resp = client.post("/api/import", data={}, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_export_json(self, client):
        resp = client.get("/api/export?format=json")
        assert resp.status_code == 200
        assert "Sample.json" in resp.headers["Content-Disposition"]
        assert json.loads(resp.data)[0]["id"] == "ebitda-root"

    def test_export_xmind(self, client):
        import zipfile

        resp = client.get("/api/export?format=xmind")
        assert resp.status_code == 200
        assert resp.mimetype == "application/zip"
        with zipfile.ZipFile(io.BytesIO(resp.data)) as archive:
            assert "content.json" in archive.namelist()

    def test_export_unknown_format(self, client):
        assert client.get("/api/export?format=pdf").status_code == 400
