"""kpitree.server.app - Flask app factory and REST API routes.

This is a THIN REST wrapper: all logic delegates to the handlers in
``kpitree.server.api``, which operate on a Workspace.

State pattern:
    _state = {"workspace": workspace, "config": config}
"""

from __future__ import annotations

import io
from typing import Any

from flask import Flask, jsonify, request, send_file
from flask_cors import CORS

from kpitree.codec.errors import FormatError
from kpitree.codec.files import SUPPORTED_SUFFIXES, export_bytes
from kpitree.server.api import (
    _close_tab,
    _create_tab,
    _duplicate_tab,
    _get_node_list,
    _get_tree,
    _list_links,
    _list_tabs,
    _mutate_add_node,
    _mutate_add_sibling,
    _mutate_create_link,
    _mutate_delete_link,
    _mutate_delete_node,
    _mutate_duplicate_node,
    _mutate_edit_node,
    _mutate_move_node,
    _mutate_toggle_marker,
    _mutate_update_link_label,
    _rename_tab,
    _reset_changes,
    _search,
    _switch_tab,
    _toggle_link_visibility,
    _update_view_state,
    _validate_move,
)
from kpitree.workspace.session import Workspace

_NOT_FOUND_PREFIXES = ("Node not found", "Tab not found")


def _status(result: dict[str, Any]) -> int:
    """HTTP status for a handler result: 200, 404 for lookup misses, else 400."""
    if result.get("success"):
        return 200
    if str(result.get("error", "")).startswith(_NOT_FOUND_PREFIXES):
        return 404
    return 400


def create_app(workspace: Workspace, config: dict[str, Any] | None = None) -> Flask:
    """Create the Flask application with REST API routes.

    Args:
        workspace: The workspace to serve.
        config: kpitree configuration dict.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)
    CORS(app)

    _state: dict[str, Any] = {
        "workspace": workspace,
        "config": config if config is not None else workspace.config,
    }

    def _reply(result: dict[str, Any]):
        return jsonify(result), _status(result)

    # ─────────────────────────────────────────────────────────────────
    # Tabs
    # ─────────────────────────────────────────────────────────────────

    @app.route("/api/tabs")
    def api_tabs():
        """GET /api/tabs - Tab list and active tab id."""
        return jsonify(_list_tabs(_state["workspace"]))

    @app.route("/api/tabs", methods=["POST"])
    def api_tabs_create():
        """POST /api/tabs - Create an empty custom tab."""
        data = request.get_json(force=True)
        name = data.get("name", "")
        if not name:
            return jsonify({"success": False, "error": "name required"}), 400
        return _reply(_create_tab(_state["workspace"], name))

    @app.route("/api/tabs/<tab_id>/activate", methods=["POST"])
    def api_tabs_activate(tab_id: str):
        """POST /api/tabs/<tab_id>/activate - Switch the active tab."""
        return _reply(_switch_tab(_state["workspace"], tab_id))

    @app.route("/api/tabs/<tab_id>/rename", methods=["POST"])
    def api_tabs_rename(tab_id: str):
        """POST /api/tabs/<tab_id>/rename - Rename a custom tab."""
        data = request.get_json(force=True)
        name = data.get("name", "")
        if not name:
            return jsonify({"success": False, "error": "name required"}), 400
        return _reply(_rename_tab(_state["workspace"], tab_id, name))

    @app.route("/api/tabs/<tab_id>/duplicate", methods=["POST"])
    def api_tabs_duplicate(tab_id: str):
        """POST /api/tabs/<tab_id>/duplicate - Copy a tab after itself."""
        data = request.get_json(silent=True) or {}
        return _reply(_duplicate_tab(_state["workspace"], tab_id, data.get("name")))

    @app.route("/api/tabs/<tab_id>", methods=["DELETE"])
    def api_tabs_close(tab_id: str):
        """DELETE /api/tabs/<tab_id> - Close a custom tab."""
        return _reply(_close_tab(_state["workspace"], tab_id))

    @app.route("/api/tabs/<tab_id>/view", methods=["POST"])
    def api_tabs_view(tab_id: str):
        """POST /api/tabs/<tab_id>/view - Update expansion, search and ESG filter."""
        data = request.get_json(force=True)
        return _reply(_update_view_state(_state["workspace"], tab_id, data))

    # ─────────────────────────────────────────────────────────────────
    # Tree queries
    # ─────────────────────────────────────────────────────────────────

    @app.route("/api/tree")
    def api_tree():
        """GET /api/tree - Active forest with counts and transient state."""
        return jsonify(_get_tree(_state["workspace"]))

    @app.route("/api/nodes")
    def api_nodes():
        """GET /api/nodes - Flat node list with paths, led by the root sentinel."""
        return jsonify(_get_node_list(_state["workspace"]))

    @app.route("/api/search")
    def api_search():
        """GET /api/search?q=<term> - Matching ids and their ancestors."""
        query = request.args.get("q", "")
        if not query:
            return jsonify({"matchingIds": [], "ancestorIds": []})
        return jsonify(_search(_state["workspace"], query))

    @app.route("/api/move/validate")
    def api_move_validate():
        """GET /api/move/validate?node_id=&target_id= - Check a move."""
        node_id = request.args.get("node_id", "")
        target_id = request.args.get("target_id") or None
        if not node_id:
            return jsonify({"success": False, "error": "node_id required"}), 400
        return jsonify(_validate_move(_state["workspace"], node_id, target_id))

    # ─────────────────────────────────────────────────────────────────
    # Tree mutations
    # ─────────────────────────────────────────────────────────────────

    @app.route("/api/nodes/add", methods=["POST"])
    def api_nodes_add():
        """POST /api/nodes/add - Add a child (or top-level node without parent_id)."""
        data = request.get_json(force=True)
        return _reply(_mutate_add_node(_state["workspace"], data.get("parent_id"), data))

    @app.route("/api/nodes/sibling", methods=["POST"])
    def api_nodes_sibling():
        """POST /api/nodes/sibling - Insert a node before or after an anchor."""
        data = request.get_json(force=True)
        anchor_id = data.get("anchor_id", "")
        if not anchor_id:
            return jsonify({"success": False, "error": "anchor_id required"}), 400
        position = data.get("position", "after")
        return _reply(_mutate_add_sibling(_state["workspace"], anchor_id, data, position))

    @app.route("/api/nodes/<node_id>/edit", methods=["POST"])
    def api_nodes_edit(node_id: str):
        """POST /api/nodes/<node_id>/edit - Update name, unit, esg and scope."""
        data = request.get_json(force=True)
        return _reply(_mutate_edit_node(_state["workspace"], node_id, data))

    @app.route("/api/nodes/<node_id>", methods=["DELETE"])
    def api_nodes_delete(node_id: str):
        """DELETE /api/nodes/<node_id> - Remove a subtree."""
        return _reply(_mutate_delete_node(_state["workspace"], node_id))

    @app.route("/api/nodes/<node_id>/duplicate", methods=["POST"])
    def api_nodes_duplicate(node_id: str):
        """POST /api/nodes/<node_id>/duplicate - Clone a subtree as next sibling."""
        return _reply(_mutate_duplicate_node(_state["workspace"], node_id))

    @app.route("/api/nodes/<node_id>/marker", methods=["POST"])
    def api_nodes_marker(node_id: str):
        """POST /api/nodes/<node_id>/marker - Toggle a marker."""
        data = request.get_json(force=True)
        marker = data.get("marker", "")
        if not marker:
            return jsonify({"success": False, "error": "marker required"}), 400
        return _reply(_mutate_toggle_marker(_state["workspace"], node_id, marker))

    @app.route("/api/move", methods=["POST"])
    def api_move():
        """POST /api/move - Move a subtree under a new parent."""
        data = request.get_json(force=True)
        node_id = data.get("node_id", "")
        if not node_id:
            return jsonify({"success": False, "error": "node_id required"}), 400
        return _reply(_mutate_move_node(_state["workspace"], node_id, data.get("target_id")))

    @app.route("/api/reset", methods=["POST"])
    def api_reset():
        """POST /api/reset - Discard edits to the active tab."""
        return _reply(_reset_changes(_state["workspace"]))

    # ─────────────────────────────────────────────────────────────────
    # Relationships
    # ─────────────────────────────────────────────────────────────────

    @app.route("/api/links")
    def api_links():
        """GET /api/links - Every link in the active forest, listed once."""
        return jsonify(_list_links(_state["workspace"]))

    @app.route("/api/links", methods=["POST"])
    def api_links_action():
        """POST /api/links - Link mutations (create/delete/label/visibility).

        The ``action`` field in the JSON body determines the operation:
        - "create": requires source_id, target_id; optional label
        - "delete": requires source_id, target_id
        - "label": requires source_id, target_id; label may be empty
        - "visibility": requires source_id, target_id
        """
        data = request.get_json(force=True)
        action = data.get("action", "create")
        source_id = data.get("source_id", "")
        target_id = data.get("target_id", "")
        if not source_id or not target_id:
            return jsonify({"success": False, "error": "source_id and target_id required"}), 400

        ws = _state["workspace"]
        if action == "create":
            result = _mutate_create_link(ws, source_id, target_id, data.get("label"))
        elif action == "delete":
            result = _mutate_delete_link(ws, source_id, target_id)
        elif action == "label":
            result = _mutate_update_link_label(ws, source_id, target_id, data.get("label"))
        elif action == "visibility":
            result = _toggle_link_visibility(ws, source_id, target_id)
        else:
            return jsonify({"success": False, "error": f"Unknown action: {action}"}), 400
        return _reply(result)

    # ─────────────────────────────────────────────────────────────────
    # Import / export
    # ─────────────────────────────────────────────────────────────────

    @app.route("/api/import", methods=["POST"])
    def api_import():
        """POST /api/import - Upload a .json or .xmind file into a new tab."""
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            return jsonify({"success": False, "error": "file required"}), 400
        result = _state["workspace"].import_upload(upload.read(), upload.filename)
        return _reply(result)

    @app.route("/api/export")
    def api_export():
        """GET /api/export?format=json|xmind - Download the active forest."""
        fmt = request.args.get("format", "json").lower()
        suffix = f".{fmt}"
        if suffix not in SUPPORTED_SUFFIXES:
            return jsonify({"success": False, "error": f"Unsupported format: {fmt}"}), 400

        ws = _state["workspace"]
        tab = ws.active_tab
        filename = f"{tab.name if tab else 'kpi-tree'}{suffix}"
        try:
            data = export_bytes(ws.active_nodes, filename, _state["config"])
        except FormatError as e:
            return jsonify({"success": False, "error": str(e)}), 400

        mimetype = "application/json" if suffix == ".json" else "application/zip"
        return send_file(
            io.BytesIO(data), mimetype=mimetype, as_attachment=True, download_name=filename
        )

    return app
