"""kpitree.server.api - Pure request handlers over a Workspace.

Each function validates its parameters, delegates to the Workspace or
its TreeStore, and returns a JSON-ready dict. Failures are reported as
``{"success": False, "error": ...}`` rather than raised, so the Flask
routes stay thin and these handlers can be tested without a server.
"""

from __future__ import annotations

from typing import Any

from kpitree.tree.categories import infer_category
from kpitree.tree.KPINode import EmissionScope, ESGCategory, KPINode
from kpitree.tree.search import count_esg, count_scope, find_matching_nodes_and_ancestors
from kpitree.tree.store import NodeData
from kpitree.workspace.session import Workspace
from kpitree.workspace.tabs import TabState


def _serialize_tab(tab: TabState, active_id: str) -> dict[str, Any]:
    return {
        "id": tab.id,
        "name": tab.name,
        "isPreset": tab.is_preset,
        "presetType": tab.preset_type.value if tab.preset_type else None,
        "active": tab.id == active_id,
        "expandedNodes": sorted(tab.expanded_nodes),
        "searchTerm": tab.search_term,
        "showESGOnly": tab.show_esg_only,
    }


def _serialize_node(node: KPINode) -> dict[str, Any]:
    """Wire shape of a node plus its inferred category."""
    result = node.to_dict()
    result["inferredCategory"] = infer_category(node).value
    if node.children:
        result["children"] = [_serialize_node(c) for c in node.children]
    return result


def _node_not_found(node_id: str) -> dict[str, Any]:
    return {"success": False, "error": f"Node not found: {node_id}"}


def _parse_node_data(data: dict[str, Any]) -> NodeData | dict[str, Any]:
    try:
        return NodeData.from_dict(data)
    except KeyError:
        return {"success": False, "error": "name required"}
    except (TypeError, ValueError) as e:
        return {"success": False, "error": f"Invalid node data: {e}"}


# ─────────────────────────────────────────────────────────────────────────────
# Tabs
# ─────────────────────────────────────────────────────────────────────────────


def _list_tabs(ws: Workspace) -> dict[str, Any]:
    active_id = ws.tabs.active_tab_id
    return {
        "activeTabId": active_id,
        "tabs": [_serialize_tab(t, active_id) for t in ws.tabs.tabs],
    }


def _create_tab(ws: Workspace, name: str) -> dict[str, Any]:
    tab_id = ws.new_tab(name)
    return {"success": True, "tab_id": tab_id, "message": f"Created tab {name}"}


def _switch_tab(ws: Workspace, tab_id: str) -> dict[str, Any]:
    if not ws.switch_tab(tab_id):
        return {"success": False, "error": f"Tab not found: {tab_id}"}
    return {"success": True, "tab_id": tab_id}


def _rename_tab(ws: Workspace, tab_id: str, name: str) -> dict[str, Any]:
    if not ws.rename_tab(tab_id, name):
        return {"success": False, "error": f"Tab {tab_id} not found or cannot be renamed"}
    return {"success": True, "tab_id": tab_id, "message": f"Renamed tab to {name}"}


def _duplicate_tab(ws: Workspace, tab_id: str, name: str | None = None) -> dict[str, Any]:
    new_id = ws.duplicate_tab(tab_id, name)
    if new_id is None:
        return {"success": False, "error": f"Tab not found: {tab_id}"}
    return {"success": True, "tab_id": new_id}


def _close_tab(ws: Workspace, tab_id: str) -> dict[str, Any]:
    if not ws.close_tab(tab_id):
        return {"success": False, "error": f"Tab {tab_id} not found or cannot be closed"}
    return {"success": True, "activeTabId": ws.tabs.active_tab_id}


def _update_view_state(ws: Workspace, tab_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Apply any of expandedNodes, searchTerm and showESGOnly to a tab."""
    if ws.tabs.get_tab(tab_id) is None:
        return {"success": False, "error": f"Tab not found: {tab_id}"}
    if "expandedNodes" in data:
        ws.tabs.update_tab_expanded_nodes(tab_id, set(data["expandedNodes"] or []))
    if "searchTerm" in data:
        ws.tabs.update_tab_search_term(tab_id, str(data["searchTerm"] or ""))
    if "showESGOnly" in data:
        ws.tabs.update_tab_show_esg_only(tab_id, bool(data["showESGOnly"]))
    return {"success": True, "tab_id": tab_id}


# ─────────────────────────────────────────────────────────────────────────────
# Tree queries
# ─────────────────────────────────────────────────────────────────────────────


def _get_tree(ws: Workspace) -> dict[str, Any]:
    store = ws.store
    nodes = store.nodes
    return {
        "tabId": store.view_key,
        "nodes": [_serialize_node(n) for n in nodes],
        "count": store.count_nodes(),
        "esg": {e.value: count_esg(nodes, e) for e in ESGCategory},
        "scopes": {str(int(s)): count_scope(nodes, s) for s in EmissionScope},
        "hasUnsavedChanges": store.has_unsaved_changes,
        "moveError": store.move_error,
    }


def _get_node_list(ws: Workspace) -> list[dict[str, Any]]:
    return [summary.to_dict() for summary in ws.store.get_all_nodes()]


def _search(ws: Workspace, term: str) -> dict[str, Any]:
    result = find_matching_nodes_and_ancestors(ws.store.nodes, term)
    return {
        "matchingIds": sorted(result.matching_ids),
        "ancestorIds": sorted(result.ancestor_ids),
    }


# ─────────────────────────────────────────────────────────────────────────────
# Tree mutations
# ─────────────────────────────────────────────────────────────────────────────


def _mutate_add_node(ws: Workspace, parent_id: str | None, data: dict[str, Any]) -> dict[str, Any]:
    node_data = _parse_node_data(data)
    if isinstance(node_data, dict):
        return node_data
    new_id = ws.store.add_node(parent_id, node_data)
    if new_id is None:
        return _node_not_found(parent_id or "")
    return {"success": True, "node_id": new_id, "message": f"Added {node_data.name}"}


def _mutate_add_sibling(
    ws: Workspace, anchor_id: str, data: dict[str, Any], position: str
) -> dict[str, Any]:
    if position not in ("before", "after"):
        return {"success": False, "error": f"Unknown sibling position: {position}"}
    node_data = _parse_node_data(data)
    if isinstance(node_data, dict):
        return node_data
    new_id = ws.store.add_sibling_node(anchor_id, node_data, position)
    if new_id is None:
        return _node_not_found(anchor_id)
    return {"success": True, "node_id": new_id, "message": f"Added {node_data.name}"}


def _mutate_edit_node(ws: Workspace, node_id: str, data: dict[str, Any]) -> dict[str, Any]:
    node_data = _parse_node_data(data)
    if isinstance(node_data, dict):
        return node_data
    if not ws.store.edit_node(node_id, node_data):
        return _node_not_found(node_id)
    return {"success": True, "node_id": node_id, "message": f"Updated {node_id}"}


def _mutate_delete_node(ws: Workspace, node_id: str) -> dict[str, Any]:
    if not ws.store.delete_node(node_id):
        return _node_not_found(node_id)
    return {"success": True, "node_id": node_id, "message": f"Deleted {node_id}"}


def _mutate_duplicate_node(ws: Workspace, node_id: str) -> dict[str, Any]:
    new_id = ws.store.duplicate_node(node_id)
    if new_id is None:
        return _node_not_found(node_id)
    return {"success": True, "node_id": new_id}


def _validate_move(ws: Workspace, node_id: str, target_id: str | None) -> dict[str, Any]:
    return ws.store.validate_move(node_id, target_id).to_dict()


def _mutate_move_node(ws: Workspace, node_id: str, target_id: str | None) -> dict[str, Any]:
    validation = ws.store.move_node(node_id, target_id)
    if not validation.valid:
        return {"success": False, "error": validation.reason}
    return {"success": True, "node_id": node_id, "message": f"Moved {node_id}"}


def _mutate_toggle_marker(ws: Workspace, node_id: str, marker: str) -> dict[str, Any]:
    if not ws.store.toggle_marker(node_id, marker):
        return _node_not_found(node_id)
    node = ws.store.find_node_by_id(node_id)
    return {"success": True, "node_id": node_id, "markers": list(node.markers) if node else []}


def _reset_changes(ws: Workspace) -> dict[str, Any]:
    ws.store.reset_changes()
    return {"success": True, "count": ws.store.count_nodes()}


# ─────────────────────────────────────────────────────────────────────────────
# Relationships
# ─────────────────────────────────────────────────────────────────────────────


def _list_links(ws: Workspace) -> list[dict[str, Any]]:
    store = ws.store
    return [
        {
            "source": view.source.id,
            "sourceName": view.source.name,
            "target": view.target.id,
            "targetName": view.target.name,
            "label": view.label,
            "hidden": store.is_relationship_hidden(view.source.id, view.target.id),
        }
        for view in store.get_all_relationships()
    ]


def _mutate_create_link(
    ws: Workspace, source_id: str, target_id: str, label: str | None = None
) -> dict[str, Any]:
    store = ws.store
    source = store.find_node_by_id(source_id)
    if source is None:
        return _node_not_found(source_id)
    store.start_link_mode(source_id, source.name)
    if not store.create_link(target_id, label):
        return {
            "success": False,
            "error": f"Cannot link {source_id} to {target_id}",
        }
    return {"success": True, "message": f"Linked {source_id} to {target_id}"}


def _mutate_delete_link(ws: Workspace, source_id: str, target_id: str) -> dict[str, Any]:
    if not ws.store.delete_link(source_id, target_id):
        return {"success": False, "error": f"No link from {source_id} to {target_id}"}
    return {"success": True, "message": f"Removed link {source_id} -> {target_id}"}


def _mutate_update_link_label(
    ws: Workspace, source_id: str, target_id: str, label: str | None
) -> dict[str, Any]:
    if not ws.store.update_link_label(source_id, target_id, label):
        return {"success": False, "error": f"No link from {source_id} to {target_id}"}
    return {"success": True, "message": f"Relabeled link {source_id} -> {target_id}"}


def _toggle_link_visibility(ws: Workspace, source_id: str, target_id: str) -> dict[str, Any]:
    hidden = ws.store.toggle_relationship_visibility(source_id, target_id)
    return {"success": True, "hidden": hidden}
