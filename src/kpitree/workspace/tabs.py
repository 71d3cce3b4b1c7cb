"""TabManager - Multiple independently editable forests.

A workspace holds an ordered list of tabs. Preset tabs are backed by a
built-in dataset: their forest is reloaded fresh on every start and only
their UI state survives a restart. Custom tabs (created, duplicated or
imported) persist their forest verbatim. Presets can be neither closed
nor renamed.

Every change is written through to the blob store under STORAGE_KEY.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from kpitree.tree.KPINode import KPINode, forest_from_dicts, forest_to_dicts, generate_id
from kpitree.workspace.presets import DEFAULT_PRESET_ORDER, PresetType, load_preset
from kpitree.workspace.storage import BlobStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "kpi-tree-tabs"
DEFAULT_ACTIVE_TAB = PresetType.CONSOLIDATED.value
PRESET_VALUES = frozenset(p.value for p in PresetType)


@dataclass
class TabState:
    """One tab: a forest plus the UI state it is viewed with.

    Attributes:
        id: Tab id. Preset tabs use their preset key as id.
        name: Display name.
        is_preset: True for tabs backed by a built-in dataset.
        preset_type: The dataset key for preset tabs.
        data: The tab's forest.
        expanded_nodes: Ids of expanded nodes.
        search_term: Current search filter text.
        show_esg_only: Whether the ESG-only filter is on.
    """

    id: str
    name: str
    is_preset: bool = False
    preset_type: PresetType | None = None
    data: list[KPINode] = field(default_factory=list)
    expanded_nodes: set[str] = field(default_factory=set)
    search_term: str = ""
    show_esg_only: bool = False

    @classmethod
    def for_preset(cls, preset: PresetType) -> TabState:
        """Create a tab holding a fresh copy of a preset dataset."""
        return cls(
            id=preset.value,
            name=preset.display_name,
            is_preset=True,
            preset_type=preset,
            data=load_preset(preset),
        )

    def to_dict(self, include_data: bool = True) -> dict[str, Any]:
        """Serialize for storage; expanded_nodes becomes a sorted list."""
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "isPreset": self.is_preset,
            "expandedNodes": sorted(self.expanded_nodes),
            "searchTerm": self.search_term,
            "showESGOnly": self.show_esg_only,
        }
        if self.preset_type is not None:
            result["presetType"] = self.preset_type.value
        if include_data:
            result["data"] = forest_to_dicts(self.data)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TabState:
        preset_type = data.get("presetType")
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            is_preset=bool(data.get("isPreset", False)),
            preset_type=PresetType(preset_type) if preset_type else None,
            data=forest_from_dicts(data.get("data") or []),
            expanded_nodes=set(data.get("expandedNodes") or []),
            search_term=data.get("searchTerm") or "",
            show_esg_only=bool(data.get("showESGOnly", False)),
        )


class TabManager:
    """Owns the tab list and the active tab id.

    Args:
        blob_store: Store that receives the serialized tab list.
        config: Configuration dict (reads ``workspace.default_preset``).
    """

    def __init__(self, blob_store: BlobStore, config: dict[str, Any] | None = None) -> None:
        self._blob_store = blob_store
        workspace_config = (config or {}).get("workspace", {})
        self._default_active = workspace_config.get("default_preset", DEFAULT_ACTIVE_TAB)
        self.tabs: list[TabState] = []
        self.active_tab_id: str = self._default_active

    # ─────────────────────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────────────────────

    def initialize_tabs(self) -> None:
        """Restore tabs from the blob store, or fall back to the presets.

        Preset tabs get fresh data from their dataset but keep their saved
        expansion, search term and ESG filter.
        """
        saved = self._blob_store.get(STORAGE_KEY)
        if saved:
            try:
                self._restore(json.loads(saved))
                return
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Failed to restore saved tabs, using defaults: %s", e)

        self.tabs = [TabState.for_preset(p) for p in DEFAULT_PRESET_ORDER]
        self.active_tab_id = self._default_active

    def _restore(self, parsed: dict[str, Any]) -> None:
        tabs: list[TabState] = []
        for item in parsed["tabs"]:
            preset_type = item.get("presetType")
            if item.get("isPreset") and preset_type in PRESET_VALUES:
                tab = TabState.for_preset(PresetType(preset_type))
                tab.expanded_nodes = set(item.get("expandedNodes") or [])
                tab.search_term = item.get("searchTerm") or ""
                tab.show_esg_only = bool(item.get("showESGOnly", False))
                tabs.append(tab)
            else:
                tabs.append(TabState.from_dict(item))
        if not tabs:
            raise ValueError("saved workspace has no tabs")
        self.tabs = tabs
        self.active_tab_id = parsed.get("activeTabId") or self._default_active

    def save_tabs(self) -> None:
        """Write the tab list and active tab id to the blob store."""
        payload = {
            "tabs": [tab.to_dict(include_data=not tab.is_preset) for tab in self.tabs],
            "activeTabId": self.active_tab_id,
        }
        try:
            self._blob_store.set(STORAGE_KEY, json.dumps(payload))
        except OSError as e:
            logger.warning("Could not save tabs: %s", e)

    # ─────────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────────

    def get_tab(self, tab_id: str) -> TabState | None:
        for tab in self.tabs:
            if tab.id == tab_id:
                return tab
        return None

    def _index_of(self, tab_id: str) -> int:
        for i, tab in enumerate(self.tabs):
            if tab.id == tab_id:
                return i
        return -1

    @property
    def active_tab(self) -> TabState | None:
        """The active tab, or the first tab if the active id is stale."""
        tab = self.get_tab(self.active_tab_id)
        if tab is None and self.tabs:
            return self.tabs[0]
        return tab

    @property
    def preset_tabs(self) -> list[TabState]:
        return [t for t in self.tabs if t.is_preset]

    @property
    def custom_tabs(self) -> list[TabState]:
        return [t for t in self.tabs if not t.is_preset]

    # ─────────────────────────────────────────────────────────────────────────
    # Tab lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def set_active_tab(self, tab_id: str) -> bool:
        """Activate an existing tab. Unknown ids are ignored."""
        if self.get_tab(tab_id) is None:
            return False
        self.active_tab_id = tab_id
        self.save_tabs()
        return True

    def add_new_tab(self, name: str, data: list[KPINode]) -> str:
        """Append a custom tab holding a deep copy of data and activate it."""
        tab = TabState(id=generate_id("tab"), name=name, data=copy.deepcopy(data))
        self.tabs.append(tab)
        self.active_tab_id = tab.id
        self.save_tabs()
        return tab.id

    def duplicate_tab(self, tab_id: str, new_name: str | None = None) -> str | None:
        """Copy a tab (forest and UI state) into a new custom tab.

        The copy is inserted right after the source and activated.

        Returns:
            The new tab id, or None if tab_id is unknown.
        """
        index = self._index_of(tab_id)
        if index < 0:
            return None
        source = self.tabs[index]
        tab = TabState(
            id=generate_id("tab"),
            name=new_name or f"{source.name} (Copy)",
            data=copy.deepcopy(source.data),
            expanded_nodes=set(source.expanded_nodes),
            search_term=source.search_term,
            show_esg_only=source.show_esg_only,
        )
        self.tabs.insert(index + 1, tab)
        self.active_tab_id = tab.id
        self.save_tabs()
        return tab.id

    def close_tab(self, tab_id: str) -> bool:
        """Close a custom tab. Preset tabs cannot be closed.

        If the closed tab was active, the tab now at the same index (or
        the last tab) becomes active.
        """
        index = self._index_of(tab_id)
        if index < 0 or self.tabs[index].is_preset:
            return False
        del self.tabs[index]
        if self.active_tab_id == tab_id:
            if self.tabs:
                self.active_tab_id = self.tabs[min(index, len(self.tabs) - 1)].id
            else:
                self.active_tab_id = self._default_active
        self.save_tabs()
        return True

    def rename_tab(self, tab_id: str, new_name: str) -> bool:
        """Rename a custom tab. Preset tabs keep their names."""
        tab = self.get_tab(tab_id)
        if tab is None or tab.is_preset:
            return False
        tab.name = new_name
        self.save_tabs()
        return True

    # ─────────────────────────────────────────────────────────────────────────
    # Tab content
    # ─────────────────────────────────────────────────────────────────────────

    def update_tab_data(self, tab_id: str, data: list[KPINode]) -> bool:
        tab = self.get_tab(tab_id)
        if tab is None:
            return False
        tab.data = data
        self.save_tabs()
        return True

    def update_tab_expanded_nodes(self, tab_id: str, expanded_nodes: set[str]) -> bool:
        tab = self.get_tab(tab_id)
        if tab is None:
            return False
        tab.expanded_nodes = set(expanded_nodes)
        self.save_tabs()
        return True

    def update_tab_search_term(self, tab_id: str, search_term: str) -> bool:
        tab = self.get_tab(tab_id)
        if tab is None:
            return False
        tab.search_term = search_term
        self.save_tabs()
        return True

    def update_tab_show_esg_only(self, tab_id: str, show_esg_only: bool) -> bool:
        tab = self.get_tab(tab_id)
        if tab is None:
            return False
        tab.show_esg_only = show_esg_only
        self.save_tabs()
        return True

    def reset_preset_tab(self, preset: PresetType | str) -> bool:
        """Reload a preset's dataset and clear its UI state."""
        preset = PresetType(preset)
        for tab in self.tabs:
            if tab.preset_type is preset:
                tab.data = load_preset(preset)
                tab.expanded_nodes = set()
                tab.search_term = ""
                tab.show_esg_only = False
                self.save_tabs()
                return True
        return False

    def import_to_new_tab(self, name: str, data: list[KPINode]) -> str:
        return self.add_new_tab(name, data)


__all__ = ["STORAGE_KEY", "TabManager", "TabState"]
