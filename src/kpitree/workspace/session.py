"""Workspace - The tab list bound to one TreeStore.

The store always edits the active tab's forest. Store mutations are
written back to the tab (and so to the blob store) through the store's
on_change callback. Switching tabs reloads the store with the target
tab's forest, keyed by the tab id.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from kpitree.codec.errors import FormatError
from kpitree.codec.files import ImportResult, export_file, import_bytes, import_file
from kpitree.tree.KPINode import KPINode
from kpitree.tree.store import TreeStore
from kpitree.workspace.presets import PresetType
from kpitree.workspace.storage import BlobStore, FileBlobStore, MemoryBlobStore
from kpitree.workspace.tabs import TabManager, TabState

logger = logging.getLogger(__name__)


class Workspace:
    """Tabs plus the store editing the active one.

    Args:
        blob_store: Persistence backend shared by tabs and store.
        config: Configuration dict.
    """

    def __init__(
        self, blob_store: BlobStore | None = None, config: dict[str, Any] | None = None
    ) -> None:
        self.config = config or {}
        self.blob_store = blob_store if blob_store is not None else MemoryBlobStore()
        self.tabs = TabManager(self.blob_store, self.config)
        self.store = TreeStore(blob_store=self.blob_store, config=self.config)
        self.tabs.initialize_tabs()
        self._bind_active()
        self.store.on_change = self._write_back

    @classmethod
    def from_state_file(cls, path: Path | str, config: dict[str, Any] | None = None) -> Workspace:
        """Open a workspace persisted in a JSON state file."""
        return cls(FileBlobStore(path), config)

    def _bind_active(self) -> None:
        tab = self.tabs.active_tab
        if tab is None:
            self.store.init_store([], "default")
            return
        # Keep the tab id in sync when a stale active id fell back to the first tab.
        self.tabs.active_tab_id = tab.id
        self.store.init_store(tab.data, tab.id)

    def _write_back(self, nodes: list[KPINode]) -> None:
        self.tabs.update_tab_data(self.tabs.active_tab_id, nodes)

    # ─────────────────────────────────────────────────────────────────────────
    # Tabs
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def active_tab(self) -> TabState | None:
        return self.tabs.active_tab

    @property
    def active_nodes(self) -> list[KPINode]:
        """The forest of the active tab, as edited by the store."""
        return self.store.nodes

    def switch_tab(self, tab_id: str) -> bool:
        if not self.tabs.set_active_tab(tab_id):
            return False
        self._bind_active()
        return True

    def new_tab(self, name: str, data: list[KPINode] | None = None) -> str:
        tab_id = self.tabs.add_new_tab(name, data or [])
        self._bind_active()
        return tab_id

    def rename_tab(self, tab_id: str, new_name: str) -> bool:
        return self.tabs.rename_tab(tab_id, new_name)

    def duplicate_tab(self, tab_id: str, new_name: str | None = None) -> str | None:
        tab_id = self.tabs.duplicate_tab(tab_id, new_name)
        if tab_id is not None:
            self._bind_active()
        return tab_id

    def close_tab(self, tab_id: str) -> bool:
        was_active = tab_id == self.tabs.active_tab_id
        if not self.tabs.close_tab(tab_id):
            return False
        if was_active:
            self._bind_active()
        return True

    def reset_preset_tab(self, preset: str) -> bool:
        if not self.tabs.reset_preset_tab(preset):
            return False
        active = self.tabs.active_tab
        if active is not None and active.preset_type is PresetType(preset):
            self._bind_active()
        return True

    # ─────────────────────────────────────────────────────────────────────────
    # Import / export
    # ─────────────────────────────────────────────────────────────────────────

    def _open_import(self, result: ImportResult) -> dict[str, Any]:
        tab_id = self.tabs.import_to_new_tab(result.name, result.nodes)
        self._bind_active()
        for warning in result.warnings:
            logger.warning("%s: %s", result.name, warning)
        return {
            "success": True,
            "tab_id": tab_id,
            "name": result.name,
            "count": self.store.count_nodes(),
            "warnings": list(result.warnings),
        }

    def import_file(self, path: Path | str) -> dict[str, Any]:
        """Import a .json or .xmind file into a new tab.

        The file is fully decoded before any tab changes, so a failed
        import leaves the workspace untouched.

        Returns:
            Dict with success status, the new tab id, or an error.
        """
        try:
            result = import_file(path)
        except (FormatError, OSError) as e:
            return {"success": False, "error": str(e)}
        return self._open_import(result)

    def import_upload(self, data: bytes, filename: str) -> dict[str, Any]:
        """Import uploaded file content into a new tab."""
        try:
            result = import_bytes(data, filename)
        except FormatError as e:
            return {"success": False, "error": str(e)}
        return self._open_import(result)

    def export_active(self, path: Path | str) -> dict[str, Any]:
        """Write the active forest to a .json or .xmind file."""
        try:
            written = export_file(self.store.nodes, path, self.config)
        except (FormatError, OSError) as e:
            return {"success": False, "error": str(e)}
        return {"success": True, "path": str(written)}


__all__ = ["Workspace"]
