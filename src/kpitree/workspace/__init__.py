"""
kpitree.workspace - Tabs, presets and persistence
"""

from kpitree.workspace.presets import PRESET_NAMES, PresetType, load_preset
from kpitree.workspace.session import Workspace
from kpitree.workspace.storage import BlobStore, FileBlobStore, MemoryBlobStore
from kpitree.workspace.tabs import STORAGE_KEY, TabManager, TabState

__all__ = [
    "PRESET_NAMES",
    "STORAGE_KEY",
    "BlobStore",
    "FileBlobStore",
    "MemoryBlobStore",
    "PresetType",
    "TabManager",
    "TabState",
    "Workspace",
    "load_preset",
]
