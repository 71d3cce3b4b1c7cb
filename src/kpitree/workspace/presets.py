"""Preset datasets shipped with the package.

Each preset is a JSON forest under ``data/``. Presets are re-read for
every request so callers always receive an independent copy that they
are free to mutate.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path

from kpitree.tree.KPINode import KPINode, forest_from_dicts

DATA_DIR = Path(__file__).parent / "data"


class PresetType(Enum):
    """Keys of the built-in datasets."""

    FINANCIAL = "financial"
    OPERATIONAL = "operational"
    BUMA = "buma"
    CONSOLIDATED = "consolidated"

    @property
    def display_name(self) -> str:
        return PRESET_NAMES[self]


PRESET_NAMES: dict[PresetType, str] = {
    PresetType.FINANCIAL: "Financial",
    PresetType.OPERATIONAL: "Operational",
    PresetType.BUMA: "BUMA",
    PresetType.CONSOLIDATED: "Consolidated",
}

# Tab order used when no saved workspace exists.
DEFAULT_PRESET_ORDER: tuple[PresetType, ...] = (
    PresetType.CONSOLIDATED,
    PresetType.FINANCIAL,
    PresetType.OPERATIONAL,
    PresetType.BUMA,
)


def preset_path(preset: PresetType) -> Path:
    return DATA_DIR / f"{preset.value}.json"


def load_preset(preset: PresetType | str) -> list[KPINode]:
    """Load a fresh copy of a preset forest.

    Args:
        preset: PresetType or its string value.

    Raises:
        ValueError: If preset is not a known preset key.
    """
    preset = PresetType(preset)
    data = json.loads(preset_path(preset).read_text(encoding="utf-8"))
    return forest_from_dicts(data)


__all__ = [
    "DEFAULT_PRESET_ORDER",
    "PRESET_NAMES",
    "PresetType",
    "load_preset",
]
