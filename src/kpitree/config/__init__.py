"""
kpitree.config - Configuration loading and defaults

Configuration lives in a ``.kpitree.toml`` file found by walking up from
the working directory. User values are merged over DEFAULT_CONFIG and
``KPITREE_<SECTION>_<KEY>`` environment variables win over both.
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any

import tomlkit

from kpitree.config.defaults import CONFIG_FILENAME, DEFAULT_CONFIG

ENV_PREFIX = "KPITREE_"


def find_config_file(start: Path) -> Path | None:
    """Find the nearest configuration file at or above start.

    Args:
        start: Directory to begin searching from.

    Returns:
        Path to the config file, or None if none exists.
    """
    current = start.resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def parse_toml_document(text: str) -> dict[str, Any]:
    """Parse TOML text into plain Python containers."""
    return tomlkit.parse(text).unwrap()


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge override into a copy of base.

    Nested tables are merged key by key; any other value in override
    replaces the value in base.
    """
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _try_parse_env_value(value: str) -> Any:
    """Parse an environment value into a typed value where possible.

    JSON arrays/objects and true/false are decoded; numbers are decoded
    as int or float; anything else (including malformed JSON) is
    returned unchanged.
    """
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if value[:1] in ("[", "{"):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply KPITREE_<SECTION>_<KEY> environment overrides in place.

    Only sections that already exist in config are considered, so the
    first underscore after the prefix separates section from key.
    """
    for name, raw in os.environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        rest = name[len(ENV_PREFIX) :].lower()
        for section in config:
            if isinstance(config[section], dict) and rest.startswith(f"{section}_"):
                key = rest[len(section) + 1 :]
                if key:
                    config[section][key] = _try_parse_env_value(raw)
                break
    return config


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from path (or defaults when path is None).

    Args:
        path: Optional path to a ``.kpitree.toml`` file.

    Returns:
        Merged configuration dict.

    Raises:
        FileNotFoundError: If path is given but does not exist.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if path is not None:
        user = parse_toml_document(Path(path).read_text(encoding="utf-8"))
        config = merge_configs(config, user)
    return _apply_env_overrides(config)


def get_config(config_path: Path | None = None, start: Path | None = None) -> dict[str, Any]:
    """Load an explicit config file, or the nearest one discovered from start."""
    if config_path is None:
        config_path = find_config_file(start or Path.cwd())
    return load_config(config_path)


def render_default_config() -> str:
    """Render DEFAULT_CONFIG as a commented TOML document."""
    doc = tomlkit.document()
    doc.add(tomlkit.comment("kpitree configuration"))
    doc.add(tomlkit.nl())
    for section, values in DEFAULT_CONFIG.items():
        table = tomlkit.table()
        for key, value in values.items():
            table.add(key, value)
        doc.add(section, table)
    return tomlkit.dumps(doc)


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_CONFIG",
    "find_config_file",
    "get_config",
    "load_config",
    "merge_configs",
    "parse_toml_document",
    "render_default_config",
]
