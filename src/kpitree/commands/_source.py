"""Shared input handling for commands that read a forest."""

from __future__ import annotations

import argparse
import sys

from kpitree.codec.errors import FormatError
from kpitree.codec.files import import_file
from kpitree.config import get_config
from kpitree.tree.KPINode import KPINode
from kpitree.workspace.presets import PresetType, load_preset


def load_source(args: argparse.Namespace) -> tuple[str, list[KPINode]] | None:
    """Load the forest named by ``input`` or ``--preset``.

    Prints the problem to stderr and returns None on failure.
    """
    preset = getattr(args, "preset", None)
    path = getattr(args, "input", None)

    if preset:
        return PresetType(preset).display_name, load_preset(preset)
    if path is None:
        print("Error: give an input file or --preset", file=sys.stderr)
        return None
    if not path.exists():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return None

    try:
        result = import_file(path)
    except FormatError as e:
        print(f"Error: {path}: {e}", file=sys.stderr)
        return None
    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    return result.name, result.nodes


def load_config_for(args: argparse.Namespace) -> dict:
    return get_config(getattr(args, "config", None))
