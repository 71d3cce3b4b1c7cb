"""
kpitree.commands.convert - Convert a forest between JSON and XMind.
"""

from __future__ import annotations

import argparse
import sys

from kpitree.codec.errors import FormatError
from kpitree.codec.files import export_file
from kpitree.commands._source import load_config_for, load_source
from kpitree.tree.search import count_nodes


def run(args: argparse.Namespace) -> int:
    """Run the convert command."""
    loaded = load_source(args)
    if loaded is None:
        return 1
    _, nodes = loaded

    config = load_config_for(args)
    try:
        written = export_file(nodes, args.output, config)
    except FormatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Wrote {count_nodes(nodes)} nodes to {written}")
    return 0
