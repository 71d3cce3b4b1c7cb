"""
kpitree.commands.move - Validate and apply a subtree move in a file.
"""

from __future__ import annotations

import argparse
import sys

from kpitree.codec.errors import FormatError
from kpitree.codec.files import export_file
from kpitree.commands._source import load_config_for, load_source
from kpitree.tree.store import ROOT_SENTINEL, TreeStore

ROOT_ALIASES = ("root", ROOT_SENTINEL)


def run(args: argparse.Namespace) -> int:
    """Run the move command."""
    loaded = load_source(args)
    if loaded is None:
        return 1
    name, nodes = loaded

    config = load_config_for(args)
    store = TreeStore(nodes, view_key=name, config=config)
    target_id = None if args.target_id in ROOT_ALIASES else args.target_id

    validation = store.validate_move(args.node_id, target_id)
    if not validation.valid:
        print(f"Move rejected: {validation.reason}", file=sys.stderr)
        return 1

    destination = "root level" if target_id is None else target_id
    if getattr(args, "dry_run", False):
        print(f"Move of {args.node_id} under {destination} is valid")
        return 0

    store.move_node(args.node_id, target_id)
    output = args.output or args.input
    try:
        export_file(store.nodes, output, config)
    except FormatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Moved {args.node_id} under {destination}; wrote {output}")
    return 0
