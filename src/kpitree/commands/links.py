"""
kpitree.commands.links - List the cross-links of a forest.
"""

from __future__ import annotations

import argparse

from kpitree.commands._source import load_source
from kpitree.tree.relations import get_all_relationships


def run(args: argparse.Namespace) -> int:
    """Print each link once as ``source --[label]--> target``."""
    loaded = load_source(args)
    if loaded is None:
        return 1
    name, nodes = loaded

    views = get_all_relationships(nodes)
    if not views:
        print(f"{name}: no links")
        return 0

    print(f"{name}: {len(views)} link(s)")
    for view in views:
        print(f"  {view}")
    return 0
