"""
kpitree.commands.show - Print a forest as an indented outline.
"""

from __future__ import annotations

import argparse
import sys

from kpitree.commands._source import load_source
from kpitree.tree.categories import infer_category
from kpitree.tree.KPINode import EmissionScope, ESGCategory, KPINode
from kpitree.tree.search import (
    count_esg,
    count_nodes,
    count_scope,
    filter_esg,
    find_matching_nodes_and_ancestors,
    ids_to_level,
)


def format_node(node: KPINode, show_ids: bool = False) -> str:
    """One outline line: name, unit and tags."""
    parts = [node.name]
    if node.unit:
        parts.append(f"({node.unit})")
    if node.esg is not None:
        parts.append(f"[{node.esg.value}]")
    if node.scope is not None:
        parts.append(f"[Scope {int(node.scope)}]")
    if node.markers:
        parts.append("{" + ", ".join(node.markers) + "}")
    if node.is_detached:
        parts.append("(detached)")
    if show_ids:
        parts.append(f"<{node.id}: {infer_category(node).value}>")
    return " ".join(parts)


def render_outline(
    nodes: list[KPINode],
    depth: int = 0,
    visible: set[str] | None = None,
    show_ids: bool = False,
) -> list[str]:
    """Render the forest as indented lines.

    Args:
        nodes: Forest to render.
        depth: Maximum depth to descend into (0 = unlimited).
        visible: When given, only these ids are rendered.
        show_ids: Append id and inferred category to each line.
    """
    expanded = ids_to_level(nodes, depth) if depth > 0 else None
    lines: list[str] = []

    def visit(node: KPINode, level: int) -> None:
        if visible is not None and node.id not in visible:
            return
        lines.append("  " * level + format_node(node, show_ids))
        if expanded is not None and node.id not in expanded:
            return
        for child in node.children:
            visit(child, level + 1)

    for node in nodes:
        visit(node, 0)
    return lines


def summary_line(name: str, nodes: list[KPINode]) -> str:
    esg = " ".join(f"{e.value}:{count_esg(nodes, e)}" for e in ESGCategory)
    scopes = "/".join(str(count_scope(nodes, s)) for s in EmissionScope)
    return f"{name}: {count_nodes(nodes)} nodes, ESG {esg}, Scope 1/2/3 {scopes}"


def run(args: argparse.Namespace) -> int:
    """Run the show command."""
    loaded = load_source(args)
    if loaded is None:
        return 1
    name, nodes = loaded

    if getattr(args, "esg_only", False):
        nodes = filter_esg(nodes)

    visible = None
    term = getattr(args, "search", None)
    if term:
        result = find_matching_nodes_and_ancestors(nodes, term)
        if not result.matching_ids:
            print(f"No nodes match '{term}'", file=sys.stderr)
            return 1
        visible = result.matching_ids | result.ancestor_ids

    print(summary_line(name, nodes))
    for line in render_outline(
        nodes,
        depth=getattr(args, "depth", 0) or 0,
        visible=visible,
        show_ids=getattr(args, "ids", False),
    ):
        print(line)
    return 0
