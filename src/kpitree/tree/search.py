"""
Tree-state helpers: search, counting and expansion sets.

These are pure functions over a forest, used by the workspace to drive
search highlighting, the ESG-only filter and expand/collapse state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from kpitree.tree.KPINode import EmissionScope, ESGCategory, KPINode, iter_forest


@dataclass
class SearchResult:
    """Nodes matching a search term and the ancestors to expand."""

    matching_ids: set[str] = field(default_factory=set)
    ancestor_ids: set[str] = field(default_factory=set)
    expand_ids: set[str] = field(default_factory=set)


def collect_all_ids(nodes: list[KPINode]) -> list[str]:
    """All ids of the forest in pre-order."""
    return [node.id for node in iter_forest(nodes)]


def count_nodes(nodes: list[KPINode]) -> int:
    return sum(1 for _ in iter_forest(nodes))


def count_esg(nodes: list[KPINode], esg: ESGCategory) -> int:
    """Number of nodes tagged with the given ESG category."""
    return sum(1 for node in iter_forest(nodes) if node.esg is esg)


def count_scope(nodes: list[KPINode], scope: EmissionScope) -> int:
    """Number of nodes tagged with the given emission scope."""
    return sum(1 for node in iter_forest(nodes) if node.scope == scope)


def has_esg_content(node: KPINode) -> bool:
    """True if the node or any descendant carries an ESG tag or scope."""
    return any(n.esg is not None or n.scope is not None for n in node.walk())


def _matches(node: KPINode, term: str) -> bool:
    if term in node.name.lower():
        return True
    return node.unit is not None and term in node.unit.lower()


def find_matching_nodes_and_ancestors(nodes: list[KPINode], search_term: str) -> SearchResult:
    """Find nodes whose name or unit contains search_term (case-insensitive).

    Args:
        nodes: The forest to search.
        search_term: Substring to look for.

    Returns:
        SearchResult with matches and every ancestor of a match.
    """
    result = SearchResult()
    term = search_term.lower()

    def traverse(items: list[KPINode], ancestors: list[str]) -> None:
        for node in items:
            if _matches(node, term):
                result.matching_ids.add(node.id)
                result.ancestor_ids.update(ancestors)
                result.expand_ids.update(ancestors)
            traverse(node.children, [*ancestors, node.id])

    traverse(nodes, [])
    return result


def has_matching_descendant(node: KPINode, search_term: str) -> bool:
    """True if the node or a descendant matches search_term."""
    term = search_term.lower()
    return any(_matches(n, term) for n in node.walk())


def ids_to_level(nodes: list[KPINode], level: int) -> set[str]:
    """Ids to expand so that the forest is open down to the given depth.

    Level 1 expands the top-level nodes only, level 2 also their
    children, and so on.
    """
    ids: set[str] = set()

    def collect(items: list[KPINode], depth: int) -> None:
        for node in items:
            if depth < level:
                ids.add(node.id)
                collect(node.children, depth + 1)

    collect(nodes, 0)
    return ids


def filter_esg(nodes: list[KPINode]) -> list[KPINode]:
    """Prune the forest to subtrees that carry ESG content.

    Returned nodes are shallow copies; the input forest is not changed.
    """
    result: list[KPINode] = []
    for node in nodes:
        if has_esg_content(node):
            result.append(replace(node, children=filter_esg(node.children)))
    return result


def find_path(nodes: list[KPINode], node_id: str) -> list[KPINode] | None:
    """Return the chain of nodes from a top-level node down to node_id."""
    for node in nodes:
        if node.id == node_id:
            return [node]
        sub = find_path(node.children, node_id)
        if sub is not None:
            return [node, *sub]
    return None
