"""
Category classification and hierarchy legality rules.

Every node falls into exactly one NodeCategory. The category is either
set explicitly on the node or inferred from its id and name by an
ordered list of pattern rules. The first matching rule wins, so the
order of CATEGORY_RULES is part of the data format: reordering it
reclassifies existing datasets.
"""

from __future__ import annotations

from typing import Callable, NamedTuple

from kpitree.tree.KPINode import KPINode, NodeCategory

# Category -> categories that may legally be its parent.
VALID_PARENT_CATEGORIES: dict[NodeCategory, frozenset[NodeCategory]] = {
    NodeCategory.ROOT: frozenset(),
    NodeCategory.REVENUE: frozenset({NodeCategory.ROOT}),
    NodeCategory.COST: frozenset({NodeCategory.ROOT}),
    NodeCategory.FCF: frozenset({NodeCategory.ROOT}),
    NodeCategory.CAPEX: frozenset({NodeCategory.ROOT}),
    NodeCategory.FINANCIAL: frozenset({NodeCategory.ROOT}),
    NodeCategory.OPERATIONAL: frozenset({NodeCategory.ROOT}),
    NodeCategory.MAINTENANCE: frozenset({NodeCategory.ROOT, NodeCategory.OPERATIONAL}),
    NodeCategory.ESG: frozenset({NodeCategory.ROOT}),
    NodeCategory.PRODUCTION: frozenset({NodeCategory.REVENUE}),
    NodeCategory.EMPLOYEE: frozenset({NodeCategory.COST}),
    NodeCategory.EQUIPMENT: frozenset(
        {NodeCategory.COST, NodeCategory.PRODUCTION, NodeCategory.MAINTENANCE}
    ),
    NodeCategory.METRIC: frozenset(c for c in NodeCategory if c is not NodeCategory.ROOT),
}


class CategoryRule(NamedTuple):
    """A classification rule over a node's lower-cased id and name."""

    matches: Callable[[str, str], bool]
    category: NodeCategory


def _starts(id_: str, *prefixes: str) -> bool:
    return any(id_.startswith(p) for p in prefixes)


def _mentions(text: str, *needles: str) -> bool:
    return any(n in text for n in needles)


# Evaluated top to bottom; the first match decides.
CATEGORY_RULES: list[CategoryRule] = [
    CategoryRule(lambda i, n: "ebitda" in i, NodeCategory.ROOT),
    CategoryRule(
        lambda i, n: i.startswith("production-") or "production (revenue)" in n,
        NodeCategory.REVENUE,
    ),
    CategoryRule(lambda i, n: i.startswith("cash-cost"), NodeCategory.COST),
    CategoryRule(
        lambda i, n: i == "free-cash-flow" or i.startswith("fcf") or "free-cash" in i,
        NodeCategory.FCF,
    ),
    CategoryRule(lambda i, n: i == "capex" or i.startswith("capex-"), NodeCategory.CAPEX),
    CategoryRule(lambda i, n: i.startswith("financial-"), NodeCategory.FINANCIAL),
    CategoryRule(lambda i, n: i.startswith("operational-"), NodeCategory.OPERATIONAL),
    CategoryRule(
        lambda i, n: i == "maintenance" or _starts(i, "maintenance-", "rm-", "reliability-"),
        NodeCategory.MAINTENANCE,
    ),
    CategoryRule(
        lambda i, n: "esg" in i or _starts(i, "environmental-", "social-", "governance-"),
        NodeCategory.ESG,
    ),
    CategoryRule(lambda i, n: _starts(i, "ob-", "coal-", "drill-blast"), NodeCategory.PRODUCTION),
    CategoryRule(
        lambda i, n: _starts(i, "emp-", "employee-") or _mentions(n, "employee", "labor"),
        NodeCategory.EMPLOYEE,
    ),
    CategoryRule(
        lambda i, n: _starts(i, "tyre-", "fuel-", "equipment-")
        or _mentions(n, "tyre", "fuel", "equipment"),
        NodeCategory.EQUIPMENT,
    ),
]


def infer_category(node: KPINode) -> NodeCategory:
    """Return the node's explicit category, or infer it from id and name.

    Args:
        node: The node to classify.

    Returns:
        The first matching category from CATEGORY_RULES, or METRIC.
    """
    if node.category is not None:
        return node.category
    node_id = node.id.lower()
    name = node.name.lower()
    for rule in CATEGORY_RULES:
        if rule.matches(node_id, name):
            return rule.category
    return NodeCategory.METRIC


def is_legal_parent(child: NodeCategory, parent: NodeCategory) -> bool:
    """Check whether parent is a legal parent category for child."""
    return parent in VALID_PARENT_CATEGORIES[child]


__all__ = [
    "CATEGORY_RULES",
    "VALID_PARENT_CATEGORIES",
    "CategoryRule",
    "infer_category",
    "is_legal_parent",
]
