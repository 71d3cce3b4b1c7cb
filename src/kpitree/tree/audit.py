"""Forest audit - Consistency report over a KPI forest.

Reports conditions the editing operations never create themselves but
that imported or hand-edited files may contain: duplicate ids, links to
missing nodes, self-links, placements that violate the category table,
and markers outside the known vocabulary.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum

from kpitree.tree.categories import infer_category, is_legal_parent
from kpitree.tree.KPINode import KPINode, NodeCategory, iter_forest
from kpitree.tree.markers import is_known_marker


class IssueKind(Enum):
    DUPLICATE_ID = "duplicate_id"
    DANGLING_LINK = "dangling_link"
    SELF_LINK = "self_link"
    ILLEGAL_PLACEMENT = "illegal_placement"
    UNKNOWN_MARKER = "unknown_marker"


@dataclass(frozen=True)
class ForestIssue:
    """A single consistency finding.

    Attributes:
        kind: Type of finding.
        node_id: Node the finding is attached to.
        message: Human-readable description.
    """

    kind: IssueKind
    node_id: str
    message: str

    @property
    def is_error(self) -> bool:
        """Duplicate ids break lookups; everything else is a warning."""
        return self.kind is IssueKind.DUPLICATE_ID

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.node_id}: {self.message}"


def _check_placement(node: KPINode, parent: KPINode | None) -> ForestIssue | None:
    category = infer_category(node)
    if parent is None:
        if category is NodeCategory.ROOT or node.is_detached:
            return None
        if is_legal_parent(category, NodeCategory.ROOT):
            return None
        return ForestIssue(
            IssueKind.ILLEGAL_PLACEMENT,
            node.id,
            f"{category.value} item '{node.name}' sits at root level",
        )

    parent_category = infer_category(parent)
    if category is NodeCategory.ROOT or not is_legal_parent(category, parent_category):
        return ForestIssue(
            IssueKind.ILLEGAL_PLACEMENT,
            node.id,
            f"{category.value} item '{node.name}' sits under {parent_category.value} "
            f"item '{parent.name}'",
        )
    return None


def audit_forest(nodes: list[KPINode]) -> list[ForestIssue]:
    """Run every consistency check over a forest.

    Args:
        nodes: The forest to audit.

    Returns:
        Findings in a stable order: duplicates first, then per-node
        findings in pre-order.
    """
    issues: list[ForestIssue] = []

    counts = Counter(node.id for node in iter_forest(nodes))
    for node_id, count in counts.items():
        if count > 1:
            issues.append(
                ForestIssue(IssueKind.DUPLICATE_ID, node_id, f"id used by {count} nodes")
            )

    def visit(node: KPINode, parent: KPINode | None) -> None:
        placement = _check_placement(node, parent)
        if placement is not None:
            issues.append(placement)

        for rel in node.relationships:
            if rel.target_id == node.id:
                issues.append(
                    ForestIssue(IssueKind.SELF_LINK, node.id, f"link {rel.id} points at itself")
                )
            elif rel.target_id not in counts:
                issues.append(
                    ForestIssue(
                        IssueKind.DANGLING_LINK,
                        node.id,
                        f"link {rel.id} targets missing node {rel.target_id}",
                    )
                )

        for marker in node.markers:
            if not is_known_marker(marker):
                issues.append(
                    ForestIssue(IssueKind.UNKNOWN_MARKER, node.id, f"unknown marker '{marker}'")
                )

        for child in node.children:
            visit(child, node)

    for root in nodes:
        visit(root, None)

    return issues


__all__ = ["ForestIssue", "IssueKind", "audit_forest"]
