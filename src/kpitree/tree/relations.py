"""Relations - Cross-cutting links between KPI nodes.

This module defines the relationship overlay drawn on top of the tree:
- NodeRelationship: a directed, optionally labeled edge to another node
- RelationshipView: a resolved (source, target, label) triple for display

Links are conceptually undirected pairs stored as two directed records.
The record created by the user is the forward edge; its counterpart on
the target node is synthesized with the ``-reverse`` id suffix.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from kpitree.tree.KPINode import KPINode

REVERSE_SUFFIX = "-reverse"
REVERSE_LABEL_PREFIX = "← "


@dataclass
class NodeRelationship:
    """An outgoing link from one node to another node in the same forest.

    Attributes:
        id: Unique link id. Synthesized reverse edges use ``<id>-reverse``.
        target_id: Id of the linked node (anywhere in the forest).
        label: Optional free-text annotation (e.g. "Depends on").
    """

    id: str
    target_id: str
    label: str | None = None

    @property
    def is_reverse(self) -> bool:
        """True if this record was synthesized as the back half of a link."""
        return self.id.endswith(REVERSE_SUFFIX)

    def reversed(self, source_id: str) -> NodeRelationship:
        """Build the synthesized reverse record pointing back at source_id."""
        return NodeRelationship(
            id=f"{self.id}{REVERSE_SUFFIX}",
            target_id=source_id,
            label=reverse_label(self.label),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON wire shape."""
        result: dict[str, Any] = {"id": self.id, "targetId": self.target_id}
        if self.label is not None:
            result["label"] = self.label
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeRelationship:
        """Create a NodeRelationship from its JSON wire shape."""
        return cls(
            id=str(data["id"]),
            target_id=str(data["targetId"]),
            label=data.get("label"),
        )


@dataclass(frozen=True)
class RelationshipView:
    """A forward link resolved against the forest, for listing."""

    source: KPINode
    target: KPINode
    label: str | None = None

    def __str__(self) -> str:
        """Human-readable representation."""
        arrow = f" --[{self.label}]--> " if self.label else " --> "
        return f"{self.source.name}{arrow}{self.target.name}"


def reverse_label(label: str | None) -> str | None:
    """Derive the label of a synthesized reverse edge."""
    return f"{REVERSE_LABEL_PREFIX}{label}" if label else None


def get_all_relationships(nodes: list[KPINode]) -> list[RelationshipView]:
    """List every forward link in the forest exactly once.

    Synthesized reverse records are skipped so that a link shows up once,
    duplicates are collapsed by (source, target), and links whose target
    no longer exists are filtered out.

    Args:
        nodes: The forest to scan.

    Returns:
        RelationshipView entries in depth-first forest order.
    """
    from kpitree.tree.KPINode import build_node_index, iter_forest

    index = build_node_index(nodes)
    results: list[RelationshipView] = []
    seen: set[tuple[str, str]] = set()

    for node in iter_forest(nodes):
        for rel in node.relationships:
            if rel.is_reverse:
                continue
            key = (node.id, rel.target_id)
            if key in seen:
                continue
            seen.add(key)
            target = index.get(rel.target_id)
            if target is not None:
                results.append(RelationshipView(source=node, target=target, label=rel.label))

    return results


__all__ = [
    "REVERSE_LABEL_PREFIX",
    "REVERSE_SUFFIX",
    "NodeRelationship",
    "RelationshipView",
    "get_all_relationships",
    "reverse_label",
]
