"""KPINode - Node representation for KPI trees.

This module provides the core data structures of a KPI forest:
- NodeCategory: Closed set of hierarchy categories
- ESGCategory / EmissionScope: Sustainability classification tags
- Position: Layout coordinate carried by detached nodes
- KPINode: A tree node with children, links and markers
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Iterator

from kpitree.tree.relations import NodeRelationship

_ID_ALPHABET = string.digits + string.ascii_lowercase


class NodeCategory(Enum):
    """Categories used for hierarchy validation."""

    ROOT = "root"  # Top level (EBITDA)
    REVENUE = "revenue"  # Production/Revenue branch
    COST = "cost"  # Cash Cost branch
    FCF = "fcf"  # Free Cash Flow branch
    CAPEX = "capex"  # Capital Expenditure branch
    FINANCIAL = "financial"
    OPERATIONAL = "operational"
    MAINTENANCE = "maintenance"
    ESG = "esg"  # ESG Summary branch
    PRODUCTION = "production"  # OB, Coal, D&B
    EMPLOYEE = "employee"
    EQUIPMENT = "equipment"  # Tyre, fuel, R&M
    METRIC = "metric"  # Leaf metrics (flexible)


class ESGCategory(Enum):
    """Environmental / Social / Governance tag."""

    E = "E"
    S = "S"
    G = "G"


class EmissionScope(IntEnum):
    """GHG accounting scope."""

    DIRECT = 1
    INDIRECT = 2
    VALUE_CHAIN = 3


@dataclass
class Position:
    """2D layout coordinate, meaningful for detached nodes only."""

    x: float
    y: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Position:
        return cls(x=data["x"], y=data["y"])


@dataclass
class KPINode:
    """A node in a KPI forest.

    Attributes:
        id: Opaque unique id, stable for the node's lifetime.
        name: Display label.
        unit: Optional short unit string ("%", "$", "t").
        esg: Optional ESG classification.
        scope: Optional emission scope.
        category: Explicit category; inferred from id/name when None.
        children: Ordered child nodes (order is display and export order).
        is_detached: Floating node not attached under a parent in the
            source diagram.
        relationships: Outgoing links from this node.
        markers: Marker ids attached for display.
        position: Layout coordinate for detached nodes.
    """

    id: str
    name: str
    unit: str | None = None
    esg: ESGCategory | None = None
    scope: EmissionScope | None = None
    category: NodeCategory | None = None
    children: list[KPINode] = field(default_factory=list)
    is_detached: bool = False
    relationships: list[NodeRelationship] = field(default_factory=list)
    markers: list[str] = field(default_factory=list)
    position: Position | None = None

    @property
    def has_children(self) -> bool:
        """True if this node has at least one child."""
        return len(self.children) > 0

    def walk(self) -> Iterator[KPINode]:
        """Pre-order traversal of this node and its descendants."""
        yield self
        for child in self.children:
            yield from child.walk()

    def contains(self, node_id: str) -> bool:
        """True if node_id is this node or one of its descendants."""
        return any(n.id == node_id for n in self.walk())

    def has_link_to(self, target_id: str) -> bool:
        """True if any outgoing relationship points at target_id."""
        return any(r.target_id == target_id for r in self.relationships)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON wire shape (camelCase keys).

        Absent optional fields and empty collections are omitted.
        """
        result: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.unit is not None:
            result["unit"] = self.unit
        if self.esg is not None:
            result["esg"] = self.esg.value
        if self.scope is not None:
            result["scope"] = int(self.scope)
        if self.category is not None:
            result["category"] = self.category.value
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        if self.is_detached:
            result["isDetached"] = True
        if self.relationships:
            result["relationships"] = [rel.to_dict() for rel in self.relationships]
        if self.markers:
            result["markers"] = list(self.markers)
        if self.position is not None:
            result["position"] = self.position.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KPINode:
        """Create a KPINode tree from its JSON wire shape.

        Raises:
            KeyError: If the id is missing.
            ValueError: If esg, scope or category is not a known value.
            TypeError: If data is not a mapping.
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected an object, got {type(data).__name__}")
        esg = data.get("esg")
        scope = data.get("scope")
        category = data.get("category")
        position = data.get("position")
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            unit=data.get("unit"),
            esg=ESGCategory(esg) if esg else None,
            scope=EmissionScope(int(scope)) if scope else None,
            category=NodeCategory(category) if category else None,
            children=[cls.from_dict(child) for child in data.get("children") or []],
            is_detached=bool(data.get("isDetached", False)),
            relationships=[
                NodeRelationship.from_dict(rel) for rel in data.get("relationships") or []
            ],
            markers=list(data.get("markers") or []),
            position=Position.from_dict(position) if position else None,
        )


def generate_id(prefix: str = "node") -> str:
    """Generate a fresh time-based id, e.g. ``node-1718000000000-k3j9x0a1b``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def iter_forest(nodes: list[KPINode]) -> Iterator[KPINode]:
    """Pre-order traversal over every node of a forest."""
    for node in nodes:
        yield from node.walk()


def find_node(nodes: list[KPINode], node_id: str) -> KPINode | None:
    """Depth-first search for a node by id."""
    for node in iter_forest(nodes):
        if node.id == node_id:
            return node
    return None


def build_node_index(nodes: list[KPINode]) -> dict[str, KPINode]:
    """Map every id in the forest to its node (last occurrence wins)."""
    return {node.id: node for node in iter_forest(nodes)}


def forest_to_dicts(nodes: list[KPINode]) -> list[dict[str, Any]]:
    """Serialize a forest to a list of JSON-compatible dicts."""
    return [node.to_dict() for node in nodes]


def forest_from_dicts(data: list[dict[str, Any]]) -> list[KPINode]:
    """Build a forest from a list of JSON-compatible dicts."""
    return [KPINode.from_dict(item) for item in data]
