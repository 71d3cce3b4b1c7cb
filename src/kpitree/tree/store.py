"""TreeStore - Single source of truth for one editable KPI forest.

Every mutation is copy-on-write: the forest is deep-copied, the copy is
changed, and only a fully successful change replaces the live forest.
A rejected or failed operation therefore never leaves the forest
partially mutated.

Failure reporting is per operation:
- Moves return a MoveValidation carrying a human-readable reason.
- Lookup misses return None (id-producing operations) or False.
"""

from __future__ import annotations

import copy
import json
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from kpitree.tree.categories import infer_category, is_legal_parent
from kpitree.tree.KPINode import (
    EmissionScope,
    ESGCategory,
    KPINode,
    NodeCategory,
    find_node,
    generate_id,
    iter_forest,
)
from kpitree.tree.relations import NodeRelationship, RelationshipView, get_all_relationships

if TYPE_CHECKING:
    from kpitree.workspace.storage import BlobStore

logger = logging.getLogger(__name__)

# Pseudo-id standing for "top level" in move targets and pickers.
ROOT_SENTINEL = "__root__"
ROOT_SENTINEL_NAME = "Root Level"

MODIFICATIONS_KEY = "kpi-tree-modifications"
DEFAULT_MOVE_ERROR_TTL = 5.0
TARGET_NOT_FOUND = "Target node not found"


@dataclass(frozen=True)
class MoveValidation:
    """Outcome of a move validation.

    Attributes:
        valid: True if the move is legal.
        reason: Why the move was rejected (None when valid).
    """

    valid: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"valid": self.valid}
        if self.reason is not None:
            result["reason"] = self.reason
        return result


@dataclass(frozen=True)
class NodeData:
    """Editable fields of a node (add and edit forms)."""

    name: str
    unit: str | None = None
    esg: ESGCategory | None = None
    scope: EmissionScope | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeData:
        """Create NodeData from a request payload.

        Raises:
            KeyError: If name is missing.
            ValueError: If esg or scope is not a known value.
        """
        esg = data.get("esg")
        scope = data.get("scope")
        return cls(
            name=data["name"],
            unit=data.get("unit") or None,
            esg=ESGCategory(esg) if esg else None,
            scope=EmissionScope(int(scope)) if scope else None,
        )


@dataclass(frozen=True)
class NodeSummary:
    """Flattened node entry for pickers (e.g. the move dialog)."""

    id: str
    name: str
    path: str
    has_children: bool
    category: NodeCategory

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "hasChildren": self.has_children,
            "category": self.category.value,
        }


@dataclass
class _Location:
    """Where a node sits: its parent (None at top level) and sibling list."""

    parent: KPINode | None
    siblings: list[KPINode]
    index: int


def _locate(nodes: list[KPINode], node_id: str, parent: KPINode | None = None) -> _Location | None:
    for index, node in enumerate(nodes):
        if node.id == node_id:
            return _Location(parent=parent, siblings=nodes, index=index)
        found = _locate(node.children, node_id, node)
        if found is not None:
            return found
    return None


def _is_root_target(target_parent_id: str | None) -> bool:
    return target_parent_id is None or target_parent_id == ROOT_SENTINEL


class TreeStore:
    """Owns one KPI forest and exposes its editing operations.

    Args:
        nodes: Initial forest (deep-copied).
        view_key: Key of the dataset being edited; scopes the dirty flag.
        blob_store: Optional key-value store for the dirty flag.
        config: Configuration dict (reads ``tree.move_error_ttl``).
        clock: Monotonic clock used to expire move errors.
        on_change: Called with the new forest after every mutation.
    """

    def __init__(
        self,
        nodes: list[KPINode] | None = None,
        view_key: str = "default",
        blob_store: BlobStore | None = None,
        config: dict[str, Any] | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_change: Callable[[list[KPINode]], None] | None = None,
    ) -> None:
        tree_config = (config or {}).get("tree", {})
        self._move_error_ttl = float(tree_config.get("move_error_ttl", DEFAULT_MOVE_ERROR_TTL))
        self._blob_store = blob_store
        self._clock = clock
        self.on_change = on_change

        self._nodes: list[KPINode] = []
        self._original: list[KPINode] = []
        self._view_key = view_key
        self._has_unsaved_changes = False

        self._move_error: str | None = None
        self._move_error_at = 0.0

        self._link_source_id: str | None = None
        self._link_source_name = ""
        self._hidden_relationships: set[str] = set()

        self.init_store(nodes or [], view_key)

    # ─────────────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────────────

    def init_store(self, nodes: list[KPINode], view_key: str = "default") -> None:
        """Load a forest, remembering it as the reset point."""
        self._nodes = copy.deepcopy(nodes)
        self._original = copy.deepcopy(nodes)
        self._view_key = view_key
        self._has_unsaved_changes = False

    @property
    def nodes(self) -> list[KPINode]:
        """The live forest."""
        return self._nodes

    @property
    def view_key(self) -> str:
        return self._view_key

    @property
    def has_unsaved_changes(self) -> bool:
        return self._has_unsaved_changes

    def set_tree_data(self, nodes: list[KPINode]) -> None:
        """Replace the whole forest (counts as an unsaved change)."""
        self._nodes = copy.deepcopy(nodes)
        self._has_unsaved_changes = True
        if self.on_change is not None:
            self.on_change(self._nodes)

    def reset_changes(self) -> None:
        """Restore the forest loaded by init_store and drop the dirty flag."""
        self._nodes = copy.deepcopy(self._original)
        self._has_unsaved_changes = False
        if self._blob_store is not None:
            self._blob_store.remove(self._modifications_key())
        if self.on_change is not None:
            self.on_change(self._nodes)

    def _modifications_key(self) -> str:
        return f"{MODIFICATIONS_KEY}-{self._view_key}"

    def _save_modifications(self) -> None:
        """Record a last-modified timestamp for this view."""
        if self._blob_store is None:
            return
        payload = json.dumps({"timestamp": int(time.time() * 1000)})
        try:
            self._blob_store.set(self._modifications_key(), payload)
        except OSError as e:
            logger.warning("Could not record modification for %s: %s", self._view_key, e)

    def _commit(self, nodes: list[KPINode]) -> None:
        self._nodes = nodes
        self._has_unsaved_changes = True
        self._save_modifications()
        if self.on_change is not None:
            self.on_change(self._nodes)

    def _working_copy(self) -> list[KPINode]:
        return copy.deepcopy(self._nodes)

    def _fresh_id(self, prefix: str, taken: set[str]) -> str:
        new_id = generate_id(prefix)
        while new_id in taken:
            new_id = generate_id(prefix)
        taken.add(new_id)
        return new_id

    # ─────────────────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────────────────

    def find_node_by_id(self, node_id: str) -> KPINode | None:
        """Depth-first search for a node by id."""
        return find_node(self._nodes, node_id)

    def find_parent_of_node(self, node_id: str) -> KPINode | str | None:
        """Find the direct parent of a node.

        Returns:
            The parent node, ROOT_SENTINEL if the node is top-level, or
            None if the node does not exist.
        """
        location = _locate(self._nodes, node_id)
        if location is None:
            return None
        if location.parent is None:
            return ROOT_SENTINEL
        return location.parent

    def is_descendant(self, node_id: str, target_id: str) -> bool:
        """True if target_id is node_id itself or lies in its subtree."""
        node = self.find_node_by_id(node_id)
        if node is None:
            return False
        return node.contains(target_id)

    def count_nodes(self) -> int:
        """Total number of nodes in the forest."""
        return sum(1 for _ in iter_forest(self._nodes))

    def get_all_nodes(self) -> list[NodeSummary]:
        """Flatten the forest with breadcrumb paths, led by the root sentinel."""
        result = [
            NodeSummary(
                id=ROOT_SENTINEL,
                name=ROOT_SENTINEL_NAME,
                path=ROOT_SENTINEL_NAME,
                has_children=True,
                category=NodeCategory.ROOT,
            )
        ]

        def traverse(nodes: list[KPINode], path: list[str]) -> None:
            for node in nodes:
                current = [*path, node.name]
                result.append(
                    NodeSummary(
                        id=node.id,
                        name=node.name,
                        path=" > ".join(current),
                        has_children=node.has_children,
                        category=infer_category(node),
                    )
                )
                traverse(node.children, current)

        traverse(self._nodes, [])
        return result

    # ─────────────────────────────────────────────────────────────────────────
    # Move API
    # ─────────────────────────────────────────────────────────────────────────

    def _check_categories(self, source: KPINode, target: KPINode | None) -> MoveValidation:
        source_category = infer_category(source)
        if target is None:
            if not is_legal_parent(source_category, NodeCategory.ROOT):
                return MoveValidation(False, f"{source.name} cannot be moved to root level")
            return MoveValidation(True)

        target_category = infer_category(target)
        if not is_legal_parent(source_category, target_category):
            return MoveValidation(
                False,
                f"{source_category.value} items cannot be moved under "
                f"{target_category.value} items.",
            )
        return MoveValidation(True)

    def validate_move(self, node_id: str, target_parent_id: str | None) -> MoveValidation:
        """Check whether node_id may be reattached under target_parent_id.

        Args:
            node_id: Node to move.
            target_parent_id: New parent id, or None / ROOT_SENTINEL for
                top level.

        Returns:
            MoveValidation with a reason on rejection.
        """
        if node_id == target_parent_id:
            return MoveValidation(False, "Cannot move a node to itself")

        source = self.find_node_by_id(node_id)
        if source is None:
            return MoveValidation(False, "Source node not found")

        to_root = _is_root_target(target_parent_id)
        if not to_root and source.contains(target_parent_id):
            return MoveValidation(False, "Cannot move a node into its own descendant")

        if infer_category(source) is NodeCategory.ROOT:
            return MoveValidation(False, f"Cannot move root-level node '{source.name}'")

        target = None if to_root else self.find_node_by_id(target_parent_id)
        if not to_root and target is None:
            return MoveValidation(False, TARGET_NOT_FOUND)

        return self._check_categories(source, target)

    @property
    def move_error(self) -> str | None:
        """Reason of the last rejected move, until it expires."""
        if self._move_error is None:
            return None
        if self._clock() - self._move_error_at >= self._move_error_ttl:
            self._move_error = None
        return self._move_error

    def clear_move_error(self) -> None:
        self._move_error = None

    def move_node(self, node_id: str, target_parent_id: str | None) -> MoveValidation:
        """Move a subtree under a new parent (as its last child).

        A rejected move leaves the forest unchanged and records the
        reason as a transient move error. A move whose target id does
        not exist is a silent no-op.
        """
        validation = self.validate_move(node_id, target_parent_id)
        if not validation.valid:
            if validation.reason != TARGET_NOT_FOUND:
                self._move_error = validation.reason or "Invalid move"
                self._move_error_at = self._clock()
            return validation

        working = self._working_copy()
        location = _locate(working, node_id)
        if location is None:
            return MoveValidation(False, "Node not found")
        moved = location.siblings.pop(location.index)

        if _is_root_target(target_parent_id):
            working.append(moved)
        else:
            target = find_node(working, target_parent_id)
            if target is None:
                return MoveValidation(False, TARGET_NOT_FOUND)
            target.children.append(moved)

        self._commit(working)
        return validation

    # ─────────────────────────────────────────────────────────────────────────
    # Node API
    # ─────────────────────────────────────────────────────────────────────────

    def _new_leaf(self, data: NodeData, taken: set[str]) -> KPINode:
        return KPINode(
            id=self._fresh_id("node", taken),
            name=data.name,
            unit=data.unit,
            esg=data.esg,
            scope=data.scope,
            category=NodeCategory.METRIC,
        )

    def add_node(self, parent_id: str | None, data: NodeData) -> str | None:
        """Append a new metric leaf as the last child of parent_id.

        No hierarchy validation is applied to additions. A None or
        ROOT_SENTINEL parent appends a new top-level node.

        Returns:
            The new node id, or None if the parent does not exist.
        """
        working = self._working_copy()
        taken = {n.id for n in iter_forest(working)}
        if _is_root_target(parent_id):
            siblings = working
        else:
            parent = find_node(working, parent_id)
            if parent is None:
                return None
            siblings = parent.children

        new_node = self._new_leaf(data, taken)
        siblings.append(new_node)
        self._commit(working)
        return new_node.id

    def add_sibling_node(
        self, anchor_id: str, data: NodeData, position: str = "after"
    ) -> str | None:
        """Insert a new metric leaf right before or after anchor_id.

        Args:
            anchor_id: Existing node (top-level anchors are supported).
            data: Fields of the new node.
            position: "before" or "after".

        Returns:
            The new node id, or None if the anchor does not exist.

        Raises:
            ValueError: If position is not "before" or "after".
        """
        if position not in ("before", "after"):
            raise ValueError(f"Unknown sibling position: {position}")

        working = self._working_copy()
        location = _locate(working, anchor_id)
        if location is None:
            return None

        taken = {n.id for n in iter_forest(working)}
        new_node = self._new_leaf(data, taken)
        offset = 0 if position == "before" else 1
        location.siblings.insert(location.index + offset, new_node)
        self._commit(working)
        return new_node.id

    def edit_node(self, node_id: str, data: NodeData) -> bool:
        """Replace name, unit, esg and scope of a node in place."""
        working = self._working_copy()
        node = find_node(working, node_id)
        if node is None:
            return False
        node.name = data.name
        node.unit = data.unit
        node.esg = data.esg
        node.scope = data.scope
        self._commit(working)
        return True

    def delete_node(self, node_id: str) -> bool:
        """Remove a node and its whole subtree.

        Relationships elsewhere that target removed ids are kept as
        tombstones; readers filter them out.
        """
        working = self._working_copy()
        location = _locate(working, node_id)
        if location is None:
            return False
        del location.siblings[location.index]
        self._commit(working)
        return True

    def duplicate_node(self, node_id: str) -> str | None:
        """Clone a subtree with fresh ids and insert it as the next sibling.

        Only the clone's root gets the " (copy)" suffix. Relationships
        and markers are copied by value and keep their original targets.

        Returns:
            Id of the cloned root, or None if node_id does not exist.
        """
        working = self._working_copy()
        location = _locate(working, node_id)
        if location is None:
            return None

        taken = {n.id for n in iter_forest(working)}
        clone = copy.deepcopy(location.siblings[location.index])
        for node in clone.walk():
            node.id = self._fresh_id("node", taken)
        clone.name = f"{clone.name} (copy)"

        location.siblings.insert(location.index + 1, clone)
        self._commit(working)
        return clone.id

    def toggle_marker(self, node_id: str, marker: str) -> bool:
        """Add marker if absent, remove it if present."""
        working = self._working_copy()
        node = find_node(working, node_id)
        if node is None:
            return False
        if marker in node.markers:
            node.markers = [m for m in node.markers if m != marker]
        else:
            node.markers = [*node.markers, marker]
        self._commit(working)
        return True

    # ─────────────────────────────────────────────────────────────────────────
    # Relationship API
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def linking_mode(self) -> bool:
        return self._link_source_id is not None

    @property
    def link_source_id(self) -> str | None:
        return self._link_source_id

    @property
    def link_source_name(self) -> str:
        return self._link_source_name

    def start_link_mode(self, source_id: str, source_name: str = "") -> None:
        """Select the source node of the next create_link call."""
        self._link_source_id = source_id
        self._link_source_name = source_name

    def cancel_link_mode(self) -> None:
        self._link_source_id = None
        self._link_source_name = ""

    def create_link(self, target_id: str, label: str | None = None) -> bool:
        """Link the active link source to target_id.

        Stores the forward edge on the source and, unless the target
        already links back, a synthesized reverse edge on the target.
        Link mode is always left afterwards.

        Returns:
            True if the link was created; False for a missing source,
            a self-link, an unknown node, or an existing link.
        """
        source_id = self._link_source_id
        try:
            if not source_id or source_id == target_id:
                return False

            working = self._working_copy()
            source = find_node(working, source_id)
            target = find_node(working, target_id)
            if source is None or target is None:
                return False
            if source.has_link_to(target_id):
                return False

            taken = {r.id for n in iter_forest(working) for r in n.relationships}
            forward = NodeRelationship(
                id=self._fresh_id("link", taken), target_id=target_id, label=label or None
            )
            source.relationships.append(forward)
            if not target.has_link_to(source_id):
                target.relationships.append(forward.reversed(source_id))

            self._commit(working)
            return True
        finally:
            self.cancel_link_mode()

    def delete_link(self, source_id: str, target_id: str) -> bool:
        """Remove the link between two nodes in both directions."""
        working = self._working_copy()
        source = find_node(working, source_id)
        if source is None or not source.has_link_to(target_id):
            return False

        source.relationships = [r for r in source.relationships if r.target_id != target_id]
        target = find_node(working, target_id)
        if target is not None:
            target.relationships = [r for r in target.relationships if r.target_id != source_id]

        self._commit(working)
        return True

    def update_link_label(self, source_id: str, target_id: str, label: str | None) -> bool:
        """Rewrite the label of the edge source_id -> target_id only."""
        working = self._working_copy()
        source = find_node(working, source_id)
        if source is None or not source.has_link_to(target_id):
            return False
        for rel in source.relationships:
            if rel.target_id == target_id:
                rel.label = label or None
        self._commit(working)
        return True

    def node_relationships(self, node_id: str) -> list[NodeRelationship]:
        """Edges of one node whose targets still exist."""
        node = self.find_node_by_id(node_id)
        if node is None:
            return []
        return [r for r in node.relationships if self.find_node_by_id(r.target_id) is not None]

    def get_all_relationships(self) -> list[RelationshipView]:
        """Every forward link in the forest, listed once."""
        return get_all_relationships(self._nodes)

    def toggle_relationship_visibility(self, source_id: str, target_id: str) -> bool:
        """Flip whether a link is hidden. Returns the new hidden state."""
        key = f"{source_id}->{target_id}"
        if key in self._hidden_relationships:
            self._hidden_relationships.discard(key)
            return False
        self._hidden_relationships.add(key)
        return True

    def is_relationship_hidden(self, source_id: str, target_id: str) -> bool:
        return f"{source_id}->{target_id}" in self._hidden_relationships


__all__ = [
    "MODIFICATIONS_KEY",
    "ROOT_SENTINEL",
    "ROOT_SENTINEL_NAME",
    "MoveValidation",
    "NodeData",
    "NodeSummary",
    "TreeStore",
]
