"""
kpitree.tree - KPI forest model, category rules and the editing store
"""

from kpitree.tree.categories import (
    CATEGORY_RULES,
    VALID_PARENT_CATEGORIES,
    infer_category,
    is_legal_parent,
)
from kpitree.tree.KPINode import (
    EmissionScope,
    ESGCategory,
    KPINode,
    NodeCategory,
    Position,
    build_node_index,
    find_node,
    forest_from_dicts,
    forest_to_dicts,
    generate_id,
    iter_forest,
)
from kpitree.tree.relations import NodeRelationship, RelationshipView, get_all_relationships
from kpitree.tree.store import (
    ROOT_SENTINEL,
    MoveValidation,
    NodeData,
    NodeSummary,
    TreeStore,
)

__all__ = [
    "CATEGORY_RULES",
    "ROOT_SENTINEL",
    "VALID_PARENT_CATEGORIES",
    "EmissionScope",
    "ESGCategory",
    "KPINode",
    "MoveValidation",
    "NodeCategory",
    "NodeData",
    "NodeRelationship",
    "NodeSummary",
    "Position",
    "RelationshipView",
    "TreeStore",
    "build_node_index",
    "find_node",
    "forest_from_dicts",
    "forest_to_dicts",
    "generate_id",
    "get_all_relationships",
    "infer_category",
    "is_legal_parent",
    "iter_forest",
]
