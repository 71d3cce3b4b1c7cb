"""
kpitree - KPI tree editing engine

kpitree keeps hierarchical KPI trees (EBITDA down to leaf metrics)
consistent while they are edited: category-aware move validation,
relationship links layered over the hierarchy, tabbed workspaces, and
import/export through plain JSON and the XMind Zen container format.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kpitree")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"  # Not installed
__author__ = "KPI Tree Dashboard"
__license__ = "MIT"

from kpitree.tree import (
    ESGCategory,
    EmissionScope,
    KPINode,
    NodeCategory,
    NodeRelationship,
    TreeStore,
)

__all__ = [
    "__version__",
    "ESGCategory",
    "EmissionScope",
    "KPINode",
    "NodeCategory",
    "NodeRelationship",
    "TreeStore",
]
