"""Shared fixtures for the kpitree test suite."""

from __future__ import annotations

import pytest

from kpitree.tree.KPINode import EmissionScope, ESGCategory, KPINode
from kpitree.tree.relations import NodeRelationship
from kpitree.tree.store import TreeStore
from kpitree.workspace.storage import MemoryBlobStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_forest() -> list[KPINode]:
    """Three top-level trees:

    EBITDA (ebitda-root)
      Production (Revenue) (production-revenue)
        Coal Sales [Mt] (coal-sales)
        Overburden Removal (ob-removal)
      Cash Cost (cash-cost)
        Employee Cost (emp-cost)
        Fuel Cost [$M, E, scope 1] (fuel-cost)
          Diesel Use [kL] (diesel-use)
      Capex (capex)
    ESG Summary (esg-summary)
      GHG Emissions [tCO2e, E, scope 1] (ghg-total)
      Safety Incidents [S] (safety-incidents)
    Free Cash Flow (free-cash-flow)
    """
    return [
        KPINode(
            id="ebitda-root",
            name="EBITDA",
            unit="$M",
            children=[
                KPINode(
                    id="production-revenue",
                    name="Production (Revenue)",
                    children=[
                        KPINode(id="coal-sales", name="Coal Sales", unit="Mt"),
                        KPINode(id="ob-removal", name="Overburden Removal"),
                    ],
                ),
                KPINode(
                    id="cash-cost",
                    name="Cash Cost",
                    children=[
                        KPINode(id="emp-cost", name="Employee Cost"),
                        KPINode(
                            id="fuel-cost",
                            name="Fuel Cost",
                            unit="$M",
                            esg=ESGCategory.E,
                            scope=EmissionScope.DIRECT,
                            children=[KPINode(id="diesel-use", name="Diesel Use", unit="kL")],
                        ),
                    ],
                ),
                KPINode(id="capex", name="Capex"),
            ],
        ),
        KPINode(
            id="esg-summary",
            name="ESG Summary",
            children=[
                KPINode(
                    id="ghg-total",
                    name="GHG Emissions",
                    unit="tCO2e",
                    esg=ESGCategory.E,
                    scope=EmissionScope.DIRECT,
                ),
                KPINode(id="safety-incidents", name="Safety Incidents", esg=ESGCategory.S),
            ],
        ),
        KPINode(id="free-cash-flow", name="Free Cash Flow"),
    ]


def link(source: KPINode, target: KPINode, link_id: str, label: str | None = None) -> None:
    """Attach a forward edge and its reverse counterpart."""
    forward = NodeRelationship(id=link_id, target_id=target.id, label=label)
    source.relationships.append(forward)
    target.relationships.append(forward.reversed(source.id))


@pytest.fixture
def forest() -> list[KPINode]:
    return build_forest()


@pytest.fixture
def linked_forest() -> list[KPINode]:
    """The sample forest with fuel-cost <-> ghg-total linked as "Drives"."""
    nodes = build_forest()
    fuel = nodes[0].children[1].children[1]
    ghg = nodes[1].children[0]
    link(fuel, ghg, "link-fuel-ghg", "Drives")
    return nodes


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def store(forest, blob_store, clock) -> TreeStore:
    """TreeStore over the sample forest with in-memory persistence."""
    return TreeStore(forest, blob_store=blob_store, clock=clock)
