"""
retrofit/dependencies/graph.py - Service dependency graph

Static directed graph of the six calculation services. An edge A -> B means
"B depends on A", equivalently "A triggers B". Only depends_on is declared;
triggers is derived as its exact inverse so the two can never disagree.

    ai-breakdown -> energy
    energy       -> ll97, financial, noi
    ll97         -> noi
    financial    -> noi
    noi          -> property-value
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union
import logging

import networkx as nx

from retrofit.core.enums import ServiceName
from retrofit.errors import GraphCycleDetected, UnknownService

logger = logging.getLogger(__name__)


# =============================================================================
# SERVICE DEPENDENCIES
# =============================================================================

SERVICE_DEPENDENCIES: Dict[str, List[str]] = {
    ServiceName.AI_BREAKDOWN.value: [],
    ServiceName.ENERGY.value: [ServiceName.AI_BREAKDOWN.value],
    ServiceName.LL97.value: [ServiceName.ENERGY.value],
    ServiceName.FINANCIAL.value: [ServiceName.ENERGY.value],
    ServiceName.NOI.value: [
        ServiceName.ENERGY.value,
        ServiceName.LL97.value,
        ServiceName.FINANCIAL.value,
    ],
    ServiceName.PROPERTY_VALUE.value: [ServiceName.NOI.value],
}

# Tie-break order for services with no path between them
REGISTRY_ORDER: List[str] = ServiceName.values()


# =============================================================================
# SERVICE NODE
# =============================================================================

@dataclass(frozen=True)
class ServiceNode:
    """A service and its direct neighbours."""
    name: str
    depends_on: FrozenSet[str]
    triggers: FrozenSet[str]

    @property
    def is_root(self) -> bool:
        return not self.depends_on

    @property
    def is_terminal(self) -> bool:
        return not self.triggers


# =============================================================================
# SERVICE GRAPH
# =============================================================================

ServiceRef = Union[str, ServiceName]


class ServiceGraph:
    """
    Directed acyclic graph of calculation services.

    Validated on construction: every dependency must name a declared service
    and the graph must be acyclic. Queries are pure.
    """

    def __init__(
        self,
        dependencies: Optional[Dict[str, Iterable[str]]] = None,
        registry_order: Optional[List[str]] = None,
    ):
        declared = dependencies if dependencies is not None else SERVICE_DEPENDENCIES
        self._registry_order = list(registry_order or declared.keys())
        self._graph = nx.DiGraph()
        self._graph.add_nodes_from(declared.keys())

        for service, deps in declared.items():
            for dep in deps:
                if dep not in declared:
                    raise UnknownService(dep, known=list(declared))
                self._graph.add_edge(dep, service)

        self._topological_order = self._compute_order()

        logger.debug(
            f"Service graph built: {self._graph.number_of_nodes()} services, "
            f"{self._graph.number_of_edges()} edges"
        )

    # ==================== Construction ====================

    def _rank(self, name: str) -> int:
        if name in self._registry_order:
            return self._registry_order.index(name)
        return len(self._registry_order)

    def _detect_cycle(self) -> Optional[List[str]]:
        try:
            edges = nx.find_cycle(self._graph)
        except nx.NetworkXNoCycle:
            return None
        return [u for u, _ in edges] + [edges[0][0]]

    def _compute_order(self) -> List[str]:
        cycle = self._detect_cycle()
        if cycle:
            raise GraphCycleDetected(cycle)
        return list(nx.lexicographical_topological_sort(self._graph, key=self._rank))

    def add_dependency(self, dependent: str, dependency: str) -> None:
        """
        Add an edge after construction.

        The edge is rolled back if it would close a cycle.
        """
        self.resolve(dependent)
        self.resolve(dependency)
        self._graph.add_edge(dependency, dependent)
        try:
            self._topological_order = self._compute_order()
        except GraphCycleDetected:
            self._graph.remove_edge(dependency, dependent)
            raise

    # ==================== Queries ====================

    def resolve(self, name: ServiceRef) -> str:
        """Return the canonical service name, or raise UnknownService."""
        key = name.value if isinstance(name, ServiceName) else name
        if not isinstance(key, str) or key not in self._graph:
            raise UnknownService(name, known=self._topological_order)
        return key

    @property
    def services(self) -> List[str]:
        """All services in topological order."""
        return list(self._topological_order)

    def get_node(self, name: ServiceRef) -> ServiceNode:
        key = self.resolve(name)
        return ServiceNode(
            name=key,
            depends_on=frozenset(self._graph.predecessors(key)),
            triggers=frozenset(self._graph.successors(key)),
        )

    def dependencies_of(self, name: ServiceRef) -> FrozenSet[str]:
        """Services this service reads from directly."""
        return self.get_node(name).depends_on

    def triggers_of(self, name: ServiceRef) -> FrozenSet[str]:
        """Services that must re-run after this one changes."""
        return self.get_node(name).triggers

    def transitive_closure(self, name: ServiceRef) -> List[str]:
        """
        The service followed by everything it transitively triggers.

        Ordered so that each service appears after all of its dependencies
        that are also in the closure; independent services keep registry
        order.
        """
        key = self.resolve(name)
        cycle = self._detect_cycle()
        if cycle:
            raise GraphCycleDetected(cycle)
        closure = nx.descendants(self._graph, key) | {key}
        return [s for s in self._topological_order if s in closure]

    def all_upstream(self, name: ServiceRef) -> List[str]:
        """Every service this one transitively depends on, in order."""
        key = self.resolve(name)
        upstream = nx.ancestors(self._graph, key)
        return [s for s in self._topological_order if s in upstream]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": self.services,
            "nodes": {
                s: {
                    "depends_on": sorted(self._graph.predecessors(s), key=self._rank),
                    "triggers": sorted(self._graph.successors(s), key=self._rank),
                }
                for s in self._topological_order
            },
        }


# =============================================================================
# MODULE-LEVEL INSTANCE
# =============================================================================

_default_graph: Optional[ServiceGraph] = None


def get_default_graph() -> ServiceGraph:
    """Get or create the default service graph."""
    global _default_graph
    if _default_graph is None:
        _default_graph = ServiceGraph()
    return _default_graph
