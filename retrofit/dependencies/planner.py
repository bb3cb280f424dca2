"""
retrofit/dependencies/planner.py - Execution planning

Turns a request ("run everything" or "run from service X") into an
immutable ExecutionPlan. Plans are computed once per request and never
change while the cascade runs.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

from .graph import ServiceGraph, ServiceRef, get_default_graph


@dataclass(frozen=True)
class ExecutionPlan:
    """Ordered services one request will run."""
    services: Tuple[str, ...]
    start_service: Optional[str] = None
    cascade: bool = True

    def __iter__(self) -> Iterator[str]:
        return iter(self.services)

    def __len__(self) -> int:
        return len(self.services)

    def __contains__(self, name: object) -> bool:
        return name in self.services

    @property
    def first(self) -> Optional[str]:
        return self.services[0] if self.services else None

    def index(self, name: str) -> int:
        return self.services.index(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "services": list(self.services),
            "start_service": self.start_service,
            "cascade": self.cascade,
        }


class ExecutionPlanner:
    """Resolves execution requests against the service graph."""

    def __init__(self, graph: Optional[ServiceGraph] = None):
        self._graph = graph or get_default_graph()

    @property
    def graph(self) -> ServiceGraph:
        return self._graph

    def plan_all(self) -> ExecutionPlan:
        """Every service in topological order."""
        return ExecutionPlan(services=tuple(self._graph.services), cascade=True)

    def plan_from(self, name: ServiceRef, cascade: bool = True) -> ExecutionPlan:
        """
        Plan a run starting at one service.

        Args:
            name: Exact, case-sensitive service name
            cascade: Include everything the service transitively triggers

        Raises:
            UnknownService: if the name is not a registered service
        """
        key = self._graph.resolve(name)
        if not cascade:
            return ExecutionPlan(services=(key,), start_service=key, cascade=False)
        return ExecutionPlan(
            services=tuple(self._graph.transitive_closure(key)),
            start_service=key,
            cascade=True,
        )
