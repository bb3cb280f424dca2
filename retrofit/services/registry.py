"""
retrofit/services/registry.py - Closed registry of calculation services

Maps each ServiceName to one service instance. The registry is checked
against the dependency graph on construction so a service can never
declare dependencies the planner does not know about.
"""

from __future__ import annotations
from typing import Dict, Iterator, List, Optional
import logging

from retrofit.dependencies.graph import ServiceGraph, ServiceRef, get_default_graph
from retrofit.errors import UnknownService
from .base import CalculationService
from .energy import EnergyService
from .financial import FinancialService
from .ll97 import LL97Service
from .noi import NOIService
from .property_value import PropertyValueService
from .unit_breakdown import UnitBreakdownService

logger = logging.getLogger(__name__)


def default_services() -> List[CalculationService]:
    return [
        UnitBreakdownService(),
        EnergyService(),
        LL97Service(),
        FinancialService(),
        NOIService(),
        PropertyValueService(),
    ]


class ServiceRegistry:
    """Service name -> service instance, consistent with the graph."""

    def __init__(
        self,
        services: Optional[List[CalculationService]] = None,
        graph: Optional[ServiceGraph] = None,
    ):
        self._graph = graph or get_default_graph()
        self._services: Dict[str, CalculationService] = {}

        for service in services if services is not None else default_services():
            key = self._graph.resolve(service.name)
            self._services[key] = service

        self._check_consistency()

    def _check_consistency(self) -> None:
        missing = [s for s in self._graph.services if s not in self._services]
        if missing:
            raise UnknownService(missing[0], known=list(self._services))

        owners: Dict[str, str] = {}
        for name, service in self._services.items():
            declared = frozenset(service.dependencies)
            expected = self._graph.dependencies_of(name)
            if declared != expected:
                raise ValueError(
                    f"Service {name} declares dependencies {sorted(declared)}, "
                    f"graph has {sorted(expected)}"
                )
            for field_name in service.owned_fields:
                if field_name in owners:
                    raise ValueError(
                        f"Field {field_name} is owned by both {owners[field_name]} and {name}"
                    )
                owners[field_name] = name

    @property
    def graph(self) -> ServiceGraph:
        return self._graph

    def get(self, name: ServiceRef) -> CalculationService:
        return self._services[self._graph.resolve(name)]

    def __getitem__(self, name: ServiceRef) -> CalculationService:
        return self.get(name)

    def __contains__(self, name: object) -> bool:
        try:
            self._graph.resolve(name)  # type: ignore[arg-type]
        except UnknownService:
            return False
        return True

    def __iter__(self) -> Iterator[CalculationService]:
        return (self._services[s] for s in self._graph.services)

    def __len__(self) -> int:
        return len(self._services)

    def names(self) -> List[str]:
        return self._graph.services

    def owner_of(self, field_name: str) -> Optional[str]:
        for name, service in self._services.items():
            if field_name in service.owned_fields:
                return name
        return None

    def describe(self) -> List[Dict]:
        return [service.describe() for service in self]

