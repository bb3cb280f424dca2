"""
Unit tests for dependencies/graph.py

Tests the ServiceGraph, closure ordering and cycle detection.
"""

import pytest

from retrofit.core.enums import ServiceName
from retrofit.dependencies.graph import (
    REGISTRY_ORDER,
    SERVICE_DEPENDENCIES,
    ServiceGraph,
    get_default_graph,
)
from retrofit.errors import GraphCycleDetected, UnknownService


@pytest.fixture
def graph():
    return ServiceGraph()


class TestServiceDependencies:
    """Test the declared dependency table."""

    def test_every_service_declared(self):
        """Test all six services appear in the table."""
        assert set(SERVICE_DEPENDENCIES) == set(ServiceName.values())

    def test_registry_order(self):
        """Test registry order follows the enum."""
        assert REGISTRY_ORDER == [
            "ai-breakdown", "energy", "ll97", "financial", "noi", "property-value",
        ]


class TestNeighbours:
    """Test direct dependency and trigger lookups."""

    def test_root_and_terminal(self, graph):
        """Test ai-breakdown is the root and property-value the terminal."""
        assert graph.get_node("ai-breakdown").is_root
        assert graph.get_node("property-value").is_terminal
        assert not graph.get_node("energy").is_root

    def test_dependencies_of(self, graph):
        """Test noi reads from energy, ll97 and financial."""
        assert graph.dependencies_of("noi") == frozenset({"energy", "ll97", "financial"})
        assert graph.dependencies_of("ai-breakdown") == frozenset()

    def test_triggers_are_inverse_of_dependencies(self, graph):
        """Test B in triggers(A) iff A in depends_on(B)."""
        for a in graph.services:
            for b in graph.services:
                assert (b in graph.triggers_of(a)) == (a in graph.dependencies_of(b))

    def test_accepts_enum_members(self, graph):
        """Test ServiceName members resolve like their values."""
        assert graph.triggers_of(ServiceName.ENERGY) == frozenset({"ll97", "financial", "noi"})

    def test_unknown_service(self, graph):
        """Test unknown names raise UnknownService."""
        with pytest.raises(UnknownService):
            graph.dependencies_of("solar")

    def test_lookup_is_case_sensitive(self, graph):
        """Test names must match exactly."""
        with pytest.raises(UnknownService):
            graph.triggers_of("Energy")


class TestTransitiveClosure:
    """Test closure computation and ordering."""

    def test_closure_from_energy(self, graph):
        """Test energy triggers everything downstream, siblings in registry order."""
        assert graph.transitive_closure("energy") == [
            "energy", "ll97", "financial", "noi", "property-value",
        ]

    def test_closure_from_root_is_everything(self, graph):
        """Test the root closure covers every service."""
        assert graph.transitive_closure("ai-breakdown") == REGISTRY_ORDER

    def test_closure_from_terminal(self, graph):
        """Test the terminal closure is itself."""
        assert graph.transitive_closure("property-value") == ["property-value"]

    def test_closure_from_sibling(self, graph):
        """Test financial does not pull in its sibling ll97."""
        assert graph.transitive_closure("financial") == ["financial", "noi", "property-value"]

    def test_closure_respects_dependencies(self, graph):
        """Test every service follows its in-closure dependencies."""
        for start in graph.services:
            closure = graph.transitive_closure(start)
            assert closure[0] == start
            assert len(closure) == len(set(closure))
            for position, service in enumerate(closure):
                for dep in graph.dependencies_of(service):
                    if dep in closure:
                        assert closure.index(dep) < position

    def test_all_upstream(self, graph):
        """Test ancestors of property-value in order."""
        assert graph.all_upstream("property-value") == [
            "ai-breakdown", "energy", "ll97", "financial", "noi",
        ]


class TestGraphValidation:
    """Test construction-time checks."""

    def test_cycle_rejected_at_construction(self):
        """Test a cyclic table raises GraphCycleDetected."""
        with pytest.raises(GraphCycleDetected) as exc_info:
            ServiceGraph({"a": ["b"], "b": ["a"]})
        assert set(exc_info.value.cycle) == {"a", "b"}

    def test_orphan_edge_rejected(self):
        """Test a dependency on an undeclared service is rejected."""
        with pytest.raises(UnknownService):
            ServiceGraph({"a": ["ghost"]})

    def test_add_dependency_rolls_back_cycle(self):
        """Test an edge closing a cycle is rejected and removed."""
        graph = ServiceGraph({"a": [], "b": ["a"], "c": ["b"]})
        with pytest.raises(GraphCycleDetected):
            graph.add_dependency("a", "c")
        assert graph.dependencies_of("a") == frozenset()
        assert graph.transitive_closure("a") == ["a", "b", "c"]

    def test_default_graph_singleton(self):
        """Test get_default_graph returns one shared instance."""
        assert get_default_graph() is get_default_graph()

    def test_to_dict(self, graph):
        """Test serialized form lists order and neighbours."""
        data = graph.to_dict()
        assert data["order"] == REGISTRY_ORDER
        assert data["nodes"]["energy"]["triggers"] == ["ll97", "financial", "noi"]
