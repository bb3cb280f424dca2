"""
Unit tests for services/registry.py
"""

import pytest

from retrofit.core.enums import ServiceName
from retrofit.errors import UnknownService
from retrofit.services import (
    EnergyService,
    FinancialService,
    LL97Service,
    NOIService,
    PropertyValueService,
    ServiceRegistry,
    UnitBreakdownService,
    default_services,
)


class TestServiceRegistry:
    """Test the closed service registry."""

    def test_default_registry(self):
        """Test all six services are registered in graph order."""
        registry = ServiceRegistry()
        assert len(registry) == 6
        assert [s.name for s in registry] == ServiceName.values()
        assert registry.names() == ServiceName.values()

    def test_lookup(self):
        """Test lookup by name and by enum member."""
        registry = ServiceRegistry()
        assert isinstance(registry.get("energy"), EnergyService)
        assert isinstance(registry[ServiceName.NOI], NOIService)
        assert "ll97" in registry
        assert "LL97" not in registry

    def test_unknown_lookup(self):
        """Test an unknown name raises UnknownService."""
        with pytest.raises(UnknownService):
            ServiceRegistry().get("solar")

    def test_missing_service_rejected(self):
        """Test a registry without every graph service is rejected."""
        services = [s for s in default_services() if s.name != "noi"]
        with pytest.raises(UnknownService):
            ServiceRegistry(services)

    def test_dependency_mismatch_rejected(self):
        """Test services must declare the graph's dependencies."""

        class WrongDeps(PropertyValueService):
            dependencies = ("energy",)

        services = [
            UnitBreakdownService(), EnergyService(), LL97Service(),
            FinancialService(), NOIService(), WrongDeps(),
        ]
        with pytest.raises(ValueError):
            ServiceRegistry(services)

    def test_field_ownership_is_disjoint(self):
        """Test two services may not own the same field."""

        class Overlapping(PropertyValueService):
            owned_fields = PropertyValueService.owned_fields + ("current_noi",)

        services = [
            UnitBreakdownService(), EnergyService(), LL97Service(),
            FinancialService(), NOIService(), Overlapping(),
        ]
        with pytest.raises(ValueError):
            ServiceRegistry(services)

    def test_owner_of(self):
        """Test field ownership lookup."""
        registry = ServiceRegistry()
        assert registry.owner_of("ptac_units") == "ai-breakdown"
        assert registry.owner_of("simple_payback_year") == "financial"
        assert registry.owner_of("nonexistent") is None

    def test_describe(self):
        """Test describe lists overridable fields per service."""
        described = {d["name"]: d for d in ServiceRegistry().describe()}
        assert described["energy"]["dependencies"] == ["ai-breakdown"]
        assert "ptac_units" in described["energy"]["overridable_fields"]
        assert described["property-value"]["overridable_fields"] == ["cap_rate"]
