"""
Unit tests for services/energy.py and the EFLH table
"""

import pytest

from retrofit.core.record import CalculationRecord
from retrofit.errors import ComputationError, MissingRequiredUpstreamData
from retrofit.services import constants as C
from retrofit.services.base import ServiceInput
from retrofit.services.energy import EnergyService


def energy_input(**values) -> ServiceInput:
    merged = {"ptac_units": 10, "year_built": 1965, "num_floors": 8}
    merged.update(C.ENERGY_DEFAULTS)
    merged.update(values)
    return ServiceInput("energy", merged)


@pytest.fixture
def service():
    return EnergyService()


class TestEFLH:
    """Test EFLH lookup by height class and construction era."""

    @pytest.mark.parametrize("year_built,num_floors,expected", [
        (1920, 5, 974),
        (1939, 6, 974),
        (1940, 6, 738),
        (1965, 8, 513),
        (1979, 7, 385),
        (2006, 12, 385),
        (2007, 3, 491),
        (2020, 30, 214),
    ])
    def test_lookup(self, year_built, num_floors, expected):
        """Test era and height boundaries."""
        assert C.eflh_hours(year_built, num_floors) == expected


class TestEnergyService:
    """Test energy calculations."""

    def test_ptac_totals_scale_with_units(self, service):
        """Test PTAC building totals are unit count times per-unit values."""
        fields = service.execute(energy_input()).fields
        assert fields["annual_building_therms_heating_ptac"] == pytest.approx(2550)
        assert fields["annual_building_kwh_cooling_ptac"] == pytest.approx(160000)
        assert fields["annual_building_mmbtu_total_ptac"] == pytest.approx(10 * (25.5 + 5.459427))

    def test_pthp_heating(self, service):
        """Test PTHP heating kWh = capacity / 3.412 / COP * EFLH * units."""
        fields = service.execute(energy_input()).fields
        expected = (8.0 / 3.412) / 1.51 * 513 * 10
        assert fields["eflh_hours"] == 513
        assert fields["annual_building_kwh_heating_pthp"] == pytest.approx(expected)
        assert fields["annual_building_kwh_cooling_pthp"] == fields["annual_building_kwh_cooling_ptac"]

    def test_costs_and_savings(self, service):
        """Test savings are PTAC cost minus PTHP cost."""
        fields = service.execute(energy_input()).fields
        assert fields["annual_energy_cost_ptac"] == pytest.approx(160000 * 0.24 + 2550 * 1.45)
        assert fields["annual_energy_savings"] == pytest.approx(
            fields["annual_energy_cost_ptac"] - fields["annual_energy_cost_pthp"]
        )
        assert fields["energy_reduction_percentage"] > 0

    def test_retrofit_cost(self, service):
        """Test retrofit cost includes installation and contingency."""
        fields = service.execute(energy_input()).fields
        assert fields["total_retrofit_cost"] == pytest.approx((1100 + 450) * 10 * 1.10)

    def test_configuration_echoes_inputs(self, service):
        """Test energy_configuration records the constants used."""
        fields = service.execute(energy_input(pthp_cop=2.0)).fields
        assert fields["energy_configuration"]["pthp_cop"] == 2.0
        assert fields["energy_configuration"]["ptac_units"] == 10

    def test_output_fields_are_owned(self, service):
        """Test execute writes exactly the declared fields."""
        assert set(service.execute(energy_input()).fields) == set(service.owned_fields)

    def test_zero_cop_is_computation_error(self, service):
        """Test a zero COP fails in execute with ComputationError."""
        with pytest.raises(ComputationError):
            service.execute(energy_input(pthp_cop=0))


class TestEnergyValidation:
    """Test energy input checks."""

    def test_valid_defaults(self, service):
        """Test the default constants validate cleanly."""
        result = service.validate_input(energy_input())
        assert result.valid
        assert not result.warnings

    def test_non_positive_units(self, service):
        """Test zero PTAC units is an error."""
        result = service.validate_input(energy_input(ptac_units=0))
        assert [e.field for e in result.errors] == ["ptac_units"]

    def test_year_built_range(self, service):
        """Test year_built before 1800 is an error."""
        result = service.validate_input(energy_input(year_built=1700))
        assert [e.field for e in result.errors] == ["year_built"]

    def test_floors_required(self, service):
        """Test a missing floor count is an error."""
        result = service.validate_input(energy_input(num_floors=None))
        assert [e.field for e in result.errors] == ["num_floors"]

    def test_override_outside_typical_range_warns(self, service):
        """Test a COP of 12 is accepted with a warning."""
        service_input = energy_input(pthp_cop=12.0)
        service_input.overrides = {"pthp_cop": 12.0}
        result = service.validate_input(service_input)
        assert result.valid
        assert [w.field for w in result.warnings] == ["pthp_cop"]

    def test_requires_breakdown(self, service, building):
        """Test energy refuses to run before ai-breakdown."""
        with pytest.raises(MissingRequiredUpstreamData) as exc_info:
            service.build_input_from_record(CalculationRecord(building=building))
        assert exc_info.value.details["missing_services"] == ["ai-breakdown"]

    def test_ptac_override_merges(self, service, building):
        """Test an overridden PTAC count replaces the upstream value."""
        record = CalculationRecord(building=building)
        record.apply_output("ai-breakdown", {"ptac_units": 48}, "1.0.0+r1")
        service_input = service.build_input_from_record(record, {"ptac_units": 18})

        assert service_input["ptac_units"] == 18
        assert service_input.original_values == {"ptac_units": 48}
