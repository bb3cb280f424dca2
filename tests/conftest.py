"""
Shared fixtures for the calculation engine tests.
"""

import pytest

from retrofit.core.record import BuildingProfile, CalculationRecord
from retrofit.core.record_store import InMemoryRecordStore
from retrofit.dependencies.trigger_log import TriggerLog
from retrofit.engine import CalculationEngine


@pytest.fixture
def building_data():
    """Eight-storey 1965 elevator building, no LL84 property-use breakdown."""
    return {
        "bbl": "1012340056",
        "address": "123 Example Ave",
        "borough": "MN",
        "building_class": "D4",
        "year_built": 1965,
        "num_floors": 8,
        "units_res": 20,
        "total_square_feet": 50000.0,
        "building_value": 5_000_000.0,
        "cap_rate": 5.0,
        "total_building_emissions_ll84": 400.0,
    }


@pytest.fixture
def building(building_data):
    return BuildingProfile.from_dict(building_data)


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def trigger_log():
    return TriggerLog()


@pytest.fixture
def engine(store, trigger_log):
    return CalculationEngine(store=store, trigger_log=trigger_log)


@pytest.fixture
def calculation_id(engine, building):
    """A freshly created calculation with no service executed."""
    return engine.create_calculation(building, calculation_id="calc-1").calculation_id


@pytest.fixture
def completed_id(engine, calculation_id):
    """A calculation with every service executed once."""
    result = engine.execute_all(calculation_id)
    result.raise_for_error()
    return calculation_id


@pytest.fixture
def completed_record(engine, completed_id) -> CalculationRecord:
    return engine.get_record(completed_id)
