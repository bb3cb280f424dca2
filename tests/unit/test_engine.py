"""
Unit tests for engine.py
"""

import threading

import pytest

from retrofit.bootstrap.config import EngineConfig, RetrofitConfig, StorageConfig
from retrofit.core.record_store import JsonFileRecordStore
from retrofit.dependencies.trigger_log import TriggerType
from retrofit.engine import CalculationEngine, ServiceStatus
from retrofit.errors import RecordConflict, RecordNotFound, UnknownService


class TestCreateCalculation:
    """Test record creation."""

    def test_create_from_dict(self, engine, building_data):
        """Test a dict profile is accepted and stored at revision 0."""
        record = engine.create_calculation(building_data)
        assert record.calculation_id
        assert record.building.units_res == 20
        assert engine.get_record(record.calculation_id).revision == 0

    def test_duplicate_id(self, engine, building, calculation_id):
        """Test creating an existing id raises RecordConflict."""
        with pytest.raises(RecordConflict):
            engine.create_calculation(building, calculation_id=calculation_id)


class TestExecution:
    """Test the trigger API."""

    def test_execute_all(self, engine, calculation_id):
        """Test a full run executes every service."""
        result = engine.execute_all(calculation_id)
        assert result.success
        assert engine.get_status(calculation_id).all_services_executed

    def test_execute_service_unknown(self, engine, calculation_id):
        """Test unknown names raise before anything runs."""
        with pytest.raises(UnknownService):
            engine.execute_service(calculation_id, "Energy")
        assert engine.get_record(calculation_id).revision == 0

    def test_execute_service_unknown_record(self, engine):
        """Test a missing calculation raises RecordNotFound."""
        with pytest.raises(RecordNotFound):
            engine.execute_service("missing", "energy")

    def test_default_actor(self, store, trigger_log, building):
        """Test the configured default actor is stamped on overrides."""
        engine = CalculationEngine(store=store, trigger_log=trigger_log, config=EngineConfig(default_actor="batch"))
        calc = engine.create_calculation(building).calculation_id
        engine.execute_all(calc)
        engine.execute_service(calc, "noi", {"vacancy_rate": 3.0})

        assert engine.get_record(calc).overrides_for("noi")[0].actor == "batch"

    def test_concurrent_runs_serialized(self, engine, completed_id):
        """Test concurrent cascades on one record never conflict."""
        results = []

        def run():
            results.append(engine.execute_service(completed_id, "energy"))

        threads = [threading.Thread(target=run) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(r.success for r in results)
        assert engine.get_record(completed_id).revision == 6 + 4 * 5

    def test_plan(self, engine):
        """Test plan exposes the planner."""
        assert list(engine.plan("financial")) == ["financial", "noi", "property-value"]
        assert len(engine.plan()) == 6


class TestStatus:
    """Test status queries."""

    def test_fresh_status(self, engine, calculation_id):
        """Test nothing is executed on a new calculation."""
        status = engine.get_status(calculation_id)
        assert set(status.service_versions.values()) == {None}
        assert status.last_calculated_service is None
        assert not status.all_services_executed

    def test_status_to_dict(self, engine, completed_id):
        """Test serialized status lists every service."""
        data = engine.get_status(completed_id).to_dict()
        assert data["last_calculated_service"] == "property-value"
        assert all(data["executed"].values())

    def test_executed_flags(self):
        """Test executed derives from version presence."""
        status = ServiceStatus("c", {"energy": "1.0.0+r2", "noi": None})
        assert status.executed == {"energy": True, "noi": False}


class TestReset:
    """Test clearing version stamps."""

    def test_reset_all(self, engine, completed_id, trigger_log):
        """Test a full reset clears every version but keeps field values."""
        cleared = engine.reset(completed_id)
        assert len(cleared) == 6

        record = engine.get_record(completed_id)
        assert record.service_versions == {}
        assert record.get("ptac_units") is not None
        assert trigger_log.query(calculation_id=completed_id, trigger_types={TriggerType.RESET})

    def test_reset_from_service(self, engine, completed_id):
        """Test reset from financial clears its closure only."""
        assert engine.reset(completed_id, from_service="financial") == ["financial", "noi", "property-value"]
        status = engine.get_status(completed_id)
        assert status.executed["ll97"]
        assert not status.executed["noi"]

    def test_reset_then_downstream_guarded(self, engine, completed_id):
        """Test a reset dependency blocks its dependents again."""
        engine.reset(completed_id, from_service="noi")
        result = engine.execute_service(completed_id, "property-value", cascade=False)
        assert not result.success

    def test_reset_unknown_service(self, engine, completed_id):
        """Test reset validates the service name."""
        with pytest.raises(UnknownService):
            engine.reset(completed_id, from_service="nope")


class TestFromConfig:
    """Test engine construction from configuration."""

    def test_json_backend(self, tmp_path):
        """Test the storage section selects the record store."""
        config = RetrofitConfig(
            engine=EngineConfig(service_timeout_seconds=5.0),
            storage=StorageConfig(backend="json", data_dir=str(tmp_path)),
        )
        engine = CalculationEngine.from_config(config)
        assert isinstance(engine.store, JsonFileRecordStore)
        assert engine.config.service_timeout_seconds == 5.0
