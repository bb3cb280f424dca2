"""
Unit tests for dependencies/cascade.py

Tests step-by-step persistence, fail-fast behaviour, error capture,
timeouts and progress notification.
"""

import time
import pytest
from unittest.mock import Mock

from retrofit.core.enums import CascadeStatus, StepState
from retrofit.core.record import CalculationRecord
from retrofit.core.record_store import InMemoryRecordStore
from retrofit.dependencies.cascade import CascadeExecutor, CascadeResult, StepResult
from retrofit.dependencies.planner import ExecutionPlan, ExecutionPlanner
from retrofit.dependencies.trigger_log import TriggerType
from retrofit.errors import (
    ComputationError,
    MissingRequiredUpstreamData,
    RecordConflict,
    RecordNotFound,
    ServiceTimeout,
    UnknownOverrideField,
    ValidationFailed,
)
from retrofit.services import (
    EnergyService,
    FinancialService,
    LL97Service,
    NOIService,
    PropertyValueService,
    ServiceRegistry,
    UnitBreakdownService,
)


def registry_with(property_value_service):
    return ServiceRegistry([
        UnitBreakdownService(),
        EnergyService(),
        LL97Service(),
        FinancialService(),
        NOIService(),
        property_value_service,
    ])


class SlowPropertyValue(PropertyValueService):
    def execute(self, service_input):
        time.sleep(0.5)
        return super().execute(service_input)


class BrokenPropertyValue(PropertyValueService):
    def execute(self, service_input):
        raise KeyError("noi")


class TrespassingPropertyValue(PropertyValueService):
    def execute(self, service_input):
        output = super().execute(service_input)
        output.fields["current_noi"] = 0.0
        return output


class InterleavedWriteStore(InMemoryRecordStore):
    """Another writer saves the record just before the nth save."""

    def __init__(self, conflict_on):
        super().__init__()
        self.conflict_on = conflict_on
        self.saves = 0

    def save(self, calculation_id, record):
        self.saves += 1
        if self.saves == self.conflict_on:
            super().save(calculation_id, self.load(calculation_id))
        return super().save(calculation_id, record)


@pytest.fixture
def planner():
    return ExecutionPlanner(ServiceRegistry().graph)


@pytest.fixture
def record_id(store, building):
    return store.create(CalculationRecord(calculation_id="calc-x", building=building)).calculation_id


@pytest.fixture
def executor(store, trigger_log):
    return CascadeExecutor(store, ServiceRegistry(), trigger_log=trigger_log)


class TestCascadeResult:
    """Test result bookkeeping."""

    def test_steps_created_pending(self):
        """Test every planned service starts PENDING."""
        result = CascadeResult("c", "calc", ExecutionPlan(("noi", "property-value")))
        assert list(result.steps) == ["noi", "property-value"]
        assert result.not_run == ["noi", "property-value"]
        assert result.status == CascadeStatus.SUCCEEDED

    def test_partial_status(self):
        """Test PARTIAL when something succeeded before the failure."""
        result = CascadeResult("c", "calc", ExecutionPlan(("noi", "property-value")))
        result.steps["noi"].state = StepState.SUCCEEDED
        result.steps["property-value"].state = StepState.FAILED
        result.steps["property-value"].error = ComputationError("boom", service="property-value")

        assert result.status == CascadeStatus.PARTIAL
        assert result.failed_service == "property-value"
        with pytest.raises(ComputationError):
            result.raise_for_error()

    def test_step_to_dict(self):
        """Test step serialization."""
        data = StepResult(service="energy").to_dict()
        assert data["state"] == "pending"
        assert data["error"] is None


class TestCascadeExecution:
    """Test running plans."""

    def test_full_plan(self, executor, planner, store, record_id):
        """Test every service succeeds and is persisted with a version."""
        result = executor.run(record_id, planner.plan_all())

        assert result.success
        assert result.completed_services == list(planner.plan_all())
        record = store.load(record_id)
        assert set(record.service_versions) == set(result.completed_services)
        assert record.last_calculated_service == "property-value"

    def test_version_tracks_revision(self, executor, planner, store, record_id):
        """Test each version stamp carries the revision it was written at."""
        result = executor.run(record_id, planner.plan_all())
        assert result.steps["ai-breakdown"].version == "1.0.0+r1"
        assert result.steps["property-value"].version == "1.0.0+r6"
        assert store.load(record_id).revision == 6

    def test_unknown_record(self, executor, planner):
        """Test a missing record raises before any step."""
        with pytest.raises(RecordNotFound):
            executor.run("nope", planner.plan_all())

    def test_missing_upstream_captured(self, executor, planner, store, record_id):
        """Test a dependency guard failure is captured on the result."""
        result = executor.run(record_id, planner.plan_from("property-value", cascade=False))

        assert result.status == CascadeStatus.FAILED
        assert isinstance(result.error, MissingRequiredUpstreamData)
        assert result.error.service == "property-value"
        assert store.load(record_id).revision == 0

    def test_overrides_only_reach_first_service(self, executor, planner, store, record_id):
        """Test overrides apply to the start service only."""
        executor.run(record_id, planner.plan_all())
        result = executor.run(record_id, planner.plan_from("energy"), overrides={"ptac_units": 18})

        assert result.success
        assert result.steps["energy"].overrides_applied == ["ptac_units"]
        assert result.steps["ll97"].overrides_applied == []
        record = store.load(record_id)
        assert record.get("energy_configuration")["ptac_units"] == 18
        assert record.overrides_for("energy")[0].original_value == record.get("ptac_units")

    def test_unknown_override_fails_first_step(self, executor, planner, store, record_id):
        """Test an unknown override field stops the cascade before anything runs."""
        executor.run(record_id, planner.plan_all())
        before = store.load(record_id)
        result = executor.run(record_id, planner.plan_from("energy"), overrides={"ptac": 18})

        assert result.status == CascadeStatus.FAILED
        assert isinstance(result.error, UnknownOverrideField)
        assert result.not_run == ["ll97", "financial", "noi", "property-value"]
        assert store.load(record_id).revision == before.revision

    def test_validation_failure(self, executor, planner, store, record_id):
        """Test an out-of-limit override raises ValidationFailed on the step."""
        executor.run(record_id, planner.plan_all())
        result = executor.run(record_id, planner.plan_from("financial"), overrides={"annual_interest_rate": 2.0})

        assert isinstance(result.error, ValidationFailed)
        assert result.error.errors[0]["field"] == "annual_interest_rate"
        assert result.to_dict()["error_stage"] == "before_execution"

    def test_warnings_collected(self, executor, planner, record_id):
        """Test typical-range warnings are reported and do not block."""
        executor.run(record_id, planner.plan_all())
        result = executor.run(record_id, planner.plan_from("energy"), overrides={"pthp_cop": 12.0})

        assert result.success
        assert [w["field"] for w in result.warnings] == ["pthp_cop"]


class TestExecutionFailures:
    """Test errors raised from service bodies."""

    def test_unexpected_exception_wrapped(self, store, trigger_log, planner, record_id):
        """Test a non-engine exception becomes ComputationError."""
        executor = CascadeExecutor(store, registry_with(BrokenPropertyValue()), trigger_log=trigger_log)
        result = executor.run(record_id, planner.plan_all())

        assert result.status == CascadeStatus.PARTIAL
        assert isinstance(result.error, ComputationError)
        assert result.error.details["exception"] == "KeyError"
        assert result.to_dict()["error_stage"] == "during_execution"
        assert "property-value" not in store.load(record_id).service_versions

    def test_foreign_field_write_rejected(self, store, trigger_log, planner, record_id):
        """Test a service writing another service's field is rejected."""
        executor = CascadeExecutor(store, registry_with(TrespassingPropertyValue()), trigger_log=trigger_log)
        result = executor.run(record_id, planner.plan_all())

        assert isinstance(result.error, ComputationError)
        assert result.error.details["fields"] == ["current_noi"]

    def test_timeout(self, store, trigger_log, planner, record_id):
        """Test a slow body fails with ServiceTimeout and writes nothing."""
        executor = CascadeExecutor(store, registry_with(SlowPropertyValue()), trigger_log=trigger_log, timeout=0.05)
        result = executor.run(record_id, planner.plan_all())

        assert isinstance(result.error, ServiceTimeout)
        assert result.failed_service == "property-value"
        assert "property-value" not in store.load(record_id).service_versions

    def test_failure_logged(self, store, trigger_log, planner, record_id):
        """Test failures are recorded in the trigger log."""
        executor = CascadeExecutor(store, registry_with(BrokenPropertyValue()), trigger_log=trigger_log)
        result = executor.run(record_id, planner.plan_all())

        failed = trigger_log.query(cascade_id=result.cascade_id, trigger_types={TriggerType.SERVICE_FAILED})
        assert [e.service for e in failed] == ["property-value"]

    def test_save_conflict_aborts_cascade(self, trigger_log, planner, building):
        """Test a concurrent write during save stops the cascade after the durable steps."""
        store = InterleavedWriteStore(conflict_on=3)
        store.create(CalculationRecord(calculation_id="calc-x", building=building))
        executor = CascadeExecutor(store, ServiceRegistry(), trigger_log=trigger_log)
        result = executor.run("calc-x", planner.plan_all())

        assert result.status == CascadeStatus.PARTIAL
        assert isinstance(result.error, RecordConflict)
        assert result.failed_service == "ll97"
        assert result.to_dict()["error_stage"] == "during_execution"
        assert result.completed_services == ["ai-breakdown", "energy"]
        assert result.not_run == ["financial", "noi", "property-value"]

        record = store.load("calc-x")
        assert sorted(record.service_versions) == ["ai-breakdown", "energy"]


class TestTriggerLogging:
    """Test cascade events written to the trigger log."""

    def test_cascade_events_in_order(self, executor, planner, trigger_log, record_id):
        """Test start, one event per service, then completion."""
        result = executor.run(record_id, planner.plan_from("noi"))
        events = [e.trigger_type for e in trigger_log.get_cascade(result.cascade_id)]
        assert events == [
            TriggerType.CASCADE_STARTED,
            TriggerType.SERVICE_FAILED,
            TriggerType.CASCADE_COMPLETED,
        ]

    def test_override_logged(self, executor, planner, trigger_log, record_id):
        """Test each applied override produces an OVERRIDE_APPLIED entry."""
        executor.run(record_id, planner.plan_all())
        result = executor.run(
            record_id, planner.plan_from("noi"), overrides={"cap_rate": 6.0}, actor="alice",
        )
        overrides = trigger_log.query(
            cascade_id=result.cascade_id, trigger_types={TriggerType.OVERRIDE_APPLIED},
        )
        assert len(overrides) == 1
        assert overrides[0].actor == "alice"
        assert overrides[0].new_value == 6.0
        assert overrides[0].metadata == {"field": "cap_rate"}


class TestProgress:
    """Test progress callbacks."""

    def test_callback_per_step(self, executor, planner, record_id):
        """Test the callback is invoked once per executed step."""
        callback = Mock()
        executor.on_progress(callback)
        executor.run(record_id, planner.plan_all())

        assert callback.call_count == 6
        service, step = callback.call_args_list[0][0]
        assert service == "ai-breakdown"
        assert step.succeeded

    def test_callback_errors_ignored(self, executor, planner, record_id):
        """Test a failing callback does not break the cascade."""
        executor.on_progress(Mock(side_effect=RuntimeError("listener down")))
        assert executor.run(record_id, planner.plan_all()).success
