"""
retrofit/dependencies/cascade.py - Cascading executor

Runs an ExecutionPlan against one calculation record, strictly left to
right. Each step loads the freshly persisted record, builds and validates
the service input, executes the service body and persists the service's
owned fields before the next step starts. The first failing step aborts
the rest of the plan; everything before it stays persisted.

    PENDING -> VALIDATING -> EXECUTING -> SUCCEEDED
                    \\             \\
                     -> FAILED      -> FAILED
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING
import logging
import time
import uuid

from retrofit.core.enums import CascadeStatus, StepState
from retrofit.core.record import OverrideMetadata, utc_now
from retrofit.core.record_store import RecordStore
from retrofit.errors import (
    ComputationError,
    RetrofitError,
    ServiceTimeout,
    ValidationFailed,
    is_pre_execution,
)
from .planner import ExecutionPlan
from .trigger_log import TriggerLog, TriggerType

if TYPE_CHECKING:
    from retrofit.services.base import CalculationService, ServiceInput, ServiceOutput
    from retrofit.services.registry import ServiceRegistry

logger = logging.getLogger(__name__)


# =============================================================================
# STEP RESULT
# =============================================================================

@dataclass
class StepResult:
    """Outcome of one service within a cascade."""
    service: str
    state: StepState = StepState.PENDING
    version: Optional[str] = None
    warnings: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[RetrofitError] = None
    overrides_applied: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    execution_time_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.state == StepState.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "state": self.state.value,
            "version": self.version,
            "warnings": self.warnings,
            "error": self.error.to_dict() if self.error else None,
            "overrides_applied": self.overrides_applied,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "execution_time_ms": self.execution_time_ms,
        }


# =============================================================================
# CASCADE RESULT
# =============================================================================

@dataclass
class CascadeResult:
    """Result of running one execution plan."""
    cascade_id: str
    calculation_id: str
    plan: ExecutionPlan
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    # One entry per planned service, in plan order
    steps: Dict[str, StepResult] = field(default_factory=dict)

    total_time_ms: int = 0
    triggered_by: str = "system"

    def __post_init__(self):
        for service in self.plan:
            self.steps.setdefault(service, StepResult(service=service))

    @property
    def completed_services(self) -> List[str]:
        return [s.service for s in self.steps.values() if s.succeeded]

    @property
    def not_run(self) -> List[str]:
        return [s.service for s in self.steps.values() if s.state == StepState.PENDING]

    @property
    def failed_step(self) -> Optional[StepResult]:
        for step in self.steps.values():
            if step.state == StepState.FAILED:
                return step
        return None

    @property
    def failed_service(self) -> Optional[str]:
        step = self.failed_step
        return step.service if step else None

    @property
    def error(self) -> Optional[RetrofitError]:
        step = self.failed_step
        return step.error if step else None

    @property
    def warnings(self) -> List[Dict[str, Any]]:
        return [w for step in self.steps.values() for w in step.warnings]

    @property
    def status(self) -> CascadeStatus:
        if self.failed_step is None:
            return CascadeStatus.SUCCEEDED
        return CascadeStatus.PARTIAL if self.completed_services else CascadeStatus.FAILED

    @property
    def success(self) -> bool:
        return self.status == CascadeStatus.SUCCEEDED

    def raise_for_error(self) -> None:
        """Re-raise the captured step error, if any."""
        if self.error is not None:
            raise self.error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "cascade_id": self.cascade_id,
            "calculation_id": self.calculation_id,
            "status": self.status.value,
            "planned": len(self.plan),
            "completed": self.completed_services,
            "failed_service": self.failed_service,
            "not_run": self.not_run,
            "warnings": len(self.warnings),
            "total_time_ms": self.total_time_ms,
        }

    def to_dict(self) -> Dict[str, Any]:
        error = self.error
        return {
            "cascade_id": self.cascade_id,
            "calculation_id": self.calculation_id,
            "status": self.status.value,
            "plan": self.plan.to_dict(),
            "completed_services": self.completed_services,
            "failed_service": self.failed_service,
            "not_run": self.not_run,
            "error": error.to_dict() if error else None,
            "error_stage": (
                None if error is None
                else "before_execution" if is_pre_execution(error.code)
                else "during_execution"
            ),
            "warnings": self.warnings,
            "steps": [s.to_dict() for s in self.steps.values()],
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_time_ms": self.total_time_ms,
            "triggered_by": self.triggered_by,
        }


# =============================================================================
# CASCADE EXECUTOR
# =============================================================================

ProgressCallback = Callable[[str, StepResult], None]


class CascadeExecutor:
    """
    Executes a plan one service at a time against a record store.

    Each step is its own unit of persistence; nothing is retried. Errors
    raised inside a step are captured on the CascadeResult. RecordNotFound
    for the initial load propagates to the caller.
    """

    def __init__(
        self,
        store: RecordStore,
        registry: "ServiceRegistry",
        trigger_log: Optional[TriggerLog] = None,
        timeout: Optional[float] = None,
    ):
        self._store = store
        self._registry = registry
        self._trigger_log = trigger_log or TriggerLog()
        self._timeout = timeout
        self._progress_callbacks: List[ProgressCallback] = []

    @property
    def trigger_log(self) -> TriggerLog:
        return self._trigger_log

    def run(
        self,
        calculation_id: str,
        plan: ExecutionPlan,
        overrides: Optional[Dict[str, Any]] = None,
        actor: str = "system",
        reason: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CascadeResult:
        """
        Run every service in the plan, stopping at the first failure.

        Overrides go to the first planned service only.

        Raises:
            RecordNotFound: the calculation does not exist
        """
        self._store.load(calculation_id)

        timeout = timeout if timeout is not None else self._timeout
        result = CascadeResult(
            cascade_id=str(uuid.uuid4())[:8],
            calculation_id=calculation_id,
            plan=plan,
            triggered_by=actor,
        )
        start = time.time()

        logger.info(
            f"Starting cascade {result.cascade_id} on {calculation_id}: "
            f"{' -> '.join(plan) or '(empty plan)'}"
        )
        self._trigger_log.record(
            TriggerType.CASCADE_STARTED,
            calculation_id=calculation_id,
            service=plan.first,
            cascade_id=result.cascade_id,
            actor=actor,
            metadata={"plan": list(plan), "overrides": sorted(overrides or {})},
        )

        for index, service_name in enumerate(plan):
            step = result.steps[service_name]
            step_overrides = overrides if index == 0 else None
            self._execute_single(result, step, step_overrides, actor, reason, timeout)
            self._notify_progress(service_name, step)
            if not step.succeeded:
                break

        result.completed_at = utc_now()
        result.total_time_ms = int((time.time() - start) * 1000)

        self._trigger_log.record(
            TriggerType.CASCADE_COMPLETED,
            calculation_id=calculation_id,
            cascade_id=result.cascade_id,
            actor=actor,
            new_value=result.status.value,
            metadata=result.get_summary(),
        )
        logger.info(
            f"Cascade {result.cascade_id} {result.status.value}: "
            f"{len(result.completed_services)}/{len(plan)} services "
            f"in {result.total_time_ms}ms"
        )
        return result

    def _execute_single(
        self,
        result: CascadeResult,
        step: StepResult,
        overrides: Optional[Dict[str, Any]],
        actor: str,
        reason: Optional[str],
        timeout: Optional[float],
    ) -> None:
        """Run one step, recording its outcome on the step."""
        service = self._registry.get(step.service)
        calculation_id = result.calculation_id
        step.started_at = utc_now()
        start = time.time()

        try:
            record = self._store.load(calculation_id)

            step.state = StepState.VALIDATING
            service_input = service.build_input_from_record(record, overrides)
            validation = service.validate_input(service_input)
            step.warnings = [w.to_dict() for w in validation.warnings]
            for warning in validation.warnings:
                logger.warning(f"[{service.name}] {warning.field}: {warning.message}")
            if not validation.valid:
                raise ValidationFailed(
                    service.name,
                    [e.to_dict() for e in validation.errors],
                    step.warnings,
                )

            step.state = StepState.EXECUTING
            output = self._run_body(service, service_input, timeout)
            self._check_ownership(service, output)

            version = f"{output.version}+r{record.revision + 1}"
            audit = [
                OverrideMetadata(
                    service=service.name,
                    field=name,
                    original_value=service_input.original_values.get(name),
                    new_value=value,
                    actor=actor,
                    reason=reason,
                )
                for name, value in service_input.overrides.items()
            ]
            record.apply_output(service.name, output.fields, version, audit)
            self._store.save(calculation_id, record)

            step.version = version
            step.overrides_applied = [o.field for o in audit]
            step.state = StepState.SUCCEEDED

        except RetrofitError as e:
            if e.service is None:
                e.service = service.name
            step.error = e
            step.state = StepState.FAILED
            if isinstance(e, ComputationError):
                logger.error(f"Cascade {result.cascade_id} failed at {service.name}: {e}")
            else:
                logger.warning(f"Cascade {result.cascade_id} stopped at {service.name}: {e}")
            self._trigger_log.record(
                TriggerType.SERVICE_FAILED,
                calculation_id=calculation_id,
                service=service.name,
                cascade_id=result.cascade_id,
                actor=actor,
                message=str(e),
                metadata=e.to_dict(),
            )

        else:
            logger.debug(f"Cascade {result.cascade_id}: {service.name} -> {step.version}")
            self._trigger_log.record(
                TriggerType.SERVICE_EXECUTED,
                calculation_id=calculation_id,
                service=service.name,
                cascade_id=result.cascade_id,
                actor=actor,
                new_value=step.version,
                metadata={"warnings": len(step.warnings)},
            )
            for entry in audit:
                self._trigger_log.log_override(
                    calculation_id,
                    service.name,
                    entry.field,
                    entry.original_value,
                    entry.new_value,
                    actor=actor,
                    cascade_id=result.cascade_id,
                    reason=reason,
                )

        finally:
            step.completed_at = utc_now()
            step.execution_time_ms = int((time.time() - start) * 1000)

    def _run_body(
        self,
        service: "CalculationService",
        service_input: "ServiceInput",
        timeout: Optional[float],
    ) -> "ServiceOutput":
        """Execute the service body, bounded by timeout when one is set."""
        if timeout is None:
            return self._call(service, service_input)

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"svc-{service.name}")
        try:
            future = pool.submit(self._call, service, service_input)
            try:
                return future.result(timeout=timeout)
            except FutureTimeout:
                future.cancel()
                raise ServiceTimeout(service.name, timeout)
        finally:
            pool.shutdown(wait=False)

    @staticmethod
    def _call(service: "CalculationService", service_input: "ServiceInput") -> "ServiceOutput":
        try:
            return service.execute(service_input)
        except RetrofitError:
            raise
        except Exception as e:
            raise ComputationError(
                f"{type(e).__name__}: {e}",
                service=service.name,
                details={"exception": type(e).__name__},
            ) from e

    @staticmethod
    def _check_ownership(service: "CalculationService", output: "ServiceOutput") -> None:
        foreign = sorted(set(output.fields) - set(service.owned_fields))
        if foreign:
            raise ComputationError(
                f"Service wrote fields it does not own: {', '.join(foreign)}",
                service=service.name,
                details={"fields": foreign},
            )

    # ==================== Progress ====================

    def on_progress(self, callback: ProgressCallback) -> None:
        """Register a callback invoked after every step."""
        self._progress_callbacks.append(callback)

    def _notify_progress(self, service: str, step: StepResult) -> None:
        for callback in self._progress_callbacks:
            try:
                callback(service, step)
            except Exception as e:
                logger.error(f"Progress callback error: {e}")
