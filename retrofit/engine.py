"""
retrofit/engine.py - Calculation engine facade

Entry point for callers: create a calculation, run every service, run one
service (optionally with overrides, optionally cascading to everything it
triggers), query per-service status, and reset version stamps.

    engine = CalculationEngine.from_config(get_config())
    record = engine.create_calculation({"units_res": 40, ...})
    engine.execute_all(record.calculation_id)
    engine.execute_service(record.calculation_id, "energy", {"ptac_units": 18})
"""

from __future__ import annotations
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
import logging

from retrofit.bootstrap.config import EngineConfig, RetrofitConfig
from retrofit.core.enums import ServiceName
from retrofit.core.record import BuildingProfile, CalculationRecord, utc_now
from retrofit.core.record_store import (
    InMemoryRecordStore,
    KeyedLock,
    RecordStore,
    create_record_store,
)
from retrofit.dependencies.cascade import CascadeExecutor, CascadeResult, ProgressCallback
from retrofit.dependencies.graph import ServiceGraph, ServiceRef
from retrofit.dependencies.planner import ExecutionPlan, ExecutionPlanner
from retrofit.dependencies.trigger_log import TriggerLog, TriggerType
from retrofit.services.registry import ServiceRegistry

logger = logging.getLogger(__name__)


# =============================================================================
# STATUS
# =============================================================================

@dataclass
class ServiceStatus:
    """Per-service execution status of one calculation."""
    calculation_id: str
    service_versions: Dict[str, Optional[str]] = field(default_factory=dict)
    last_calculated_service: Optional[str] = None

    @property
    def executed(self) -> Dict[str, bool]:
        return {name: version is not None for name, version in self.service_versions.items()}

    @property
    def all_services_executed(self) -> bool:
        return all(self.executed.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "calculation_id": self.calculation_id,
            "service_versions": dict(self.service_versions),
            "last_calculated_service": self.last_calculated_service,
            "executed": self.executed,
            "all_services_executed": self.all_services_executed,
        }


# =============================================================================
# ENGINE
# =============================================================================

class CalculationEngine:
    """Trigger API over the record store, planner and cascade executor."""

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        registry: Optional[ServiceRegistry] = None,
        graph: Optional[ServiceGraph] = None,
        config: Optional[EngineConfig] = None,
        trigger_log: Optional[TriggerLog] = None,
    ):
        self.config = config or EngineConfig()
        self.store = store or InMemoryRecordStore()
        self.registry = registry or ServiceRegistry(graph=graph)
        self.planner = ExecutionPlanner(graph or self.registry.graph)
        self.trigger_log = trigger_log or TriggerLog(max_entries=self.config.trigger_log_max_entries)
        self.executor = CascadeExecutor(
            self.store,
            self.registry,
            trigger_log=self.trigger_log,
            timeout=self.config.service_timeout_seconds,
        )
        self._locks = KeyedLock()

    @classmethod
    def from_config(cls, config: RetrofitConfig) -> "CalculationEngine":
        store = create_record_store(config.storage.backend, config.storage.data_dir)
        return cls(store=store, config=config.engine)

    def _serialized(self, calculation_id: str):
        if self.config.serialize_per_calculation:
            return self._locks.hold(calculation_id)
        return nullcontext()

    def _actor(self, actor: Optional[str]) -> str:
        return actor or self.config.default_actor

    # ==================== Records ====================

    def create_calculation(
        self,
        building: Union[BuildingProfile, Dict[str, Any]],
        calculation_id: Optional[str] = None,
    ) -> CalculationRecord:
        """
        Store a new calculation with no service executed.

        Raises:
            RecordConflict: calculation_id is already taken
        """
        profile = building if isinstance(building, BuildingProfile) else BuildingProfile.from_dict(building)
        record = CalculationRecord(building=profile)
        if calculation_id:
            record.calculation_id = calculation_id

        created = self.store.create(record)
        logger.info(f"Created calculation {created.calculation_id}")
        return created

    def get_record(self, calculation_id: str) -> CalculationRecord:
        return self.store.load(calculation_id)

    # ==================== Planning ====================

    def plan(self, service: Optional[ServiceRef] = None, cascade: bool = True) -> ExecutionPlan:
        """Plan for a full run, or for a run starting at one service."""
        if service is None:
            return self.planner.plan_all()
        return self.planner.plan_from(service, cascade=cascade)

    # ==================== Execution ====================

    def execute_all(
        self,
        calculation_id: str,
        actor: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CascadeResult:
        """
        Run every service in dependency order.

        Raises:
            RecordNotFound: the calculation does not exist
        """
        plan = self.planner.plan_all()
        with self._serialized(calculation_id):
            return self.executor.run(
                calculation_id,
                plan,
                actor=self._actor(actor),
                timeout=timeout,
            )

    def execute_service(
        self,
        calculation_id: str,
        service: ServiceRef,
        overrides: Optional[Dict[str, Any]] = None,
        cascade: bool = True,
        actor: Optional[str] = None,
        reason: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CascadeResult:
        """
        Run one service with optional overrides, then (if cascade) every
        service it transitively triggers.

        Raises:
            UnknownService: service is not an exact registered name
            RecordNotFound: the calculation does not exist
        """
        plan = self.planner.plan_from(service, cascade=cascade)
        with self._serialized(calculation_id):
            return self.executor.run(
                calculation_id,
                plan,
                overrides=overrides,
                actor=self._actor(actor),
                reason=reason,
                timeout=timeout,
            )

    def on_progress(self, callback: ProgressCallback) -> None:
        self.executor.on_progress(callback)

    # ==================== Status ====================

    def get_status(self, calculation_id: str) -> ServiceStatus:
        """
        Version stamp of every service (None if never executed).

        Raises:
            RecordNotFound: the calculation does not exist
        """
        record = self.store.load(calculation_id)
        return ServiceStatus(
            calculation_id=calculation_id,
            service_versions={
                name: record.service_versions.get(name)
                for name in ServiceName.values()
            },
            last_calculated_service=record.last_calculated_service,
        )

    # ==================== Reset ====================

    def reset(
        self,
        calculation_id: str,
        from_service: Optional[ServiceRef] = None,
        actor: Optional[str] = None,
    ) -> List[str]:
        """
        Clear version stamps so services read as never executed.

        Clears from_service and everything it triggers, or every service.
        Field values stay in place. Returns the services reset.

        Raises:
            UnknownService: from_service is not a registered name
            RecordNotFound: the calculation does not exist
        """
        plan = self.plan(from_service, cascade=True)

        with self._serialized(calculation_id):
            record = self.store.load(calculation_id)
            cleared = [s for s in plan if record.service_versions.pop(s, None) is not None]
            record.last_calculated_service = None
            record.updated_at = utc_now()
            self.store.save(calculation_id, record)

        self.trigger_log.record(
            TriggerType.RESET,
            calculation_id=calculation_id,
            service=plan.start_service,
            actor=self._actor(actor),
            metadata={"services": cleared},
        )
        logger.info(f"Reset {len(cleared)} service(s) on {calculation_id}: {', '.join(cleared) or 'none'}")
        return cleared
