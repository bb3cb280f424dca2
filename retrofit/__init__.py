"""
retrofit - PTAC to PTHP retrofit calculation engine

Six calculation services (unit mix, energy, LL97, financial, NOI, property
value) run in dependency order against a persisted calculation record.
Changing one service's inputs re-runs everything downstream of it.
"""

from retrofit.core.enums import ServiceName, StepState, CascadeStatus
from retrofit.core.record import BuildingProfile, CalculationRecord, OverrideMetadata
from retrofit.core.record_store import RecordStore, InMemoryRecordStore, JsonFileRecordStore
from retrofit.dependencies.cascade import CascadeResult, StepResult
from retrofit.dependencies.planner import ExecutionPlan, ExecutionPlanner
from retrofit.engine import CalculationEngine, ServiceStatus

__version__ = "1.0.0"

__all__ = [
    "ServiceName",
    "StepState",
    "CascadeStatus",
    "BuildingProfile",
    "CalculationRecord",
    "OverrideMetadata",
    "RecordStore",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "CascadeResult",
    "StepResult",
    "ExecutionPlan",
    "ExecutionPlanner",
    "CalculationEngine",
    "ServiceStatus",
]
