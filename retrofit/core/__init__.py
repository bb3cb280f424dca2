"""
Core data model: service names, calculation records and record stores.
"""

from .enums import ServiceName, StepState, CascadeStatus
from .record import (
    BuildingProfile,
    CalculationRecord,
    OverrideMetadata,
    utc_now,
)
from .record_store import (
    RecordStore,
    InMemoryRecordStore,
    JsonFileRecordStore,
    KeyedLock,
    create_record_store,
)

__all__ = [
    "ServiceName",
    "StepState",
    "CascadeStatus",
    "BuildingProfile",
    "CalculationRecord",
    "OverrideMetadata",
    "utc_now",
    "RecordStore",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "KeyedLock",
    "create_record_store",
]
