"""
core/record.py - Calculation record

One CalculationRecord per building analysis. It holds the building profile
supplied at creation, every service's output fields, per-service version
stamps and the override audit log. The record is the only shared mutable
resource of the engine; the store hands out copies and accepts them back
with an optimistic revision check.
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import copy
import uuid


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# =============================================================================
# BUILDING PROFILE
# =============================================================================

@dataclass
class BuildingProfile:
    """Building attributes gathered before any service runs."""
    bbl: Optional[str] = None
    address: Optional[str] = None
    borough: Optional[str] = None
    building_class: str = "R6"
    year_built: Optional[int] = None
    num_floors: Optional[int] = None
    units_res: Optional[int] = None
    total_square_feet: Optional[float] = None

    # Valuation
    building_value: Optional[float] = None
    cap_rate: Optional[float] = None  # percent

    # LL84 benchmarking
    total_building_emissions_ll84: Optional[float] = None
    property_use_breakdown: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuildingProfile":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


# =============================================================================
# OVERRIDE METADATA
# =============================================================================

@dataclass
class OverrideMetadata:
    """Audit entry for one overridden field in one service invocation."""
    service: str
    field: str
    original_value: Any
    new_value: Any
    timestamp: datetime = field(default_factory=utc_now)
    actor: str = "system"
    reason: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.service}.{self.field}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "field": self.field,
            "original_value": self.original_value,
            "new_value": self.new_value,
            "timestamp": self.timestamp.isoformat(),
            "actor": self.actor,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OverrideMetadata":
        return cls(
            service=data["service"],
            field=data["field"],
            original_value=data.get("original_value"),
            new_value=data.get("new_value"),
            timestamp=_parse_ts(data.get("timestamp")) or utc_now(),
            actor=data.get("actor", "system"),
            reason=data.get("reason"),
        )


# =============================================================================
# CALCULATION RECORD
# =============================================================================

@dataclass
class CalculationRecord:
    """Keyed, mutable state of one building analysis."""
    calculation_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    building: BuildingProfile = field(default_factory=BuildingProfile)

    # Service output fields, keyed by field name. Absent means never written.
    fields: Dict[str, Any] = field(default_factory=dict)

    # Service name -> version stamp of its last successful execution
    service_versions: Dict[str, str] = field(default_factory=dict)
    last_calculated_service: Optional[str] = None

    override_log: List[OverrideMetadata] = field(default_factory=list)

    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    # Bumped by the store on every successful save
    revision: int = 0

    def get(self, name: str, default: Any = None) -> Any:
        """Get an output field, treating absent and None alike."""
        value = self.fields.get(name)
        return default if value is None else value

    def has_executed(self, service: str) -> bool:
        return self.service_versions.get(service) is not None

    def apply_output(
        self,
        service: str,
        values: Dict[str, Any],
        version: str,
        overrides: Optional[List[OverrideMetadata]] = None,
    ) -> None:
        """Write one service's successful result onto the record."""
        self.fields.update(copy.deepcopy(values))
        self.service_versions[service] = version
        self.last_calculated_service = service
        self.updated_at = utc_now()
        if overrides:
            self.override_log.extend(overrides)

    def overrides_for(self, service: str) -> List[OverrideMetadata]:
        return [o for o in self.override_log if o.service == service]

    def copy(self) -> "CalculationRecord":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "calculation_id": self.calculation_id,
            "building": self.building.to_dict(),
            "fields": copy.deepcopy(self.fields),
            "service_versions": dict(self.service_versions),
            "last_calculated_service": self.last_calculated_service,
            "override_log": [o.to_dict() for o in self.override_log],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "revision": self.revision,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalculationRecord":
        return cls(
            calculation_id=data["calculation_id"],
            building=BuildingProfile.from_dict(data.get("building", {})),
            fields=dict(data.get("fields", {})),
            service_versions=dict(data.get("service_versions", {})),
            last_calculated_service=data.get("last_calculated_service"),
            override_log=[OverrideMetadata.from_dict(o) for o in data.get("override_log", [])],
            created_at=_parse_ts(data.get("created_at")) or utc_now(),
            updated_at=_parse_ts(data.get("updated_at")) or utc_now(),
            revision=data.get("revision", 0),
        )
