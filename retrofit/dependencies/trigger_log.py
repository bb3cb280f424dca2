"""
retrofit/dependencies/trigger_log.py - Engine audit trail

Bounded, in-memory log of cascade events: cascades starting and finishing,
each service executing or failing, overrides applied and resets. Queryable
by calculation, service, cascade and event type; exportable to JSON.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Set
import json
import logging
import threading
import uuid

from retrofit.core.record import utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# TRIGGER TYPES
# =============================================================================

class TriggerType(Enum):
    """Type of engine event."""
    CASCADE_STARTED = "cascade_started"
    SERVICE_EXECUTED = "service_executed"
    SERVICE_FAILED = "service_failed"
    OVERRIDE_APPLIED = "override_applied"
    CASCADE_COMPLETED = "cascade_completed"
    RESET = "reset"


# =============================================================================
# TRIGGER ENTRY
# =============================================================================

@dataclass
class TriggerEntry:
    """A single entry in the trigger log."""
    entry_id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])
    timestamp: datetime = field(default_factory=utc_now)

    trigger_type: TriggerType = TriggerType.SERVICE_EXECUTED

    # Subject
    calculation_id: Optional[str] = None
    service: Optional[str] = None
    cascade_id: Optional[str] = None

    # Values
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None

    # Context
    actor: str = "system"
    message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "timestamp": self.timestamp.isoformat(),
            "trigger_type": self.trigger_type.value,
            "calculation_id": self.calculation_id,
            "service": self.service,
            "cascade_id": self.cascade_id,
            "old_value": _serialize_value(self.old_value),
            "new_value": _serialize_value(self.new_value),
            "actor": self.actor,
            "message": self.message,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TriggerEntry":
        return cls(
            entry_id=data.get("entry_id", str(uuid.uuid4())[:12]),
            timestamp=datetime.fromisoformat(data["timestamp"]) if data.get("timestamp") else utc_now(),
            trigger_type=TriggerType(data.get("trigger_type", "service_executed")),
            calculation_id=data.get("calculation_id"),
            service=data.get("service"),
            cascade_id=data.get("cascade_id"),
            old_value=data.get("old_value"),
            new_value=data.get("new_value"),
            actor=data.get("actor", "system"),
            message=data.get("message"),
            metadata=data.get("metadata", {}),
        )


def _serialize_value(value: Any) -> Any:
    """Serialize a value for JSON storage."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, dict)):
        try:
            json.dumps(value)
            return value
        except (TypeError, ValueError):
            return str(value)
    return str(value)


# =============================================================================
# TRIGGER LOG
# =============================================================================

class TriggerLog:
    """Audit trail of engine events, newest entries kept up to max_entries."""

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._entries: List[TriggerEntry] = []
        self._max_entries = max_entries
        self._lock = threading.Lock()

        self._by_calculation: Dict[str, List[TriggerEntry]] = {}
        self._by_cascade: Dict[str, List[TriggerEntry]] = {}

    def log(self, entry: TriggerEntry) -> str:
        """Add an entry. Returns its ID."""
        with self._lock:
            self._entries.append(entry)
            self._index(entry)
            if len(self._entries) > self._max_entries:
                self._trim_entries()
        return entry.entry_id

    def record(
        self,
        trigger_type: TriggerType,
        calculation_id: Optional[str] = None,
        service: Optional[str] = None,
        cascade_id: Optional[str] = None,
        **kwargs
    ) -> str:
        """Convenience method to build and log an entry."""
        return self.log(TriggerEntry(
            trigger_type=trigger_type,
            calculation_id=calculation_id,
            service=service,
            cascade_id=cascade_id,
            **kwargs
        ))

    def log_override(
        self,
        calculation_id: str,
        service: str,
        field_name: str,
        old_value: Any,
        new_value: Any,
        actor: str = "system",
        cascade_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> str:
        return self.record(
            TriggerType.OVERRIDE_APPLIED,
            calculation_id=calculation_id,
            service=service,
            cascade_id=cascade_id,
            old_value=old_value,
            new_value=new_value,
            actor=actor,
            message=reason,
            metadata={"field": field_name},
        )

    # ==================== Queries ====================

    def query(
        self,
        calculation_id: Optional[str] = None,
        service: Optional[str] = None,
        cascade_id: Optional[str] = None,
        trigger_types: Optional[Set[TriggerType]] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[TriggerEntry]:
        """Matching entries, newest first."""
        with self._lock:
            if cascade_id is not None:
                entries = list(self._by_cascade.get(cascade_id, []))
            elif calculation_id is not None:
                entries = list(self._by_calculation.get(calculation_id, []))
            else:
                entries = list(self._entries)

        filtered = []
        for entry in reversed(entries):
            if calculation_id and entry.calculation_id != calculation_id:
                continue
            if service and entry.service != service:
                continue
            if trigger_types and entry.trigger_type not in trigger_types:
                continue
            if since and entry.timestamp < since:
                continue
            filtered.append(entry)
            if len(filtered) >= limit:
                break
        return filtered

    def get_recent(self, count: int = 100) -> List[TriggerEntry]:
        with self._lock:
            return list(reversed(self._entries[-count:]))

    def get_for_calculation(self, calculation_id: str, limit: int = 100) -> List[TriggerEntry]:
        return self.query(calculation_id=calculation_id, limit=limit)

    def get_cascade(self, cascade_id: str) -> List[TriggerEntry]:
        """All entries of one cascade, oldest first."""
        with self._lock:
            return list(self._by_cascade.get(cascade_id, []))

    # ==================== Export ====================

    def export_to_json(self, path: Path, calculation_id: Optional[str] = None, limit: int = 10000) -> int:
        """Write entries to a JSON file. Returns the number exported."""
        entries = self.query(calculation_id=calculation_id, limit=limit)
        data = {
            "exported_at": utc_now().isoformat(),
            "entry_count": len(entries),
            "entries": [e.to_dict() for e in entries],
        }
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

        logger.info(f"Exported {len(entries)} trigger log entries to {path}")
        return len(entries)

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "entries": [e.to_dict() for e in self._entries],
                "max_entries": self._max_entries,
            }

    # ==================== Internals ====================

    def _index(self, entry: TriggerEntry) -> None:
        if entry.calculation_id:
            self._by_calculation.setdefault(entry.calculation_id, []).append(entry)
        if entry.cascade_id:
            self._by_cascade.setdefault(entry.cascade_id, []).append(entry)

    def _trim_entries(self) -> None:
        trim_count = len(self._entries) - self._max_entries
        self._entries = self._entries[trim_count:]

        self._by_calculation.clear()
        self._by_cascade.clear()
        for entry in self._entries:
            self._index(entry)

        logger.debug(f"Trimmed {trim_count} trigger log entries")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._by_calculation.clear()
            self._by_cascade.clear()

    def __len__(self) -> int:
        return len(self._entries)
