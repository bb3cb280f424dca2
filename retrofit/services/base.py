"""
retrofit/services/base.py - Calculation service contract

Every calculation service implements the same three steps:

    build_input_from_record(record, overrides) -> ServiceInput
    validate_input(input)                      -> ValidationResult
    execute(input)                             -> ServiceOutput

build_input_from_record projects the record onto the service's inputs and
merges overrides on top; validate_input runs the override schema checks
followed by the service's own domain checks; execute is a deterministic
pure computation over the input values.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type
import logging
import math

from retrofit.core.record import CalculationRecord
from retrofit.errors import ComputationError, MissingRequiredUpstreamData
from retrofit.validators.overrides import OverrideModel, OverrideValidator
from retrofit.validators.ranges import check_typical_ranges
from retrofit.validators.taxonomy import ValidationResult

logger = logging.getLogger(__name__)


# =============================================================================
# INPUT / OUTPUT
# =============================================================================

@dataclass
class ServiceInput:
    """Inputs for one invocation, with overrides already merged in."""
    service: str
    values: Dict[str, Any]
    overrides: Dict[str, Any] = field(default_factory=dict)

    # Record-derived value of every overridden field, for the audit log
    original_values: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def get(self, key: str, default: Any = None) -> Any:
        value = self.values.get(key)
        return default if value is None else value


@dataclass
class ServiceOutput:
    """Fields produced by one execution, stamped with the service version."""
    fields: Dict[str, Any]
    version: str


# =============================================================================
# SERVICE CONTRACT
# =============================================================================

class CalculationService(ABC):
    """Base class for the six calculation services."""

    name: str = ""
    version: str = "1.0.0"
    description: str = ""

    # Services that must have executed before this one
    dependencies: Tuple[str, ...] = ()

    # Record fields this service writes; disjoint across services
    owned_fields: Tuple[str, ...] = ()

    # Upstream fields that must be non-null, unless supplied as overrides
    required_fields: Tuple[str, ...] = ()

    override_model: Type[OverrideModel] = OverrideModel

    def __init__(self):
        self._override_validator = OverrideValidator(self.name, self.override_model)

    @property
    def override_validator(self) -> OverrideValidator:
        return self._override_validator

    @property
    def overridable_fields(self) -> List[str]:
        return self._override_validator.accepted_fields

    # ==================== Input ====================

    def build_input_from_record(
        self,
        record: CalculationRecord,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> ServiceInput:
        """
        Project the record onto this service's inputs and merge overrides.

        Raises:
            UnknownOverrideField: overrides name a field this service does
                not accept. Nothing is merged.
            MissingRequiredUpstreamData: a dependency never executed, or a
                required upstream field is empty.
        """
        payload = self._override_validator.coerce(overrides)
        self._check_upstream(record, payload)

        base = self.project(record)
        values = dict(base)
        values.update(payload)
        return ServiceInput(
            service=self.name,
            values=values,
            overrides=payload,
            original_values={k: base.get(k) for k in payload},
        )

    def _check_upstream(self, record: CalculationRecord, payload: Dict[str, Any]) -> None:
        missing_services = [d for d in self.dependencies if not record.has_executed(d)]
        missing_fields = [
            f for f in self.required_fields
            if f not in payload and record.get(f) is None
        ]
        if missing_services or missing_fields:
            raise MissingRequiredUpstreamData(self.name, missing_services, missing_fields)

    @abstractmethod
    def project(self, record: CalculationRecord) -> Dict[str, Any]:
        """Record-derived inputs, with domain defaults for optional values."""
        pass

    # ==================== Validation ====================

    def validate_input(self, service_input: ServiceInput) -> ValidationResult:
        """Override checks, then domain checks and typical-range warnings."""
        result = self._override_validator.validate(service_input.overrides)
        if not result.valid:
            # Merged values may hold uncoerced override input
            return result.tag(self.name)
        result.merge(self.check_input(service_input.values))
        result.merge(check_typical_ranges(self.name, service_input.values))
        return result.tag(self.name)

    def check_input(self, values: Dict[str, Any]) -> ValidationResult:
        """Service-specific range and consistency checks."""
        return ValidationResult()

    # ==================== Execution ====================

    @abstractmethod
    def execute(self, service_input: ServiceInput) -> ServiceOutput:
        pass

    def output(self, fields: Dict[str, Any]) -> ServiceOutput:
        return ServiceOutput(fields=fields, version=self.version)

    def divide(self, numerator: float, denominator: float, what: str) -> float:
        """Division that reports a zero denominator as a ComputationError."""
        if denominator == 0 or math.isnan(denominator):
            raise ComputationError(
                f"Cannot compute {what}: denominator is zero",
                service=self.name,
                details={"quantity": what},
            )
        return numerator / denominator

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "dependencies": list(self.dependencies),
            "owned_fields": list(self.owned_fields),
            "overridable_fields": self.overridable_fields,
        }
