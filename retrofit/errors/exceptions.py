"""
retrofit/errors/exceptions.py - Engine exceptions

Every failure the engine can report is one of these. Each carries the
failing service (when there is one), a stable ErrorCode and a details dict
with field-level context, and serializes with to_dict() for transport.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from .taxonomy import ErrorCategory, ErrorCode


class RetrofitError(Exception):
    """Base exception for calculation engine errors."""

    code: ErrorCode = ErrorCode.EXE_COMPUTATION
    category: ErrorCategory = ErrorCategory.COMPUTATION

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.service = service
        self.details = details or {}

    def __str__(self) -> str:
        if self.service:
            return f"[{self.service}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code.value,
            "category": self.category.value,
            "message": self.message,
            "service": self.service,
            "details": self.details,
        }


class UnknownService(RetrofitError):
    """Raised when a service name is not in the static registry."""

    code = ErrorCode.REQ_UNKNOWN_SERVICE
    category = ErrorCategory.REQUEST

    def __init__(self, name: Any, known: Sequence[str] = ()):
        super().__init__(
            f"Unknown service: {name!r}",
            details={"name": str(name), "known_services": list(known)},
        )
        self.name = name


class GraphCycleDetected(RetrofitError):
    """Raised when the service graph contains a cycle."""

    code = ErrorCode.DEP_GRAPH_CYCLE
    category = ErrorCategory.DEPENDENCY

    def __init__(self, cycle: List[str]):
        super().__init__(
            f"Cyclic dependency detected: {' -> '.join(cycle)}",
            details={"cycle": list(cycle)},
        )
        self.cycle = cycle


class MissingRequiredUpstreamData(RetrofitError):
    """Raised when a service runs before a dependency has produced output."""

    code = ErrorCode.DEP_MISSING_UPSTREAM
    category = ErrorCategory.DEPENDENCY

    def __init__(
        self,
        service: str,
        missing_services: Sequence[str] = (),
        missing_fields: Sequence[str] = (),
    ):
        parts = []
        if missing_services:
            parts.append(f"dependencies never executed: {', '.join(missing_services)}")
        if missing_fields:
            parts.append(f"required fields are empty: {', '.join(missing_fields)}")
        super().__init__(
            "Missing required upstream data (" + "; ".join(parts) + ")",
            service=service,
            details={
                "missing_services": list(missing_services),
                "missing_fields": list(missing_fields),
            },
        )
        self.missing_services = list(missing_services)
        self.missing_fields = list(missing_fields)


class UnknownOverrideField(RetrofitError):
    """Raised when an override payload names a field the service does not accept."""

    code = ErrorCode.VAL_UNKNOWN_OVERRIDE
    category = ErrorCategory.VALIDATION

    def __init__(self, service: str, fields: Sequence[str], accepted: Sequence[str] = ()):
        super().__init__(
            f"Unknown override field(s): {', '.join(fields)}",
            service=service,
            details={"fields": list(fields), "accepted_fields": sorted(accepted)},
        )
        self.fields = list(fields)


class ValidationFailed(RetrofitError):
    """Raised when service input validation reports hard errors."""

    code = ErrorCode.VAL_FAILED
    category = ErrorCategory.VALIDATION

    def __init__(self, service: str, errors: List[Dict[str, Any]], warnings: Optional[List[Dict[str, Any]]] = None):
        summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
        super().__init__(
            f"Input validation failed: {summary}",
            service=service,
            details={"errors": errors, "warnings": warnings or []},
        )
        self.errors = errors
        self.warnings = warnings or []


class ComputationError(RetrofitError):
    """Raised when a service body cannot produce a result."""

    code = ErrorCode.EXE_COMPUTATION
    category = ErrorCategory.COMPUTATION


class ServiceTimeout(ComputationError):
    """Raised when a service body exceeds its time budget."""

    code = ErrorCode.EXE_TIMEOUT
    category = ErrorCategory.TIMEOUT

    def __init__(self, service: str, timeout_seconds: float):
        super().__init__(
            f"Execution exceeded {timeout_seconds}s",
            service=service,
            details={"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


class RecordNotFound(RetrofitError):
    """Raised when a calculation record does not exist in the store."""

    code = ErrorCode.STO_NOT_FOUND
    category = ErrorCategory.STORAGE

    def __init__(self, calculation_id: str):
        super().__init__(
            f"Calculation {calculation_id} not found",
            details={"calculation_id": calculation_id},
        )
        self.calculation_id = calculation_id


class RecordConflict(RetrofitError):
    """Raised when a save is based on a stale record revision."""

    code = ErrorCode.STO_CONFLICT
    category = ErrorCategory.STORAGE

    def __init__(self, calculation_id: str, expected_revision: int, actual_revision: int):
        super().__init__(
            f"Calculation {calculation_id} was modified concurrently "
            f"(saving revision {expected_revision}, store has {actual_revision})",
            details={
                "calculation_id": calculation_id,
                "expected_revision": expected_revision,
                "actual_revision": actual_revision,
            },
        )
        self.calculation_id = calculation_id
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision
