"""
validators/taxonomy.py - Validation result types

Shared shape for override checks and service input checks:
{valid, errors, warnings}. Errors block execution, warnings are passed
back to the caller with the outcome.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class ResultSeverity(Enum):
    """Severity of a validation finding."""
    ERROR = "error"        # Blocks execution
    WARNING = "warning"    # Advisory, doesn't block


@dataclass
class ValidationIssue:
    """A single field-level finding."""
    field: str
    message: str
    severity: ResultSeverity = ResultSeverity.ERROR
    actual_value: Optional[Any] = None
    service: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "field": self.field,
            "message": self.message,
            "severity": self.severity.value,
        }
        if self.actual_value is not None:
            result["actual_value"] = self.actual_value
        if self.service:
            result["service"] = self.service
        return result


@dataclass
class ValidationResult:
    """Outcome of validating one input or override payload."""
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def error(self, field_name: str, message: str, actual: Any = None) -> None:
        self.errors.append(ValidationIssue(field_name, message, ResultSeverity.ERROR, actual))

    def warn(self, field_name: str, message: str, actual: Any = None) -> None:
        self.warnings.append(ValidationIssue(field_name, message, ResultSeverity.WARNING, actual))

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Append another result's findings, skipping exact duplicates."""
        for issue in other.errors:
            if not self._contains(self.errors, issue):
                self.errors.append(issue)
        for issue in other.warnings:
            if not self._contains(self.warnings, issue):
                self.warnings.append(issue)
        return self

    @staticmethod
    def _contains(issues: Iterable[ValidationIssue], issue: ValidationIssue) -> bool:
        return any(i.field == issue.field and i.message == issue.message for i in issues)

    def tag(self, service: str) -> "ValidationResult":
        """Stamp every finding with the service that produced it."""
        for issue in self.errors + self.warnings:
            issue.service = service
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }
