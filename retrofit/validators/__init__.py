"""
Validation: result types, override schemas and typical ranges.
"""

from .taxonomy import ResultSeverity, ValidationIssue, ValidationResult
from .ranges import TYPICAL_RANGES, check_typical_ranges, out_of_typical_range
from .overrides import (
    OverrideModel,
    OverrideValidator,
    UnitBreakdown,
    AIBreakdownOverrides,
    EnergyOverrides,
    LL97Overrides,
    FinancialOverrides,
    NOIOverrides,
    PropertyValueOverrides,
    OVERRIDE_MODELS,
    get_override_validator,
)

__all__ = [
    "ResultSeverity",
    "ValidationIssue",
    "ValidationResult",
    "TYPICAL_RANGES",
    "check_typical_ranges",
    "out_of_typical_range",
    "OverrideModel",
    "OverrideValidator",
    "UnitBreakdown",
    "AIBreakdownOverrides",
    "EnergyOverrides",
    "LL97Overrides",
    "FinancialOverrides",
    "NOIOverrides",
    "PropertyValueOverrides",
    "OVERRIDE_MODELS",
    "get_override_validator",
]
