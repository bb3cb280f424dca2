"""
Error taxonomy and exceptions for the calculation engine.
"""

from .taxonomy import (
    ErrorCategory,
    ErrorCode,
    is_pre_execution,
)
from .exceptions import (
    RetrofitError,
    UnknownService,
    GraphCycleDetected,
    MissingRequiredUpstreamData,
    UnknownOverrideField,
    ValidationFailed,
    ComputationError,
    ServiceTimeout,
    RecordNotFound,
    RecordConflict,
)

__all__ = [
    "ErrorCategory",
    "ErrorCode",
    "is_pre_execution",
    "RetrofitError",
    "UnknownService",
    "GraphCycleDetected",
    "MissingRequiredUpstreamData",
    "UnknownOverrideField",
    "ValidationFailed",
    "ComputationError",
    "ServiceTimeout",
    "RecordNotFound",
    "RecordConflict",
]
