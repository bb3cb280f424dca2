"""
errors/taxonomy.py - Error classification for the calculation engine

Categories and numeric codes shared by every engine exception, so callers
(HTTP layer, CLI, audit log) can branch on a stable code instead of a
class name.
"""

from __future__ import annotations
from enum import Enum


class ErrorCategory(Enum):
    """Error categories."""
    # Request errors (1xxx)
    REQUEST = "request"

    # Validation errors (2xxx)
    VALIDATION = "validation"

    # Dependency errors (3xxx)
    DEPENDENCY = "dependency"

    # Execution errors (4xxx)
    COMPUTATION = "computation"
    TIMEOUT = "timeout"

    # Storage errors (5xxx)
    STORAGE = "storage"

    # Configuration errors (6xxx)
    CONFIGURATION = "configuration"


class ErrorCode(Enum):
    """Specific error codes."""

    # Request (1xxx)
    REQ_UNKNOWN_SERVICE = 1001

    # Validation (2xxx)
    VAL_FAILED = 2001
    VAL_UNKNOWN_OVERRIDE = 2002

    # Dependency (3xxx)
    DEP_MISSING_UPSTREAM = 3001
    DEP_GRAPH_CYCLE = 3002

    # Execution (4xxx)
    EXE_COMPUTATION = 4001
    EXE_TIMEOUT = 4002

    # Storage (5xxx)
    STO_CONFLICT = 5001
    STO_NOT_FOUND = 5002


# Stage at which each code can surface. Used by CascadeResult to tell callers
# whether the failure happened before or after a service body started.
PRE_EXECUTION_CODES = frozenset({
    ErrorCode.REQ_UNKNOWN_SERVICE,
    ErrorCode.VAL_FAILED,
    ErrorCode.VAL_UNKNOWN_OVERRIDE,
    ErrorCode.DEP_MISSING_UPSTREAM,
    ErrorCode.DEP_GRAPH_CYCLE,
    ErrorCode.STO_NOT_FOUND,
})


def is_pre_execution(code: ErrorCode) -> bool:
    """True if the error was raised before any service body ran."""
    return code in PRE_EXECUTION_CODES
