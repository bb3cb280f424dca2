"""
core/enums.py - Service names and execution states

The six calculation services form a closed set. Everything that selects a
service (planner, registry, CLI) goes through ServiceName so that a typo is
rejected at the boundary rather than deep inside a cascade.
"""

from __future__ import annotations
from enum import Enum
from typing import List


class ServiceName(Enum):
    """Calculation services, in registry order."""
    AI_BREAKDOWN = "ai-breakdown"
    ENERGY = "energy"
    LL97 = "ll97"
    FINANCIAL = "financial"
    NOI = "noi"
    PROPERTY_VALUE = "property-value"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class StepState(Enum):
    """State of one service within an execution plan."""
    PENDING = "pending"
    VALIDATING = "validating"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CascadeStatus(Enum):
    """Terminal status of a whole cascade."""
    SUCCEEDED = "succeeded"    # every planned service ran
    PARTIAL = "partial"        # some services persisted, then one failed
    FAILED = "failed"          # the first service failed, nothing persisted
