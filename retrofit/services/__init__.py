"""
Calculation services and their registry.
"""

from .base import CalculationService, ServiceInput, ServiceOutput
from .unit_breakdown import (
    UnitBreakdownService,
    UnitMixEstimator,
    UnitMixEstimate,
    HeuristicUnitMixEstimator,
)
from .energy import EnergyService
from .ll97 import LL97Service
from .financial import FinancialService
from .noi import NOIService
from .property_value import PropertyValueService
from .registry import ServiceRegistry, default_services

__all__ = [
    "CalculationService",
    "ServiceInput",
    "ServiceOutput",
    "UnitBreakdownService",
    "UnitMixEstimator",
    "UnitMixEstimate",
    "HeuristicUnitMixEstimator",
    "EnergyService",
    "LL97Service",
    "FinancialService",
    "NOIService",
    "PropertyValueService",
    "ServiceRegistry",
    "default_services",
]
