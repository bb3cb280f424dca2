"""
retrofit/services/unit_breakdown.py - Unit mix estimation (ai-breakdown)

Estimates how a building's residential units split across studio, one-,
two- and three-plus-bedroom apartments, then derives the number of PTAC
units to replace. The estimator is pluggable; the default one applies
typical shares by building class so results are deterministic. A
user-provided breakdown always replaces the estimate.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

from retrofit.core.enums import ServiceName
from retrofit.core.record import CalculationRecord
from retrofit.validators.overrides import AIBreakdownOverrides
from retrofit.validators.taxonomy import ValidationResult
from .base import CalculationService, ServiceInput, ServiceOutput
from . import constants as C

logger = logging.getLogger(__name__)

USER_PROVIDED_SOURCE = "User-Provided"


@dataclass
class UnitMixEstimate:
    counts: Dict[str, int]
    source: str
    reasoning: str = ""


class UnitMixEstimator(ABC):
    """Produces a unit mix from building attributes."""

    @abstractmethod
    def estimate(self, building: Dict[str, Any]) -> UnitMixEstimate:
        pass


class HeuristicUnitMixEstimator(UnitMixEstimator):
    """Typical unit-mix shares by building class, allocated by largest remainder."""

    source = "Heuristic"

    def shares_for(self, building_class: Optional[str]) -> Dict[str, float]:
        prefix = (building_class or "")[:1].upper()
        return C.UNIT_MIX_BY_CLASS_PREFIX.get(prefix, C.DEFAULT_UNIT_MIX)

    def estimate(self, building: Dict[str, Any]) -> UnitMixEstimate:
        total = int(building.get("units_res") or 0)
        shares = self.shares_for(building.get("building_class"))

        exact = {t: total * shares[t] for t in C.UNIT_TYPES}
        counts = {t: int(exact[t]) for t in C.UNIT_TYPES}
        remaining = total - sum(counts.values())

        # Hand out leftover units by largest fractional part, registry order on ties
        by_remainder = sorted(
            C.UNIT_TYPES,
            key=lambda t: (-(exact[t] - counts[t]), C.UNIT_TYPES.index(t)),
        )
        for unit_type in by_remainder[:remaining]:
            counts[unit_type] += 1

        return UnitMixEstimate(
            counts=counts,
            source=self.source,
            reasoning=(
                f"{total} residential units split by typical shares for "
                f"building class {building.get('building_class') or 'unknown'}"
            ),
        )


def ptac_units_for(counts: Dict[str, int]) -> int:
    return sum(counts.get(t, 0) * C.PTAC_UNITS_PER_APARTMENT[t] for t in C.UNIT_TYPES)


def bedrooms_for(counts: Dict[str, int]) -> int:
    return sum(counts.get(t, 0) * C.BEDROOMS_PER_APARTMENT[t] for t in C.UNIT_TYPES)


class UnitBreakdownService(CalculationService):
    """ai-breakdown: unit mix and PTAC unit count."""

    name = ServiceName.AI_BREAKDOWN.value
    version = "1.0.0"
    description = "Unit mix estimation and PTAC unit count"
    dependencies = ()
    owned_fields = (
        "unit_breakdown",
        "total_apartments",
        "ptac_units",
        "number_of_bedrooms",
        "unit_mix_source",
        "unit_mix_reasoning",
    )
    override_model = AIBreakdownOverrides

    def __init__(self, estimator: Optional[UnitMixEstimator] = None):
        super().__init__()
        self.estimator = estimator or HeuristicUnitMixEstimator()

    def project(self, record: CalculationRecord) -> Dict[str, Any]:
        building = record.building
        return {
            "units_res": building.units_res,
            "building_class": building.building_class,
            "num_floors": building.num_floors,
            "year_built": building.year_built,
            "unit_breakdown": None,
        }

    def check_input(self, values: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()
        breakdown = values.get("unit_breakdown")
        units_res = values.get("units_res")

        if breakdown is None:
            if not units_res or units_res <= 0:
                result.error("units_res", "Residential unit count must be greater than 0", units_res)
            return result

        total = sum(int(breakdown.get(t, 0)) for t in C.UNIT_TYPES)
        if total <= 0:
            result.error("unit_breakdown", "Unit breakdown must contain at least one apartment", total)
        elif units_res and total != units_res:
            result.warn(
                "unit_breakdown",
                f"Unit breakdown totals {total} apartments but the building has {units_res}",
                total,
            )
        return result

    def execute(self, service_input: ServiceInput) -> ServiceOutput:
        breakdown = service_input.get("unit_breakdown")
        if breakdown is not None:
            estimate = UnitMixEstimate(
                counts={t: int(breakdown.get(t, 0)) for t in C.UNIT_TYPES},
                source=USER_PROVIDED_SOURCE,
                reasoning="Unit breakdown provided by user",
            )
        else:
            estimate = self.estimator.estimate(service_input.values)

        ptac_units = ptac_units_for(estimate.counts)
        logger.debug(f"Unit mix {estimate.counts} -> {ptac_units} PTAC units ({estimate.source})")

        return self.output({
            "unit_breakdown": dict(estimate.counts),
            "total_apartments": sum(estimate.counts.values()),
            "ptac_units": ptac_units,
            "number_of_bedrooms": bedrooms_for(estimate.counts),
            "unit_mix_source": estimate.source,
            "unit_mix_reasoning": estimate.reasoning,
        })
