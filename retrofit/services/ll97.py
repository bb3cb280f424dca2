"""
retrofit/services/ll97.py - Local Law 97 emissions and fees (ll97)

Emissions budgets per compliance period, annual fees without the upgrade,
beneficial electrification (BE) credits, emissions after replacing gas
heating with PTHP heating, the adjusted annual fees per fee window and the
fees avoided by the upgrade.

Budgets come from the LL84 property-use breakdown when one is available,
otherwise from a building-class estimate.
"""

from __future__ import annotations
from typing import Any, Dict, List
import logging

from retrofit.core.enums import ServiceName
from retrofit.core.record import CalculationRecord
from retrofit.validators.overrides import LL97Overrides
from retrofit.validators.taxonomy import ValidationResult
from .base import CalculationService, ServiceInput, ServiceOutput
from .property_use import PropertyUse, normalize_property_type, parse_property_use, unknown_property_types
from . import constants as C

logger = logging.getLogger(__name__)

BUDGET_FROM_PROPERTY_USE = "property_use"
BUDGET_FROM_BUILDING_CLASS = "building_class"

# Windows that receive a BE credit, and the coefficient each uses
BE_CREDIT_WINDOWS = {
    "2024-2026": "be_coefficient_before_2027",
    "2027-2029": "be_coefficient_2027_2029",
}


def emissions_budgets_from_uses(uses: List[PropertyUse]) -> Dict[str, float]:
    budgets = {p: 0.0 for p in C.PERIOD_KEYS}
    for use in uses:
        limits = C.EMISSIONS_LIMITS[normalize_property_type(use.property_type)]
        for period in C.PERIOD_KEYS:
            budgets[period] += use.square_feet * limits[period]
    return budgets


def emissions_budgets_from_class(building_class: str, total_square_feet: float) -> Dict[str, float]:
    base = C.FALLBACK_CLASS_BASE.get((building_class or "")[:1].upper(), C.FALLBACK_DEFAULT_BASE)
    return {
        period: (total_square_feet / 1000) * base * rate
        for period, rate in C.FALLBACK_PERIOD_RATES.items()
    }


class LL97Service(CalculationService):
    """ll97: emissions budgets, BE credits and fees with and without the upgrade."""

    name = ServiceName.LL97.value
    version = "1.0.0"
    description = "Local Law 97 emissions budgets, BE credits and fees"
    dependencies = (ServiceName.ENERGY.value,)
    owned_fields = (
        "emissions_budgets",
        "emissions_budget_method",
        "baseline_fees",
        "be_credits",
        "total_be_credit",
        "adjusted_emissions",
        "adjusted_fees",
        "ll97_fee_avoidance",
        "compliance_status",
        "worst_case_fee",
        "ll97_configuration",
    )
    required_fields = (
        "annual_building_mmbtu_heating_ptac",
        "annual_building_kwh_heating_pthp",
    )
    override_model = LL97Overrides

    def project(self, record: CalculationRecord) -> Dict[str, Any]:
        building = record.building
        values: Dict[str, Any] = {
            "building_class": building.building_class or "R6",
            "total_square_feet": building.total_square_feet,
            "total_building_emissions_ll84": building.total_building_emissions_ll84,
            "property_use_breakdown": building.property_use_breakdown,
            "annual_building_mmbtu_heating_ptac": record.get("annual_building_mmbtu_heating_ptac"),
            "annual_building_kwh_heating_pthp": record.get("annual_building_kwh_heating_pthp"),
        }
        values.update(C.LL97_DEFAULTS)
        return values

    def check_input(self, values: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        sqft = values.get("total_square_feet")
        if not sqft or sqft <= 0:
            result.error("total_square_feet", "Total square feet must be greater than 0", sqft)

        emissions = values.get("total_building_emissions_ll84")
        if not emissions or emissions <= 0:
            result.error("total_building_emissions_ll84", "Building emissions must be greater than 0", emissions)

        unknown = unknown_property_types(parse_property_use(values.get("property_use_breakdown")))
        if unknown:
            result.error(
                "property_use_breakdown",
                f"No emissions limit for property type(s): {', '.join(unknown)}",
            )
        return result

    def execute(self, service_input: ServiceInput) -> ServiceOutput:
        v = service_input.values
        emissions = v["total_building_emissions_ll84"]
        fee = v["fee_per_ton_co2e"]
        kwh_heating_pthp = v["annual_building_kwh_heating_pthp"]
        mmbtu_heating_ptac = v["annual_building_mmbtu_heating_ptac"]

        uses = parse_property_use(v.get("property_use_breakdown"))
        if uses:
            budgets = emissions_budgets_from_uses(uses)
            method = BUDGET_FROM_PROPERTY_USE
        else:
            budgets = emissions_budgets_from_class(v["building_class"], v["total_square_feet"])
            method = BUDGET_FROM_BUILDING_CLASS

        baseline_fees = {p: max(0.0, (emissions - budgets[p]) * fee) for p in C.PERIOD_KEYS}

        be_credits = {w: kwh_heating_pthp * v[coef] for w, coef in BE_CREDIT_WINDOWS.items()}

        # Gas heating removed, electric heating added at the period's grid factor
        adjusted_emissions = {}
        for period in C.PERIOD_KEYS:
            ef_grid = v["ef_grid_2024_2029"] if period == "2024-2029" else v["ef_grid_2030_2034"]
            adjusted_emissions[period] = (
                emissions - mmbtu_heating_ptac * v["ef_gas"] + kwh_heating_pthp * ef_grid
            )

        adjusted_fees = {}
        for window in C.WINDOW_KEYS:
            period = C.WINDOW_PERIOD[window]
            credit = be_credits.get(window, 0.0)
            adjusted_fees[window] = max(
                0.0, (adjusted_emissions[period] - credit - budgets[period]) * fee
            )

        avoidance = {
            w: baseline_fees[C.WINDOW_PERIOD[w]] - adjusted_fees[w] for w in C.WINDOW_KEYS
        }

        compliance_status = {p: emissions <= budgets[p] for p in C.PERIOD_KEYS}

        logger.debug(
            f"LL97: budgets via {method}, worst-case fee ${max(baseline_fees.values()):,.0f}"
        )

        configuration = {k: v[k] for k in C.LL97_DEFAULTS}
        configuration.update({
            "building_class": v["building_class"],
            "total_square_feet": v["total_square_feet"],
            "total_building_emissions_ll84": emissions,
        })

        return self.output({
            "emissions_budgets": budgets,
            "emissions_budget_method": method,
            "baseline_fees": baseline_fees,
            "be_credits": be_credits,
            "total_be_credit": sum(be_credits.values()),
            "adjusted_emissions": adjusted_emissions,
            "adjusted_fees": adjusted_fees,
            "ll97_fee_avoidance": avoidance,
            "compliance_status": compliance_status,
            "worst_case_fee": max(baseline_fees.values()),
            "ll97_configuration": configuration,
        })
