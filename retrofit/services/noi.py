"""
retrofit/services/noi.py - Net operating income impact (noi)

Year-by-year NOI over the financial analysis window, with and without the
upgrade. Both scenarios grow the current NOI at a constant rate and pay LL97
fees; the upgraded scenario pays the adjusted fees from the upgrade year and
adds the energy savings (and any rent uplift) from the savings start year.
"""

from __future__ import annotations
from typing import Any, Dict, List, Tuple
import logging

from retrofit.core.enums import ServiceName
from retrofit.core.record import CalculationRecord
from retrofit.validators.overrides import NOIOverrides
from retrofit.validators.taxonomy import ValidationResult
from .base import CalculationService, ServiceInput, ServiceOutput
from . import constants as C

logger = logging.getLogger(__name__)

NOI_FROM_OVERRIDE = "override"
NOI_FROM_BUILDING_VALUE = "building_value"
NOI_FROM_UNITS = "per_unit"


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


class NOIService(CalculationService):
    """noi: NOI projections and retrofit insights."""

    name = ServiceName.NOI.value
    version = "1.0.0"
    description = "Year-by-year NOI with and without the retrofit"
    dependencies = (
        ServiceName.ENERGY.value,
        ServiceName.LL97.value,
        ServiceName.FINANCIAL.value,
    )
    owned_fields = (
        "current_noi",
        "noi_by_year_no_upgrade",
        "noi_by_year_with_upgrade",
        "noi_insights",
        "noi_configuration",
    )
    required_fields = (
        "annual_energy_savings",
        "baseline_fees",
        "adjusted_fees",
        "analysis_config",
    )
    override_model = NOIOverrides

    def project(self, record: CalculationRecord) -> Dict[str, Any]:
        building = record.building
        return {
            "annual_energy_savings": record.get("annual_energy_savings"),
            "total_retrofit_cost": record.get("total_retrofit_cost", 0.0),
            "baseline_fees": record.get("baseline_fees"),
            "adjusted_fees": record.get("adjusted_fees"),
            "analysis_config": record.get("analysis_config"),
            "units_res": building.units_res,
            "current_noi": None,
            "building_value": building.building_value,
            "cap_rate": building.cap_rate if building.cap_rate else C.DEFAULT_NOI_CAP_RATE,
            "noi_growth_rate": C.DEFAULT_NOI_GROWTH_RATE,
            "utilities_included_in_rent": C.DEFAULT_UTILITIES_INCLUDED_IN_RENT,
            "rent_increase_percentage": C.DEFAULT_RENT_INCREASE_PERCENTAGE,
            "vacancy_rate": C.DEFAULT_VACANCY_RATE,
        }

    def check_input(self, values: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        building_value = values.get("building_value")
        if building_value is not None and building_value <= 0:
            result.error("building_value", "Building value must be greater than 0", building_value)

        config = values.get("analysis_config") or {}
        for key in ("analysis_start_year", "analysis_end_year", "upgrade_year", "savings_start_year"):
            if key not in config:
                result.error("analysis_config", f"Financial analysis config is missing {key}")
        return result

    def current_noi(self, values: Dict[str, Any]) -> Tuple[float, str]:
        """Current NOI and where it came from."""
        if values.get("current_noi") is not None:
            return values["current_noi"], NOI_FROM_OVERRIDE
        building_value = values.get("building_value")
        if building_value:
            return building_value * values["cap_rate"] / 100, NOI_FROM_BUILDING_VALUE
        units = values.get("units_res")
        if units:
            return units * C.DEFAULT_NOI_PER_UNIT, NOI_FROM_UNITS
        return C.DEFAULT_BUILDING_VALUE * values["cap_rate"] / 100, NOI_FROM_BUILDING_VALUE

    def rental_income_impact(self, values: Dict[str, Any]) -> float:
        """Rent uplift from savings when utilities are in the rent, net of vacancy."""
        if not values.get("utilities_included_in_rent"):
            return 0.0
        uplift = values["annual_energy_savings"] * values["rent_increase_percentage"] / 100
        return uplift * (1 - values["vacancy_rate"] / 100)

    def execute(self, service_input: ServiceInput) -> ServiceOutput:
        v = service_input.values
        config = v["analysis_config"]
        start, end = config["analysis_start_year"], config["analysis_end_year"]
        upgrade_year = config["upgrade_year"]
        savings_start_year = config["savings_start_year"]
        growth = v["noi_growth_rate"]
        savings = v["annual_energy_savings"]
        baseline_fees = v["baseline_fees"]
        adjusted_fees = v["adjusted_fees"]
        first_fee_year = C.COMPLIANCE_PERIODS[0][1]

        current, source = self.current_noi(v)
        rental_impact = self.rental_income_impact(v)

        no_upgrade: List[Dict[str, Any]] = []
        with_upgrade: List[Dict[str, Any]] = []
        for index, year in enumerate(range(start, end + 1)):
            base = current * (1 + growth) ** index
            fees_apply = year >= first_fee_year

            noi_without = base - (baseline_fees.get(C.compliance_period(year), 0.0) if fees_apply else 0.0)

            if year < upgrade_year:
                noi_with = noi_without
            else:
                noi_with = base - (adjusted_fees.get(C.fee_window(year), 0.0) if fees_apply else 0.0)
                if year >= savings_start_year:
                    noi_with += savings + rental_impact

            no_upgrade.append({"year": year, "noi": noi_without})
            with_upgrade.append({"year": year, "noi": noi_with})

        insights = self.insights(no_upgrade, with_upgrade, savings_start_year, v["total_retrofit_cost"])
        logger.debug(
            f"NOI: current ${current:,.0f} ({source}), "
            f"immediate boost ${insights['immediate_noi_boost']:,.0f}"
        )

        return self.output({
            "current_noi": current,
            "noi_by_year_no_upgrade": no_upgrade,
            "noi_by_year_with_upgrade": with_upgrade,
            "noi_insights": insights,
            "noi_configuration": {
                "current_noi_source": source,
                "building_value": v.get("building_value"),
                "cap_rate": v["cap_rate"],
                "noi_growth_rate": growth,
                "utilities_included_in_rent": bool(v.get("utilities_included_in_rent")),
                "rent_increase_percentage": v["rent_increase_percentage"],
                "vacancy_rate": v["vacancy_rate"],
                "rental_income_impact": rental_impact,
            },
        })

    def insights(
        self,
        no_upgrade: List[Dict[str, Any]],
        with_upgrade: List[Dict[str, Any]],
        savings_start_year: int,
        retrofit_cost: float,
    ) -> Dict[str, float]:
        gains = [
            (w["year"], w["noi"] - n["noi"], n["noi"])
            for n, w in zip(no_upgrade, with_upgrade)
            if w["year"] >= savings_start_year
        ]
        if not gains:
            return {
                "immediate_noi_boost": 0.0,
                "average_annual_noi_gain": 0.0,
                "noi_improvement_percentage": 0.0,
                "noi_yield_on_investment": 0.0,
                "noi_payback_years": -1,
            }

        _, immediate, baseline = gains[0]
        average = sum(g for _, g, _ in gains) / len(gains)
        return {
            "immediate_noi_boost": immediate,
            "average_annual_noi_gain": average,
            "noi_improvement_percentage": _ratio(immediate, baseline) * 100,
            "noi_yield_on_investment": _ratio(average, retrofit_cost) * 100,
            "noi_payback_years": retrofit_cost / immediate if immediate > 0 else -1,
        }
