"""
retrofit/services/energy.py - Energy consumption and retrofit cost (energy)

Annual consumption and cost of the existing PTAC system against the PTHP
replacement, the energy reduction, the retrofit cost and the annual energy
cost savings. PTHP heating demand is driven by equivalent full load hours
looked up from building height and construction era.
"""

from __future__ import annotations
from datetime import date
from typing import Any, Dict
import logging

from retrofit.core.enums import ServiceName
from retrofit.core.record import CalculationRecord
from retrofit.validators.overrides import EnergyOverrides
from retrofit.validators.taxonomy import ValidationResult
from .base import CalculationService, ServiceInput, ServiceOutput
from . import constants as C

logger = logging.getLogger(__name__)

MIN_YEAR_BUILT = 1800
MIN_FLOORS = 1
MAX_FLOORS = 200


class EnergyService(CalculationService):
    """energy: PTAC vs PTHP consumption, cost and savings."""

    name = ServiceName.ENERGY.value
    version = "1.0.0"
    description = "PTAC vs PTHP energy consumption, retrofit cost and savings"
    dependencies = (ServiceName.AI_BREAKDOWN.value,)
    owned_fields = (
        "eflh_hours",
        # PTAC
        "annual_building_therms_heating_ptac",
        "annual_building_kwh_cooling_ptac",
        "annual_building_mmbtu_heating_ptac",
        "annual_building_mmbtu_cooling_ptac",
        "annual_building_mmbtu_total_ptac",
        "annual_energy_cost_ptac",
        # PTHP
        "annual_building_kwh_heating_pthp",
        "annual_building_kwh_cooling_pthp",
        "annual_building_kwh_total_pthp",
        "annual_building_mmbtu_heating_pthp",
        "annual_building_mmbtu_cooling_pthp",
        "annual_building_mmbtu_total_pthp",
        "annual_energy_cost_pthp",
        # Comparison
        "energy_reduction_percentage",
        "total_retrofit_cost",
        "annual_energy_savings",
        "energy_configuration",
    )
    required_fields = ("ptac_units",)
    override_model = EnergyOverrides

    def project(self, record: CalculationRecord) -> Dict[str, Any]:
        values: Dict[str, Any] = {
            "ptac_units": record.get("ptac_units"),
            "year_built": record.building.year_built,
            "num_floors": record.building.num_floors,
        }
        values.update(C.ENERGY_DEFAULTS)
        return values

    def check_input(self, values: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        ptac_units = values.get("ptac_units")
        if not ptac_units or ptac_units <= 0:
            result.error("ptac_units", "PTAC units must be greater than 0", ptac_units)

        year_built = values.get("year_built")
        current_year = date.today().year
        if year_built is None:
            result.error("year_built", "Year built is required for the EFLH lookup")
        elif not MIN_YEAR_BUILT <= year_built <= current_year:
            result.error(
                "year_built",
                f"Year built must be between {MIN_YEAR_BUILT} and {current_year}",
                year_built,
            )

        num_floors = values.get("num_floors")
        if num_floors is None:
            result.error("num_floors", "Number of floors is required for the EFLH lookup")
        elif not MIN_FLOORS <= num_floors <= MAX_FLOORS:
            result.error(
                "num_floors",
                f"Number of floors must be between {MIN_FLOORS} and {MAX_FLOORS}",
                num_floors,
            )

        return result

    def execute(self, service_input: ServiceInput) -> ServiceOutput:
        v = service_input.values
        units = v["ptac_units"]
        eflh = C.eflh_hours(v["year_built"], v["num_floors"])

        # PTAC building totals
        therms_heating_ptac = units * v["annual_unit_therms_heating_ptac"]
        kwh_cooling_ptac = units * v["annual_unit_kwh_cooling_ptac"]
        mmbtu_heating_ptac = units * v["annual_unit_mmbtu_heating_ptac"]
        mmbtu_cooling_ptac = units * v["annual_unit_mmbtu_cooling_ptac"]
        mmbtu_total_ptac = mmbtu_heating_ptac + mmbtu_cooling_ptac
        cost_ptac = kwh_cooling_ptac * v["price_kwh"] + therms_heating_ptac * v["price_therm"]

        # PTHP: heating from capacity, COP and EFLH; cooling unchanged
        kwh_heating_pthp = (
            (v["heating_capacity_pthp"] / C.KBTU_PER_KW)
            * self.divide(1.0, v["pthp_cop"], "PTHP heating kWh")
            * eflh
            * units
        )
        kwh_cooling_pthp = kwh_cooling_ptac
        mmbtu_heating_pthp = kwh_heating_pthp * C.KWH_TO_MMBTU
        mmbtu_cooling_pthp = mmbtu_cooling_ptac
        mmbtu_total_pthp = mmbtu_heating_pthp + mmbtu_cooling_pthp
        cost_pthp = (kwh_heating_pthp + kwh_cooling_pthp) * v["price_kwh"]

        reduction = self.divide(
            mmbtu_total_ptac - mmbtu_total_pthp, mmbtu_total_ptac, "energy reduction percentage"
        ) * 100
        retrofit_cost = (
            (v["pthp_unit_cost"] + v["pthp_installation_cost"])
            * units
            * (1 + v["pthp_contingency"])
        )
        savings = cost_ptac - cost_pthp

        logger.debug(
            f"Energy: {units} units, EFLH {eflh}, reduction {reduction:.1f}%, "
            f"retrofit ${retrofit_cost:,.0f}, savings ${savings:,.0f}/yr"
        )

        configuration = {k: v[k] for k in C.ENERGY_DEFAULTS}
        configuration["ptac_units"] = units

        return self.output({
            "eflh_hours": eflh,
            "annual_building_therms_heating_ptac": therms_heating_ptac,
            "annual_building_kwh_cooling_ptac": kwh_cooling_ptac,
            "annual_building_mmbtu_heating_ptac": mmbtu_heating_ptac,
            "annual_building_mmbtu_cooling_ptac": mmbtu_cooling_ptac,
            "annual_building_mmbtu_total_ptac": mmbtu_total_ptac,
            "annual_energy_cost_ptac": cost_ptac,
            "annual_building_kwh_heating_pthp": kwh_heating_pthp,
            "annual_building_kwh_cooling_pthp": kwh_cooling_pthp,
            "annual_building_kwh_total_pthp": kwh_heating_pthp + kwh_cooling_pthp,
            "annual_building_mmbtu_heating_pthp": mmbtu_heating_pthp,
            "annual_building_mmbtu_cooling_pthp": mmbtu_cooling_pthp,
            "annual_building_mmbtu_total_pthp": mmbtu_total_pthp,
            "annual_energy_cost_pthp": cost_pthp,
            "energy_reduction_percentage": reduction,
            "total_retrofit_cost": retrofit_cost,
            "annual_energy_savings": savings,
            "energy_configuration": configuration,
        })
