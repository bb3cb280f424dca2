"""
retrofit/services/property_value.py - Property value impact (property-value)

Capitalizes each year's NOI at a single cap rate for both scenarios.
Headline values are taken at the first savings year.
"""

from __future__ import annotations
from typing import Any, Dict, List
import logging

from retrofit.core.enums import ServiceName
from retrofit.core.record import CalculationRecord
from retrofit.validators.overrides import PropertyValueOverrides
from retrofit.validators.taxonomy import ValidationResult
from .base import CalculationService, ServiceInput, ServiceOutput
from . import constants as C

logger = logging.getLogger(__name__)


class PropertyValueService(CalculationService):
    """property-value: NOI / cap rate, with and without the upgrade."""

    name = ServiceName.PROPERTY_VALUE.value
    version = "1.0.0"
    description = "Property value from capitalized NOI"
    dependencies = (ServiceName.NOI.value,)
    owned_fields = (
        "property_value_by_year_no_upgrade",
        "property_value_by_year_with_upgrade",
        "property_value_no_upgrade",
        "property_value_with_upgrade",
        "net_property_value_gain",
        "investment_metrics",
        "cap_rate_used",
    )
    required_fields = ("noi_by_year_no_upgrade", "noi_by_year_with_upgrade")
    override_model = PropertyValueOverrides

    def project(self, record: CalculationRecord) -> Dict[str, Any]:
        config = record.get("analysis_config", {})
        return {
            "noi_by_year_no_upgrade": record.get("noi_by_year_no_upgrade", []),
            "noi_by_year_with_upgrade": record.get("noi_by_year_with_upgrade", []),
            "total_retrofit_cost": record.get("total_retrofit_cost", 0.0),
            "savings_start_year": config.get("savings_start_year"),
            "cap_rate": record.building.cap_rate or C.DEFAULT_PROPERTY_CAP_RATE,
        }

    def check_input(self, values: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()
        if not values.get("noi_by_year_no_upgrade"):
            result.error("noi_by_year_no_upgrade", "NOI year-by-year data without upgrade is required")
        if not values.get("noi_by_year_with_upgrade"):
            result.error("noi_by_year_with_upgrade", "NOI year-by-year data with upgrade is required")
        cap_rate = values.get("cap_rate")
        if cap_rate is None or cap_rate <= 0:
            result.error("cap_rate", "Cap rate must be greater than 0", cap_rate)
        return result

    def capitalize(self, noi_by_year: List[Dict[str, Any]], cap_rate: float) -> List[Dict[str, Any]]:
        rate = cap_rate / 100
        return [
            {"year": item["year"], "value": self.divide(item["noi"], rate, "property value")}
            for item in noi_by_year
        ]

    def execute(self, service_input: ServiceInput) -> ServiceOutput:
        v = service_input.values
        cap_rate = v["cap_rate"]
        cost = v.get("total_retrofit_cost") or 0.0

        values_no_upgrade = self.capitalize(v["noi_by_year_no_upgrade"], cap_rate)
        values_with_upgrade = self.capitalize(v["noi_by_year_with_upgrade"], cap_rate)

        # Headline year: first savings year, else the first projected year
        headline = 0
        savings_start_year = v.get("savings_start_year")
        for index, item in enumerate(values_no_upgrade):
            if item["year"] == savings_start_year:
                headline = index
                break

        value_no_upgrade = values_no_upgrade[headline]["value"]
        value_with_upgrade = values_with_upgrade[headline]["value"]
        gain = value_with_upgrade - value_no_upgrade

        logger.debug(
            f"Property value at {values_no_upgrade[headline]['year']}: "
            f"${value_no_upgrade:,.0f} -> ${value_with_upgrade:,.0f} (cap {cap_rate}%)"
        )

        return self.output({
            "property_value_by_year_no_upgrade": values_no_upgrade,
            "property_value_by_year_with_upgrade": values_with_upgrade,
            "property_value_no_upgrade": value_no_upgrade,
            "property_value_with_upgrade": value_with_upgrade,
            "net_property_value_gain": gain,
            "investment_metrics": {
                "headline_year": values_no_upgrade[headline]["year"],
                "equity_created": gain,
                "value_to_retrofit_cost_ratio": gain / cost if cost > 0 else 0.0,
                "return_on_retrofit_percentage": gain / cost * 100 if cost > 0 else 0.0,
            },
            "cap_rate_used": cap_rate,
        })
