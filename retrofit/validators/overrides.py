"""
retrofit/validators/overrides.py - Override payload schemas and validation

Each service that accepts overrides declares a pydantic model listing the
fields a caller may override and their hard limits. Unknown fields are
rejected wholesale with UnknownOverrideField; a payload is never partially
applied. Out-of-limit values become validation errors, out-of-typical-range
values become warnings.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from retrofit.core.enums import ServiceName
from retrofit.errors import UnknownOverrideField
from .ranges import check_typical_ranges
from .taxonomy import ValidationResult


# =============================================================================
# Base
# =============================================================================


class OverrideModel(BaseModel):
    """Base for override schemas. Every field is optional, extras are forbidden."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# ai-breakdown
# =============================================================================


class UnitBreakdown(BaseModel):
    """Apartment counts by bedroom type."""

    model_config = ConfigDict(extra="forbid")

    studio: int = Field(0, ge=0, le=10000, description="Studio apartments")
    one_bed: int = Field(0, ge=0, le=10000, description="One-bedroom apartments")
    two_bed: int = Field(0, ge=0, le=10000, description="Two-bedroom apartments")
    three_plus: int = Field(0, ge=0, le=10000, description="Three or more bedrooms")

    @property
    def total(self) -> int:
        return self.studio + self.one_bed + self.two_bed + self.three_plus


class AIBreakdownOverrides(OverrideModel):
    unit_breakdown: Optional[UnitBreakdown] = Field(
        None, description="User-provided unit mix replacing the estimate"
    )


# =============================================================================
# energy
# =============================================================================


class EnergyOverrides(OverrideModel):
    ptac_units: Optional[int] = Field(None, ge=1, le=20000)
    annual_unit_therms_heating_ptac: Optional[float] = Field(None, ge=0)
    annual_unit_kwh_cooling_ptac: Optional[float] = Field(None, ge=0)
    annual_unit_mmbtu_heating_ptac: Optional[float] = Field(None, ge=0)
    annual_unit_mmbtu_cooling_ptac: Optional[float] = Field(None, ge=0)
    heating_capacity_pthp: Optional[float] = Field(None, gt=0, description="KBtu/h per unit")
    pthp_cop: Optional[float] = Field(None, gt=0)
    pthp_unit_cost: Optional[float] = Field(None, ge=0)
    pthp_installation_cost: Optional[float] = Field(None, ge=0)
    pthp_contingency: Optional[float] = Field(None, ge=0, le=1)
    price_kwh: Optional[float] = Field(None, ge=0)
    price_therm: Optional[float] = Field(None, ge=0)


# =============================================================================
# ll97
# =============================================================================


class LL97Overrides(OverrideModel):
    total_building_emissions_ll84: Optional[float] = Field(None, gt=0, description="tCO2e/yr")
    total_square_feet: Optional[float] = Field(None, gt=0)
    building_class: Optional[str] = Field(None, min_length=1, max_length=4)
    fee_per_ton_co2e: Optional[float] = Field(None, ge=0)
    ef_gas: Optional[float] = Field(None, ge=0)
    ef_grid_2024_2029: Optional[float] = Field(None, ge=0)
    ef_grid_2030_2034: Optional[float] = Field(None, ge=0)
    be_coefficient_before_2027: Optional[float] = Field(None, ge=0)
    be_coefficient_2027_2029: Optional[float] = Field(None, ge=0)


# =============================================================================
# financial
# =============================================================================


class FinancialOverrides(OverrideModel):
    total_retrofit_cost: Optional[float] = Field(None, ge=0)
    annual_energy_savings: Optional[float] = None
    loan_principal: Optional[float] = Field(None, ge=0)
    loan_term_years: Optional[int] = Field(None, ge=1, le=50)
    annual_interest_rate: Optional[float] = Field(None, ge=0, le=1)
    analysis_start_year: Optional[int] = Field(None, ge=2000, le=2100)
    analysis_end_year: Optional[int] = Field(None, ge=2000, le=2100)
    upgrade_year: Optional[int] = Field(None, ge=2000, le=2100)
    loan_start_year: Optional[int] = Field(None, ge=2000, le=2100)


# =============================================================================
# noi
# =============================================================================


class NOIOverrides(OverrideModel):
    current_noi: Optional[float] = Field(None, description="Known current NOI, $/yr")
    building_value: Optional[float] = Field(None, gt=0)
    cap_rate: Optional[float] = Field(None, gt=0, le=100, description="Percent")
    noi_growth_rate: Optional[float] = Field(None, ge=-0.5, le=0.5, description="Fraction per year")
    utilities_included_in_rent: Optional[bool] = None
    rent_increase_percentage: Optional[float] = Field(None, ge=0, le=100)
    vacancy_rate: Optional[float] = Field(None, ge=0, le=100, description="Percent")


# =============================================================================
# property-value
# =============================================================================


class PropertyValueOverrides(OverrideModel):
    cap_rate: Optional[float] = Field(None, gt=0, le=100, description="Percent")


OVERRIDE_MODELS: Dict[str, Type[OverrideModel]] = {
    ServiceName.AI_BREAKDOWN.value: AIBreakdownOverrides,
    ServiceName.ENERGY.value: EnergyOverrides,
    ServiceName.LL97.value: LL97Overrides,
    ServiceName.FINANCIAL.value: FinancialOverrides,
    ServiceName.NOI.value: NOIOverrides,
    ServiceName.PROPERTY_VALUE.value: PropertyValueOverrides,
}


# =============================================================================
# Validator
# =============================================================================


def _loc(error: Dict[str, Any]) -> str:
    return ".".join(str(part) for part in error.get("loc", ())) or "__root__"


class OverrideValidator:
    """Checks one service's override payloads against its schema."""

    def __init__(self, service: str, model: Type[OverrideModel]):
        self.service = service
        self.model = model

    @property
    def accepted_fields(self) -> List[str]:
        return list(self.model.model_fields)

    def _parse(self, payload: Dict[str, Any]) -> Tuple[Optional[OverrideModel], List[Dict[str, Any]]]:
        try:
            return self.model.model_validate(payload), []
        except ValidationError as exc:
            return None, exc.errors()

    def check_fields(self, payload: Optional[Dict[str, Any]]) -> None:
        """
        Reject payloads naming fields the service does not accept.

        Raises:
            UnknownOverrideField: listing every unknown field, nested ones
                in dotted form.
        """
        if not payload:
            return
        unknown = [k for k in payload if k not in self.model.model_fields]
        _, errors = self._parse(payload)
        for error in errors:
            if error["type"] == "extra_forbidden":
                name = _loc(error)
                if name not in unknown:
                    unknown.append(name)
        if unknown:
            raise UnknownOverrideField(self.service, unknown, accepted=self.accepted_fields)

    def coerce(self, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Return the payload with values converted to their schema types.

        Values that fail validation are returned as given so that
        validate() can report them.
        """
        if not payload:
            return {}
        self.check_fields(payload)
        parsed, _ = self._parse(payload)
        if parsed is None:
            return dict(payload)
        return parsed.model_dump(exclude_unset=True)

    def validate(self, payload: Optional[Dict[str, Any]]) -> ValidationResult:
        """Hard-limit errors plus typical-range warnings for a payload."""
        result = ValidationResult()
        if not payload:
            return result

        self.check_fields(payload)
        _, errors = self._parse(payload)
        for error in errors:
            name = _loc(error)
            result.error(name, error["msg"], error.get("input"))

        result.merge(check_typical_ranges(self.service, payload))
        return result.tag(self.service)


def get_override_validator(service: str) -> OverrideValidator:
    """Validator for a registered service."""
    return OverrideValidator(service, OVERRIDE_MODELS[service])
