"""
retrofit/validators/ranges.py - Typical value ranges

Values outside these ranges are accepted but produce a warning. Hard
limits live on the override schemas and in each service's validate_input.
"""

from typing import Any, Dict, List, Optional

from .taxonomy import ValidationResult


TYPICAL_RANGES: Dict[str, Dict[str, Any]] = {
    "energy.pthp_cop": {
        "min": 0, "max": 10, "min_inclusive": False,
        "message": "COP should typically be between 0 and 10",
    },
    "energy.price_kwh": {
        "min": 0, "max": 1, "min_inclusive": False,
        "message": "Price per kWh should typically be between $0 and $1",
    },
    "energy.price_therm": {
        "min": 0, "max": 10, "min_inclusive": False,
        "message": "Price per therm should typically be between $0 and $10",
    },
    "energy.pthp_contingency": {
        "min": 0, "max": 0.3,
        "message": "Contingency should typically be between 0% and 30%",
    },
    "ll97.fee_per_ton_co2e": {
        "min": 0, "max": 1000,
        "message": "Fee per ton CO2e should typically be between $0 and $1000",
    },
    "financial.loan_term_years": {
        "min": 1, "max": 30,
        "message": "Loan term should typically be between 1 and 30 years",
    },
    "financial.annual_interest_rate": {
        "min": 0, "max": 0.2,
        "message": "Interest rate should typically be between 0% and 20%",
    },
    "noi.cap_rate": {
        "min": 0, "max": 20, "min_inclusive": False,
        "message": "Cap rate should typically be between 1% and 15%",
    },
    "noi.rent_increase_percentage": {
        "min": 0, "max": 100,
        "message": "Rent increase percentage should be between 0% and 100%",
    },
    "noi.vacancy_rate": {
        "min": 0, "max": 20,
        "message": "Vacancy rate should typically be between 0% and 20%",
    },
    "noi.noi_growth_rate": {
        "min": -0.1, "max": 0.1,
        "message": "NOI growth rate should typically be between -10% and 10%",
    },
    "property-value.cap_rate": {
        "min": 0, "max": 20, "min_inclusive": False,
        "message": "Cap rate should typically be between 0% and 20%",
    },
}


def out_of_typical_range(service: str, field_name: str, value: Any) -> Optional[str]:
    """Return the warning message if value is outside its typical range."""
    bounds = TYPICAL_RANGES.get(f"{service}.{field_name}")
    if bounds is None or not isinstance(value, (int, float)) or isinstance(value, bool):
        return None

    low_ok = value > bounds["min"] if not bounds.get("min_inclusive", True) else value >= bounds["min"]
    high_ok = value <= bounds["max"]
    if low_ok and high_ok:
        return None
    return bounds["message"]


def check_typical_ranges(
    service: str,
    values: Dict[str, Any],
    fields: Optional[List[str]] = None,
) -> ValidationResult:
    """Warn for every value in `values` outside its typical range."""
    result = ValidationResult()
    for name in fields if fields is not None else list(values):
        if name not in values:
            continue
        message = out_of_typical_range(service, name, values[name])
        if message:
            result.warn(name, message, values[name])
    return result
