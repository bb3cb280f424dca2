"""
retrofit/services/financial.py - Financing and payback (financial)

Year-by-year energy savings over the analysis window once the upgrade is in
service, simple payback year, loan amortization and summary metrics. Avoided
LL97 fees are not counted here: they belong to ll97 and reach NOI directly.
"""

from __future__ import annotations
from typing import Any, Dict, List
import logging

from retrofit.core.enums import ServiceName
from retrofit.core.record import CalculationRecord
from retrofit.validators.overrides import FinancialOverrides
from retrofit.validators.taxonomy import ValidationResult
from .base import CalculationService, ServiceInput, ServiceOutput
from . import constants as C

logger = logging.getLogger(__name__)

NO_PAYBACK = -1


# =============================================================================
# LOAN MATH
# =============================================================================

def monthly_payment(principal: float, annual_rate: float, term_years: int) -> float:
    """Standard amortization: P * r(1+r)^n / ((1+r)^n - 1)."""
    rate = annual_rate / 12
    payments = term_years * 12
    if rate == 0:
        return principal / payments
    growth = (1 + rate) ** payments
    return principal * rate * growth / (growth - 1)


def remaining_balance(principal: float, annual_rate: float, term_years: int, years_elapsed: int) -> float:
    """Balance after whole years of payments: P * ((1+r)^n - (1+r)^m) / ((1+r)^n - 1)."""
    if years_elapsed >= term_years:
        return 0.0
    if years_elapsed <= 0:
        return principal
    rate = annual_rate / 12
    if rate == 0:
        return principal * (1 - years_elapsed / term_years)
    total = (1 + rate) ** (term_years * 12)
    elapsed = (1 + rate) ** (years_elapsed * 12)
    return principal * (total - elapsed) / (total - 1)


def by_year(years: List[int], values: List[float]) -> List[Dict[str, Any]]:
    return [{"year": y, "value": v} for y, v in zip(years, values)]


# =============================================================================
# SERVICE
# =============================================================================

class FinancialService(CalculationService):
    """financial: savings, payback and loan analysis."""

    name = ServiceName.FINANCIAL.value
    version = "1.0.0"
    description = "Savings, payback and loan analysis over the analysis window"
    dependencies = (ServiceName.ENERGY.value,)
    owned_fields = (
        "annual_savings_by_year",
        "cumulative_savings_by_year",
        "simple_payback_year",
        "loan_balance_by_year",
        "net_cash_flow_by_year",
        "monthly_payment",
        "total_interest_paid",
        "financial_summary",
        "analysis_config",
    )
    required_fields = ("total_retrofit_cost", "annual_energy_savings")
    override_model = FinancialOverrides

    def project(self, record: CalculationRecord) -> Dict[str, Any]:
        values: Dict[str, Any] = {
            "total_retrofit_cost": record.get("total_retrofit_cost"),
            "annual_energy_savings": record.get("annual_energy_savings"),
            "loan_principal": None,
        }
        values.update(C.FINANCIAL_DEFAULTS)
        return values

    def check_input(self, values: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        cost = values.get("total_retrofit_cost")
        if not cost or cost <= 0:
            result.error("total_retrofit_cost", "Total retrofit cost must be greater than 0", cost)

        start = values.get("analysis_start_year")
        end = values.get("analysis_end_year")
        if start is not None and end is not None and end < start:
            result.error(
                "analysis_end_year",
                f"Analysis end year {end} is before start year {start}",
                end,
            )

        term = values.get("loan_term_years")
        if term is not None and term < 1:
            result.error("loan_term_years", "Loan term must be at least 1 year", term)

        upgrade = values.get("upgrade_year")
        if upgrade is not None and start is not None and end is not None and not start <= upgrade <= end:
            result.warn("upgrade_year", "Upgrade year falls outside the analysis window", upgrade)

        return result

    def execute(self, service_input: ServiceInput) -> ServiceOutput:
        v = service_input.values
        cost = v["total_retrofit_cost"]
        energy_savings = v["annual_energy_savings"]
        start, end = int(v["analysis_start_year"]), int(v["analysis_end_year"])
        upgrade_year = int(v["upgrade_year"])
        savings_start_year = upgrade_year + 1
        loan_start_year = int(v["loan_start_year"])
        term = int(v["loan_term_years"])
        rate = v["annual_interest_rate"]
        principal = service_input.get("loan_principal", cost)

        years = list(range(start, end + 1))

        annual: List[float] = []
        cumulative: List[float] = []
        running = 0.0
        for year in years:
            saving = energy_savings if year >= savings_start_year else 0.0
            running += saving
            annual.append(saving)
            cumulative.append(running)

        payback_year = next(
            (y for y, total in zip(years, cumulative) if total >= cost),
            NO_PAYBACK,
        )

        payment = monthly_payment(principal, rate, term)
        balances = [
            remaining_balance(principal, rate, term, y - loan_start_year) if y >= loan_start_year else 0.0
            for y in years
        ]
        debt_service = [
            payment * 12 if loan_start_year <= y < loan_start_year + term else 0.0
            for y in years
        ]
        net_cash_flow = [s - d for s, d in zip(annual, debt_service)]
        total_interest = payment * 12 * term - principal

        total_savings = cumulative[-1] if cumulative else 0.0
        net_value = total_savings - cost
        summary = {
            "average_annual_savings": total_savings / len(years) if years else 0.0,
            "total_savings_over_analysis_period": total_savings,
            "net_present_value": net_value,
            "return_on_investment": self.divide(net_value, cost, "return on investment") * 100,
        }

        logger.debug(
            f"Financial: payback {payback_year if payback_year != NO_PAYBACK else 'not achieved'}, "
            f"total savings ${total_savings:,.0f}"
        )

        return self.output({
            "annual_savings_by_year": by_year(years, annual),
            "cumulative_savings_by_year": by_year(years, cumulative),
            "simple_payback_year": payback_year,
            "loan_balance_by_year": by_year(years, balances),
            "net_cash_flow_by_year": by_year(years, net_cash_flow),
            "monthly_payment": payment,
            "total_interest_paid": total_interest,
            "financial_summary": summary,
            "analysis_config": {
                "analysis_start_year": start,
                "analysis_end_year": end,
                "upgrade_year": upgrade_year,
                "savings_start_year": savings_start_year,
                "loan_start_year": loan_start_year,
                "loan_term_years": term,
                "annual_interest_rate": rate,
                "loan_principal": principal,
            },
        })
