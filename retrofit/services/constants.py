"""
retrofit/services/constants.py - Domain constants for the calculation services

PTAC (packaged terminal air conditioner, gas heat) to PTHP (packaged
terminal heat pump) conversion economics for NYC multifamily buildings,
with Local Law 97 emissions limits and fees.
"""

from typing import Dict, List, Tuple


# =============================================================================
# ENERGY
# =============================================================================

# Per-unit PTAC consumption
ANNUAL_UNIT_THERMS_HEATING_PTAC = 255.0
ANNUAL_UNIT_KWH_COOLING_PTAC = 16000.0
ANNUAL_UNIT_MMBTU_HEATING_PTAC = 25.5          # 255 therms x 0.1
ANNUAL_UNIT_MMBTU_COOLING_PTAC = 5.459427      # 16,000 kWh x 0.003412

# PTHP
HEATING_CAPACITY_PTHP = 8.0                    # KBtu/h per unit
PTHP_COP = 1.51

# Conversion factors
KWH_TO_MMBTU = 0.003412
THERMS_TO_MMBTU = 0.1
KBTU_PER_KW = 3.412

# Retrofit cost per unit
PTHP_UNIT_COST = 1100.0
PTHP_INSTALLATION_COST = 450.0
PTHP_CONTINGENCY = 0.10

# NYC average prices
PRICE_KWH = 0.24
PRICE_THERM = 1.45

ENERGY_DEFAULTS: Dict[str, float] = {
    "annual_unit_therms_heating_ptac": ANNUAL_UNIT_THERMS_HEATING_PTAC,
    "annual_unit_kwh_cooling_ptac": ANNUAL_UNIT_KWH_COOLING_PTAC,
    "annual_unit_mmbtu_heating_ptac": ANNUAL_UNIT_MMBTU_HEATING_PTAC,
    "annual_unit_mmbtu_cooling_ptac": ANNUAL_UNIT_MMBTU_COOLING_PTAC,
    "heating_capacity_pthp": HEATING_CAPACITY_PTHP,
    "pthp_cop": PTHP_COP,
    "pthp_unit_cost": PTHP_UNIT_COST,
    "pthp_installation_cost": PTHP_INSTALLATION_COST,
    "pthp_contingency": PTHP_CONTINGENCY,
    "price_kwh": PRICE_KWH,
    "price_therm": PRICE_THERM,
}


# =============================================================================
# EFLH (equivalent full load hours)
# =============================================================================

LOW_RISE_MAX_FLOORS = 6
PREWAR_MAX_YEAR = 1939
PRE79_MAX_YEAR = 1978
POST1979_MAX_YEAR = 2006

EFLH_TABLE: Dict[str, Dict[str, int]] = {
    "low_rise": {"prewar": 974, "pre79": 738, "post1979": 705, "post2007": 491},
    "high_rise": {"prewar": 987, "pre79": 513, "post1979": 385, "post2007": 214},
}


def construction_era(year_built: int) -> str:
    if year_built <= PREWAR_MAX_YEAR:
        return "prewar"
    if year_built <= PRE79_MAX_YEAR:
        return "pre79"
    if year_built <= POST1979_MAX_YEAR:
        return "post1979"
    return "post2007"


def building_height_class(num_floors: int) -> str:
    return "low_rise" if num_floors <= LOW_RISE_MAX_FLOORS else "high_rise"


def eflh_hours(year_built: int, num_floors: int) -> int:
    """EFLH lookup by height class and construction era."""
    return EFLH_TABLE[building_height_class(num_floors)][construction_era(year_built)]


# =============================================================================
# LL97
# =============================================================================

FEE_PER_TON_CO2E = 268.0                        # $/tCO2e over budget
EF_GAS = 0.05311                                # tCO2e/MMBtu
EF_GRID_2024_2029 = 0.000288962                 # tCO2e/kWh
EF_GRID_2030_2034 = 0.000145                    # also used for later periods
BE_COEFFICIENT_BEFORE_2027 = 0.0013             # tCO2e/kWh
BE_COEFFICIENT_2027_2029 = 0.00065

LL97_DEFAULTS: Dict[str, float] = {
    "fee_per_ton_co2e": FEE_PER_TON_CO2E,
    "ef_gas": EF_GAS,
    "ef_grid_2024_2029": EF_GRID_2024_2029,
    "ef_grid_2030_2034": EF_GRID_2030_2034,
    "be_coefficient_before_2027": BE_COEFFICIENT_BEFORE_2027,
    "be_coefficient_2027_2029": BE_COEFFICIENT_2027_2029,
}

# Compliance periods (inclusive years)
COMPLIANCE_PERIODS: List[Tuple[str, int, int]] = [
    ("2024-2029", 2024, 2029),
    ("2030-2034", 2030, 2034),
    ("2035-2039", 2035, 2039),
    ("2040-2049", 2040, 2049),
]
PERIOD_KEYS: List[str] = [p[0] for p in COMPLIANCE_PERIODS]

# Fee windows: the first period is split by BE credit coefficient
FEE_WINDOWS: List[Tuple[str, int, int]] = [
    ("2024-2026", 2024, 2026),
    ("2027-2029", 2027, 2029),
    ("2030-2034", 2030, 2034),
    ("2035-2039", 2035, 2039),
    ("2040-2049", 2040, 2049),
]
WINDOW_KEYS: List[str] = [w[0] for w in FEE_WINDOWS]

# Fee window -> compliance period holding its budget
WINDOW_PERIOD: Dict[str, str] = {
    "2024-2026": "2024-2029",
    "2027-2029": "2024-2029",
    "2030-2034": "2030-2034",
    "2035-2039": "2035-2039",
    "2040-2049": "2040-2049",
}


def compliance_period(year: int) -> str:
    """Compliance period for a year; years after 2049 stay in the last period."""
    for key, start, end in COMPLIANCE_PERIODS:
        if start <= year <= end:
            return key
    return COMPLIANCE_PERIODS[-1][0]


def fee_window(year: int) -> str:
    """Fee window for a year; years after 2049 stay in the last window."""
    for key, start, end in FEE_WINDOWS:
        if start <= year <= end:
            return key
    return FEE_WINDOWS[-1][0]


# Emissions limits by ESPM property type, tCO2e per sqft per year
EMISSIONS_LIMITS: Dict[str, Dict[str, float]] = {
    "Multifamily Housing": {
        "2024-2029": 0.00675, "2030-2034": 0.00407, "2035-2039": 0.00190, "2040-2049": 0.00136,
    },
    "Office": {
        "2024-2029": 0.00758, "2030-2034": 0.00269, "2035-2039": 0.00165, "2040-2049": 0.00058,
    },
    "Retail Store": {
        "2024-2029": 0.01181, "2030-2034": 0.00403, "2035-2039": 0.00165, "2040-2049": 0.00058,
    },
    "Personal Services": {
        "2024-2029": 0.01181, "2030-2034": 0.00403, "2035-2039": 0.00165, "2040-2049": 0.00058,
    },
    "Parking": {
        "2024-2029": 0.00192, "2030-2034": 0.00070, "2035-2039": 0.00043, "2040-2049": 0.00016,
    },
    "Pre-school/Daycare": {
        "2024-2029": 0.00675, "2030-2034": 0.00407, "2035-2039": 0.00190, "2040-2049": 0.00136,
    },
    "K-12 School": {
        "2024-2029": 0.00758, "2030-2034": 0.00269, "2035-2039": 0.00165, "2040-2049": 0.00058,
    },
}

PROPERTY_TYPE_ALIASES: Dict[str, str] = {
    "Multi-family Housing": "Multifamily Housing",
    "Multi-Family Housing": "Multifamily Housing",
    "MultiFamily Housing": "Multifamily Housing",
    "Preschool/Daycare": "Pre-school/Daycare",
    "K12 School": "K-12 School",
    "Personal Services (Health/Beauty, Dry Cleaning, etc.)": "Personal Services",
    "Other": "Office",
}

# Fallback when no property-use breakdown is available:
# budget = sqft / 1000 * class_base * period_rate
FALLBACK_CLASS_BASE = {"R": 1000.0, "C": 800.0}
FALLBACK_DEFAULT_BASE = 900.0
FALLBACK_PERIOD_RATES: Dict[str, float] = {
    "2024-2029": 0.00892,
    "2030-2034": 0.00453,
    "2035-2039": 0.00165234,
    "2040-2049": 0.000581893,
}


# =============================================================================
# FINANCIAL
# =============================================================================

DEFAULT_LOAN_TERM_YEARS = 15
DEFAULT_ANNUAL_INTEREST_RATE = 0.06
ANALYSIS_START_YEAR = 2024
ANALYSIS_END_YEAR = 2050
UPGRADE_YEAR = 2025
LOAN_START_YEAR = 2025

FINANCIAL_DEFAULTS: Dict[str, float] = {
    "loan_term_years": DEFAULT_LOAN_TERM_YEARS,
    "annual_interest_rate": DEFAULT_ANNUAL_INTEREST_RATE,
    "analysis_start_year": ANALYSIS_START_YEAR,
    "analysis_end_year": ANALYSIS_END_YEAR,
    "upgrade_year": UPGRADE_YEAR,
    "loan_start_year": LOAN_START_YEAR,
}


# =============================================================================
# NOI / PROPERTY VALUE
# =============================================================================

DEFAULT_BUILDING_VALUE = 1_000_000.0
DEFAULT_NOI_CAP_RATE = 5.5                      # percent
DEFAULT_NOI_GROWTH_RATE = 0.03                  # fraction per year
DEFAULT_VACANCY_RATE = 5.0                      # percent
DEFAULT_RENT_INCREASE_PERCENTAGE = 0.0          # percent of energy savings passed to rent
DEFAULT_UTILITIES_INCLUDED_IN_RENT = False

# Annual NOI per residential unit, used when no building value is known
DEFAULT_NOI_PER_UNIT = 7200.0

DEFAULT_PROPERTY_CAP_RATE = 4.0                 # percent


# =============================================================================
# UNIT MIX
# =============================================================================

UNIT_TYPES: List[str] = ["studio", "one_bed", "two_bed", "three_plus"]

# PTAC units per apartment: one per room that needs conditioning
PTAC_UNITS_PER_APARTMENT: Dict[str, int] = {
    "studio": 1, "one_bed": 2, "two_bed": 3, "three_plus": 4,
}
BEDROOMS_PER_APARTMENT: Dict[str, int] = {
    "studio": 0, "one_bed": 1, "two_bed": 2, "three_plus": 3,
}

# Typical unit-mix shares by building class prefix
UNIT_MIX_BY_CLASS_PREFIX: Dict[str, Dict[str, float]] = {
    "D": {"studio": 0.15, "one_bed": 0.40, "two_bed": 0.35, "three_plus": 0.10},   # elevator
    "C": {"studio": 0.05, "one_bed": 0.35, "two_bed": 0.40, "three_plus": 0.20},   # walk-up
    "R": {"studio": 0.20, "one_bed": 0.45, "two_bed": 0.30, "three_plus": 0.05},   # condo
}
DEFAULT_UNIT_MIX: Dict[str, float] = {
    "studio": 0.10, "one_bed": 0.40, "two_bed": 0.35, "three_plus": 0.15,
}
