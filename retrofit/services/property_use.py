"""
Parser for LL84 property-use strings.

    "Multifamily Housing (50000.0), Retail Store (2,500.0)"
        -> [PropertyUse("Multifamily Housing", 50000.0), PropertyUse("Retail Store", 2500.0)]

Type names may themselves contain parentheses and commas, e.g.
"Personal Services (Health/Beauty, Dry Cleaning, etc.) (500.0)".
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional
import logging
import re

from . import constants as C

logger = logging.getLogger(__name__)

_ENTRY = re.compile(r"([^,()]+(?:\([^)]*\)[^,()]*)*)\s*\(([0-9.,]+)\)")
_SIMPLE_ENTRY = re.compile(r"^(.+?)\s*\(([0-9.,]+)\)$")


@dataclass(frozen=True)
class PropertyUse:
    property_type: str
    square_feet: float


def _to_sqft(text: str) -> Optional[float]:
    try:
        value = float(text.replace(",", ""))
    except ValueError:
        return None
    return value if value >= 0 else None


def parse_property_use(text: Optional[str]) -> List[PropertyUse]:
    """Parse a property-use list; unparseable entries are skipped with a warning."""
    if not text or not text.strip():
        return []

    uses: List[PropertyUse] = []
    for match in _ENTRY.finditer(text):
        sqft = _to_sqft(match.group(2))
        if sqft is None:
            logger.warning(f"Invalid square footage in property use entry: {match.group(0)}")
            continue
        uses.append(PropertyUse(match.group(1).strip(), sqft))

    if uses:
        return uses

    # Fall back to a plain comma split
    for entry in (e.strip() for e in text.split(",")):
        if not entry:
            continue
        match = _SIMPLE_ENTRY.match(entry)
        if not match:
            logger.warning(f"Unable to parse property use entry: {entry}")
            continue
        sqft = _to_sqft(match.group(2))
        if sqft is None:
            logger.warning(f"Invalid square footage in property use entry: {entry}")
            continue
        uses.append(PropertyUse(match.group(1).strip(), sqft))
    return uses


def normalize_property_type(property_type: str) -> str:
    """Map LL84 spelling variants onto the emissions-limit table keys."""
    name = property_type.strip()
    name = C.PROPERTY_TYPE_ALIASES.get(name, name)
    if name in C.EMISSIONS_LIMITS:
        return name
    for known in C.EMISSIONS_LIMITS:
        if known.lower() == name.lower():
            return known
    return name


def unknown_property_types(uses: List[PropertyUse]) -> List[str]:
    return [
        u.property_type for u in uses
        if normalize_property_type(u.property_type) not in C.EMISSIONS_LIMITS
    ]
