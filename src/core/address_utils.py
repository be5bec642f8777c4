"""
Address Heuristics

Single source of truth for the string-based proximity rules used when
matching contacts to a sale:

1. SUBURB: contacts and sales match on suburb, compared case-insensitively.
2. STREET: a contact is on the sale's street when the contact's full address
   contains the sale's street name (lower-cased substring). Short or common
   street names can false-positive; that is an accepted limitation.
3. NUMBER: the leading digits of an address are its street number.
"""
from __future__ import annotations

import math
import re
from typing import Optional

# Mean Earth radius used by the haversine formula
EARTH_RADIUS_METERS = 6_371_000

_LEADING_NUMBER = re.compile(r"^(\d+)")


def normalize_suburb(suburb: Optional[str]) -> str:
    """Lower-case and trim a suburb name; None becomes an empty string."""
    if not suburb:
        return ""
    return suburb.strip().lower()


def same_suburb(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive suburb equality. Missing suburbs never match."""
    na, nb = normalize_suburb(a), normalize_suburb(b)
    return bool(na) and na == nb


def parse_street_number(address: Optional[str]) -> Optional[int]:
    """
    Parse the leading street number from an address or street-number field.

    "12 Main St" -> 12, "12A" -> 12, "Unit 3" -> None, None -> None.
    """
    if not address:
        return None
    match = _LEADING_NUMBER.match(address.strip())
    return int(match.group(1)) if match else None


def is_same_street(sale_street_name: Optional[str], contact_address: Optional[str]) -> bool:
    """True if the contact address contains the sale's street name (case-insensitive)."""
    if not sale_street_name or not contact_address:
        return False
    return sale_street_name.lower() in contact_address.lower()


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two WGS84 points, in meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))


def has_coordinates(obj: object) -> bool:
    """True if the object carries both latitude and longitude."""
    return getattr(obj, "latitude", None) is not None and getattr(obj, "longitude", None) is not None


__all__ = [
    "EARTH_RADIUS_METERS",
    "normalize_suburb",
    "same_suburb",
    "parse_street_number",
    "is_same_street",
    "haversine_meters",
    "has_coordinates",
]
