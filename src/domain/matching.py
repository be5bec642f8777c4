"""Opportunity matching and ranking.

Given one sale and a set of contacts, produce the ranked list of
opportunities (contact x sale pairs) for contacts in the sale's suburb.
Everything here is a pure function of its inputs; nothing is persisted.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from core.address_utils import (
    has_coordinates,
    haversine_meters,
    is_same_street,
    parse_street_number,
    same_suburb,
)
from core.config import get_settings
from core.models import SortMode
from core.utils import coerce_datetime, utcnow
from domain.tracking import compute_cooldown

SETTINGS = get_settings()

SECONDS_PER_DAY = 86400

# Distance (meters) under which a same-street contact is always "high" relevance
HIGH_RELEVANCE_METERS = 200


# =============================================================================
# Proximity estimators
# =============================================================================


class ProximityEstimator(Protocol):
    """Estimates meters between a sale and a contact, or None if unknown."""

    name: str

    def estimate(self, sale: Any, contact: Any, same_street: bool) -> Optional[float]:
        ...


class StreetNumberEstimator:
    """
    House-number arithmetic for contacts on the same street.

    Roughly `meters_per_number` meters per house number; only defined when
    both street numbers parse.
    """

    name = "street_number"

    def __init__(self, meters_per_number: Optional[int] = None) -> None:
        self.meters_per_number = meters_per_number or SETTINGS.meters_per_house_number

    def estimate(self, sale: Any, contact: Any, same_street: bool) -> Optional[float]:
        if not same_street:
            return None
        sale_number = parse_street_number(sale.street_number or sale.address)
        contact_number = parse_street_number(contact.address)
        if sale_number is None or contact_number is None:
            return None
        return abs(sale_number - contact_number) * self.meters_per_number


class CoordinateEstimator:
    """Haversine distance between geocoded sale and contact."""

    name = "coordinates"

    def estimate(self, sale: Any, contact: Any, same_street: bool) -> Optional[float]:
        if not (has_coordinates(sale) and has_coordinates(contact)):
            return None
        return round(
            haversine_meters(sale.latitude, sale.longitude, contact.latitude, contact.longitude),
            1,
        )


_STREET_NUMBER_ESTIMATOR = StreetNumberEstimator()
_COORDINATE_ESTIMATOR = CoordinateEstimator()


def select_estimator(
    sale: Any,
    contact: Any,
    use_coordinates: Optional[bool] = None,
) -> ProximityEstimator:
    """Pick the coordinate estimator when both sides are geocoded, else the heuristic."""
    if use_coordinates is None:
        use_coordinates = SETTINGS.use_coordinate_distance
    if use_coordinates and has_coordinates(sale) and has_coordinates(contact):
        return _COORDINATE_ESTIMATOR
    return _STREET_NUMBER_ESTIMATOR


# =============================================================================
# Opportunity
# =============================================================================


@dataclass
class Opportunity:
    """A computed (sale, contact) pairing. Never stored."""

    sale_id: int
    contact: Any
    distance: Optional[float]
    same_street: bool
    same_bedrooms: bool
    days_since_contact: Optional[int]
    never_contacted: bool
    is_on_cooldown: bool
    cooldown_days_remaining: Optional[int]
    relevance: str
    action_status: Optional[str] = None
    distance_source: Optional[str] = None

    @property
    def contact_id(self) -> int:
        return self.contact.id

    @property
    def can_message(self) -> bool:
        """Contacts without a phone number cannot be sent an SMS."""
        return bool(getattr(self.contact, "phone", None))

    def to_dict(self) -> Dict[str, Any]:
        contact = self.contact.to_dict() if hasattr(self.contact, "to_dict") else dict(vars(self.contact))
        return {
            "sale_id": self.sale_id,
            "contact": contact,
            "distance": self.distance,
            "distance_source": self.distance_source,
            "same_street": self.same_street,
            "same_bedrooms": self.same_bedrooms,
            "days_since_contact": self.days_since_contact,
            "never_contacted": self.never_contacted,
            "is_on_cooldown": self.is_on_cooldown,
            "cooldown_days_remaining": self.cooldown_days_remaining,
            "relevance": self.relevance,
            "action_status": self.action_status,
            "can_message": self.can_message,
        }


def _relevance(same_street: bool, distance: Optional[float], same_bedrooms: bool) -> str:
    if same_street and (same_bedrooms or (distance is not None and distance <= HIGH_RELEVANCE_METERS)):
        return "high"
    if same_street or same_bedrooms:
        return "medium"
    return "low"


def days_since(timestamp: Any, now: Optional[datetime] = None) -> Optional[int]:
    """Whole days elapsed since `timestamp` (floor), or None if missing/unparseable."""
    when = coerce_datetime(timestamp)
    if when is None:
        return None
    now = now or utcnow()
    return int((now - when).total_seconds() // SECONDS_PER_DAY)


def build_opportunity(
    sale: Any,
    contact: Any,
    now: Optional[datetime] = None,
    cooldown_days: Optional[int] = None,
    action_status: Optional[str] = None,
    use_coordinates: Optional[bool] = None,
) -> Opportunity:
    """Derive every opportunity attribute for one (sale, contact) pair."""
    now = now or utcnow()
    if cooldown_days is None:
        cooldown_days = SETTINGS.default_cooldown_days

    same_street = is_same_street(sale.street_name, contact.address)
    estimator = select_estimator(sale, contact, use_coordinates)
    distance = estimator.estimate(sale, contact, same_street)

    sale_bedrooms = getattr(sale, "bedrooms", None)
    contact_bedrooms = getattr(contact, "bedrooms", None)
    same_bedrooms = sale_bedrooms is not None and sale_bedrooms == contact_bedrooms

    last_sms_at = coerce_datetime(contact.last_sms_at)
    cooldown = compute_cooldown(last_sms_at, cooldown_days, now=now)

    return Opportunity(
        sale_id=sale.id,
        contact=contact,
        distance=distance,
        distance_source=estimator.name if distance is not None else None,
        same_street=same_street,
        same_bedrooms=same_bedrooms,
        days_since_contact=days_since(last_sms_at, now),
        never_contacted=last_sms_at is None,
        is_on_cooldown=cooldown.is_on_cooldown,
        cooldown_days_remaining=cooldown.days_remaining,
        relevance=_relevance(same_street, distance, same_bedrooms),
        action_status=action_status,
    )


# =============================================================================
# Ordering
# =============================================================================


def _smartmatch_key(opp: Opportunity) -> tuple:
    return (
        not opp.same_street,
        not opp.never_contacted,
        opp.distance is None,
        opp.distance if opp.distance is not None else 0.0,
        -(opp.days_since_contact or 0),
    )


def _proximity_key(opp: Opportunity) -> tuple:
    return (
        opp.distance is None,
        opp.distance if opp.distance is not None else 0.0,
    ) + _smartmatch_key(opp)


def sort_opportunities(
    opportunities: Iterable[Opportunity],
    sort_mode: SortMode | str = SortMode.SMARTMATCH,
) -> List[Opportunity]:
    """
    Order opportunities. Python's sort is stable, so equal keys keep input order.

    SmartMatch: same street, then never contacted, then known distance
    ascending, then longest silence. Proximity: known distance ascending
    first, SmartMatch as the tiebreaker.
    """
    mode = SortMode(sort_mode)
    key = _proximity_key if mode == SortMode.PROXIMITY else _smartmatch_key
    return sorted(opportunities, key=key)


def match_opportunities(
    sale: Any,
    contacts: Iterable[Any],
    now: Optional[datetime] = None,
    cooldown_days: Optional[int] = None,
    actions: Optional[Mapping[int, str]] = None,
    sort_mode: SortMode | str = SortMode.SMARTMATCH,
    use_coordinates: Optional[bool] = None,
) -> List[Opportunity]:
    """
    Build the ranked opportunity list for a sale.

    Only contacts whose `address_suburb` matches the sale's suburb
    (case-insensitive) produce an opportunity.

    Args:
        sale: Sale row (or any object with the same attributes).
        contacts: Candidate contacts; other suburbs are dropped.
        now: Reference time for contact age and cooldown.
        cooldown_days: Cooldown window in days (defaults to settings).
        actions: contact_id -> recorded action for this sale.
        sort_mode: "smartmatch" or "proximity".

    Returns:
        Sorted list of Opportunity objects.
    """
    now = now or utcnow()
    actions = actions or {}

    opportunities = [
        build_opportunity(
            sale,
            contact,
            now=now,
            cooldown_days=cooldown_days,
            action_status=actions.get(contact.id),
            use_coordinates=use_coordinates,
        )
        for contact in contacts
        if same_suburb(contact.address_suburb, sale.suburb)
    ]
    return sort_opportunities(opportunities, sort_mode)


__all__ = [
    "Opportunity",
    "ProximityEstimator",
    "StreetNumberEstimator",
    "CoordinateEstimator",
    "select_estimator",
    "build_opportunity",
    "days_since",
    "sort_opportunities",
    "match_opportunities",
]
