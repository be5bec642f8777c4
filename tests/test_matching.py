"""Tests for the opportunity matcher (pure functions, no database)."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from core.models import SortMode
from domain.matching import (
    CoordinateEstimator,
    StreetNumberEstimator,
    build_opportunity,
    days_since,
    match_opportunities,
    select_estimator,
    sort_opportunities,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def sale(**overrides):
    values = dict(
        id=1,
        address="12 Main St",
        suburb="Eastside",
        street_name="Main St",
        street_number="12",
        bedrooms=3,
        latitude=None,
        longitude=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


_ids = iter(range(1, 10_000))


def contact(address, suburb="Eastside", last_sms_at=None, **extra):
    values = dict(
        id=next(_ids),
        address=address,
        address_suburb=suburb,
        last_sms_at=last_sms_at,
        bedrooms=None,
        phone="+6421000000",
        latitude=None,
        longitude=None,
    )
    values.update(extra)
    return SimpleNamespace(**values)


class TestSuburbMatching:
    def test_basic_scenario(self):
        a = contact("10 Main St")
        b = contact("45 Other Ave")
        c = contact("99 Main St", suburb="Westside")

        opps = match_opportunities(sale(), [a, b, c], now=NOW)

        assert [o.contact for o in opps] == [a, b]
        first, second = opps
        assert first.same_street is True
        assert first.distance == 20
        assert first.never_contacted is True
        assert second.same_street is False
        assert second.never_contacted is True
        assert second.distance is None

    def test_suburb_comparison_is_case_insensitive(self):
        a = contact("10 Main St", suburb="  EASTSIDE ")
        assert len(match_opportunities(sale(), [a], now=NOW)) == 1

    def test_every_opportunity_is_in_the_sale_suburb(self):
        pool = [
            contact("1 Main St", suburb="Eastside"),
            contact("2 Main St", suburb="eastside"),
            contact("3 Main St", suburb="Westside"),
            contact("4 Main St", suburb=None),
            contact("5 Main St", suburb="East side"),
        ]
        opps = match_opportunities(sale(), pool, now=NOW)
        assert len(opps) == 2
        for opp in opps:
            assert opp.contact.address_suburb.strip().lower() == "eastside"

    def test_same_street_implies_substring(self):
        pool = [
            contact("10 main st"),
            contact("Flat 2, 14 Main Street"),
            contact("45 Other Ave"),
            contact(None),
        ]
        for opp in match_opportunities(sale(), pool, now=NOW):
            if opp.same_street:
                assert "main st" in opp.contact.address.lower()

    def test_no_contacts(self):
        assert match_opportunities(sale(), [], now=NOW) == []


class TestDistance:
    def test_street_number_distance(self):
        opp = build_opportunity(sale(), contact("30 Main St"), now=NOW)
        assert opp.distance == 180
        assert opp.distance_source == "street_number"

    def test_falls_back_to_address_when_street_number_missing(self):
        opp = build_opportunity(sale(street_number=None), contact("8 Main St"), now=NOW)
        assert opp.distance == 40

    def test_unparseable_number_gives_no_distance(self):
        opp = build_opportunity(sale(), contact("Unit 4 Main St"), now=NOW)
        assert opp.same_street is True
        assert opp.distance is None
        assert opp.distance_source is None

    def test_other_street_has_no_heuristic_distance(self):
        opp = build_opportunity(sale(), contact("14 Other Ave"), now=NOW)
        assert opp.distance is None

    def test_coordinates_preferred_when_both_geocoded(self):
        s = sale(latitude=-36.8485, longitude=174.7633)
        c = contact("45 Other Ave", latitude=-36.8495, longitude=174.7633)
        opp = build_opportunity(s, c, now=NOW, use_coordinates=True)
        assert opp.distance_source == "coordinates"
        assert 110 < opp.distance < 112

    def test_coordinates_disabled(self):
        s = sale(latitude=-36.8485, longitude=174.7633)
        c = contact("14 Main St", latitude=-36.8495, longitude=174.7633)
        assert isinstance(select_estimator(s, c, use_coordinates=False), StreetNumberEstimator)
        assert isinstance(select_estimator(s, c, use_coordinates=True), CoordinateEstimator)

    def test_one_side_missing_coordinates_uses_heuristic(self):
        s = sale(latitude=-36.8485, longitude=174.7633)
        opp = build_opportunity(s, contact("14 Main St"), now=NOW, use_coordinates=True)
        assert opp.distance_source == "street_number"
        assert opp.distance == 20


class TestContactAge:
    def test_days_since_is_floored(self):
        assert days_since(NOW - timedelta(days=3, hours=23), NOW) == 3

    def test_days_since_missing(self):
        assert days_since(None, NOW) is None

    def test_unparseable_timestamp_is_treated_as_missing(self):
        opp = build_opportunity(sale(), contact("10 Main St", last_sms_at="not a date"), now=NOW)
        assert opp.never_contacted is True
        assert opp.days_since_contact is None
        assert opp.is_on_cooldown is False

    def test_iso_string_timestamp(self):
        last = (NOW - timedelta(days=10)).isoformat().replace("+00:00", "Z")
        opp = build_opportunity(sale(), contact("10 Main St", last_sms_at=last), now=NOW)
        assert opp.days_since_contact == 10
        assert opp.never_contacted is False

    def test_cooldown_on_opportunity(self):
        opp = build_opportunity(
            sale(), contact("20 Main St", last_sms_at=NOW - timedelta(days=3)), now=NOW, cooldown_days=7
        )
        assert opp.is_on_cooldown is True
        assert opp.cooldown_days_remaining == 4


class TestRelevance:
    def test_same_street_same_bedrooms_is_high(self):
        opp = build_opportunity(sale(), contact("90 Main St", bedrooms=3), now=NOW)
        assert opp.same_bedrooms is True
        assert opp.relevance == "high"

    def test_same_street_close_is_high(self):
        opp = build_opportunity(sale(), contact("14 Main St"), now=NOW)
        assert opp.relevance == "high"

    def test_same_street_far_is_medium(self):
        opp = build_opportunity(sale(), contact("90 Main St"), now=NOW)
        assert opp.relevance == "medium"

    def test_other_street_same_bedrooms_is_medium(self):
        opp = build_opportunity(sale(), contact("4 Other Ave", bedrooms=3), now=NOW)
        assert opp.relevance == "medium"

    def test_other_street_is_low(self):
        opp = build_opportunity(sale(), contact("4 Other Ave"), now=NOW)
        assert opp.relevance == "low"

    def test_unknown_sale_bedrooms_never_match(self):
        opp = build_opportunity(sale(bedrooms=None), contact("4 Other Ave", bedrooms=None), now=NOW)
        assert opp.same_bedrooms is False


class TestOrdering:
    def test_smartmatch_order(self):
        far_hot = contact("40 Main St")
        near_hot = contact("14 Main St")
        same_street_old = contact("16 Main St", last_sms_at=NOW - timedelta(days=60))
        other_never = contact("5 Oak Ave")
        other_old = contact("6 Oak Ave", last_sms_at=NOW - timedelta(days=90))
        other_recent = contact("7 Oak Ave", last_sms_at=NOW - timedelta(days=20))

        opps = match_opportunities(
            sale(),
            [other_recent, other_never, same_street_old, far_hot, other_old, near_hot],
            now=NOW,
        )
        assert [o.contact for o in opps] == [
            near_hot,
            far_hot,
            same_street_old,
            other_never,
            other_old,
            other_recent,
        ]

    def test_known_distance_before_unknown(self):
        unknown = contact("Unit 1 Main St")
        known = contact("100 Main St")
        opps = match_opportunities(sale(), [unknown, known], now=NOW)
        assert [o.contact for o in opps] == [known, unknown]

    def test_longest_silence_first_within_ties(self):
        recent = contact("5 Oak Ave", last_sms_at=NOW - timedelta(days=10))
        old = contact("6 Oak Ave", last_sms_at=NOW - timedelta(days=100))
        opps = match_opportunities(sale(), [recent, old], now=NOW)
        assert [o.contact for o in opps] == [old, recent]

    def test_sort_is_stable_for_equal_keys(self):
        pool = [contact(f"{n} Oak Ave") for n in range(1, 8)]
        for _ in range(3):
            opps = match_opportunities(sale(), pool, now=NOW)
            assert [o.contact for o in opps] == pool

    def test_proximity_mode_puts_distance_first(self):
        near_old = contact("14 Main St", last_sms_at=NOW - timedelta(days=60))
        far_never = contact("80 Main St")
        smart = match_opportunities(sale(), [near_old, far_never], now=NOW)
        prox = match_opportunities(sale(), [near_old, far_never], now=NOW, sort_mode=SortMode.PROXIMITY)
        assert [o.contact for o in smart] == [far_never, near_old]
        assert [o.contact for o in prox] == [near_old, far_never]

    def test_invalid_sort_mode(self):
        with pytest.raises(ValueError):
            sort_opportunities([], "alphabetical")


def test_actions_are_overlaid():
    a = contact("10 Main St")
    opps = match_opportunities(sale(), [a], now=NOW, actions={a.id: "contacted"})
    assert opps[0].action_status == "contacted"


def test_can_message_requires_phone():
    opp = build_opportunity(sale(), contact("10 Main St", phone=None), now=NOW)
    assert opp.can_message is False
    assert opp.to_dict()["can_message"] is False
