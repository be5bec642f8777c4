"""Tests for the sale feed filters and pagination."""
from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import OTHER_USER_ID, TODAY, make_sale
from core.exceptions import NotFoundError, ValidationError
from domain.favorites import SuburbFavoriteService
from domain.sales import SaleFilters, SaleQueryService
from domain.tracking import ActionTracker


@pytest.fixture
def sales(db_session):
    """A small spread of sales across dates, prices and suburbs."""
    return {
        "recent_cheap": make_sale(
            db_session, address="1 Main St", suburb="Eastside", sale_price=450_000,
            sale_date=TODAY - timedelta(days=2), bedrooms=2,
        ),
        "month_mid": make_sale(
            db_session, address="2 Park Rd", suburb="Westside", street_name="Park Rd",
            sale_price=500_000, sale_date=TODAY - timedelta(days=20), bedrooms=3,
        ),
        "quarter_top": make_sale(
            db_session, address="3 Hill Tce", suburb="Northcote", street_name="Hill Tce",
            sale_price=1_000_000, sale_date=TODAY - timedelta(days=80), bedrooms=4,
        ),
        "old_luxury": make_sale(
            db_session, address="4 Bay View", suburb="eastside", street_name="Bay View",
            sale_price=2_500_000, sale_date=TODAY - timedelta(days=200), bedrooms=5,
        ),
        "undated": make_sale(
            db_session, address="5 Main St", suburb="Eastside", sale_price=None,
            sale_date=None, bedrooms=None,
        ),
    }


def _addresses(page):
    return [sale.address for sale in page.items]


def _list(db_session, user_id, **filters):
    return SaleQueryService(db_session, user_id).list_sales(SaleFilters(**filters), today=TODAY)


class TestDateRange:
    def test_all_includes_undated(self, db_session, user_id, sales):
        assert len(_list(db_session, user_id).items) == 5

    @pytest.mark.parametrize(
        "date_range,expected",
        [
            ("7d", ["1 Main St"]),
            ("30d", ["1 Main St", "2 Park Rd"]),
            ("90d", ["1 Main St", "2 Park Rd", "3 Hill Tce"]),
        ],
    )
    def test_relative_ranges(self, db_session, user_id, sales, date_range, expected):
        assert _addresses(_list(db_session, user_id, date_range=date_range)) == expected

    def test_custom_range_is_inclusive(self, db_session, user_id, sales):
        page = _list(
            db_session, user_id,
            date_range="custom",
            start_date=TODAY - timedelta(days=80),
            end_date=TODAY - timedelta(days=20),
        )
        assert _addresses(page) == ["2 Park Rd", "3 Hill Tce"]

    def test_custom_end_before_start(self, db_session, user_id):
        with pytest.raises(ValidationError):
            _list(db_session, user_id, date_range="custom", start_date=TODAY, end_date=TODAY - timedelta(days=1))

    def test_custom_requires_both_bounds(self, db_session, user_id):
        with pytest.raises(ValidationError):
            _list(db_session, user_id, date_range="custom", start_date=TODAY)

    def test_unknown_range(self, db_session, user_id):
        with pytest.raises(ValidationError):
            _list(db_session, user_id, date_range="yesterday")


class TestPriceRange:
    @pytest.mark.parametrize(
        "price_range,expected",
        [
            ("under500k", ["1 Main St"]),
            ("500k-1m", ["2 Park Rd", "3 Hill Tce"]),
            ("over1m", ["4 Bay View"]),
        ],
    )
    def test_bands(self, db_session, user_id, sales, price_range, expected):
        assert _addresses(_list(db_session, user_id, price_range=price_range)) == expected

    def test_unknown_band(self, db_session, user_id):
        with pytest.raises(ValidationError):
            _list(db_session, user_id, price_range="cheap")


class TestOtherFilters:
    def test_suburb_is_case_insensitive(self, db_session, user_id, sales):
        page = _list(db_session, user_id, suburb="EASTSIDE")
        assert _addresses(page) == ["1 Main St", "4 Bay View", "5 Main St"]

    def test_min_bedrooms_excludes_unknown(self, db_session, user_id, sales):
        assert _addresses(_list(db_session, user_id, min_bedrooms=4)) == ["3 Hill Tce", "4 Bay View"]

    def test_negative_bedrooms(self, db_session, user_id):
        with pytest.raises(ValidationError):
            _list(db_session, user_id, min_bedrooms=-1)

    def test_search_address_and_suburb(self, db_session, user_id, sales):
        assert _addresses(_list(db_session, user_id, search="main st")) == ["1 Main St", "5 Main St"]
        assert _addresses(_list(db_session, user_id, search="north")) == ["3 Hill Tce"]

    def test_blank_search_is_ignored(self, db_session, user_id, sales):
        assert len(_list(db_session, user_id, search="   ").items) == 5

    def test_search_treats_wildcards_literally(self, db_session, user_id):
        make_sale(db_session, address="12 Main St")
        make_sale(db_session, address="100% Lane", street_name="Lane")
        make_sale(db_session, address="7 Sea_View Rd", street_name="Sea_View Rd")

        assert _addresses(_list(db_session, user_id, search="1_")) == []
        assert _addresses(_list(db_session, user_id, search="%")) == ["100% Lane"]
        assert _addresses(_list(db_session, user_id, search="sea_view")) == ["7 Sea_View Rd"]

    def test_available_suburbs_query_is_literal(self, db_session, user_id, sales):
        assert SaleQueryService(db_session, user_id).available_suburbs("_ast") == []

    def test_filters_are_anded(self, db_session, user_id, sales):
        page = _list(db_session, user_id, suburb="Eastside", date_range="30d", price_range="under500k")
        assert _addresses(page) == ["1 Main St"]

    def test_hide_completed(self, db_session, user_id, sales):
        ActionTracker(db_session, user_id).mark_sale_complete(sales["recent_cheap"].id)

        page = _list(db_session, user_id, hide_completed=True)
        assert "1 Main St" not in _addresses(page)
        # Another user's feed is unaffected
        assert len(_list(db_session, OTHER_USER_ID, hide_completed=True).items) == 5

    def test_completion_flag_in_page(self, db_session, user_id, sales):
        ActionTracker(db_session, user_id).mark_sale_complete(sales["recent_cheap"].id)
        items = _list(db_session, user_id).to_dict()["items"]
        flags = {item["address"]: item["is_complete"] for item in items}
        assert flags["1 Main St"] is True
        assert flags["2 Park Rd"] is False

    def test_favorites_only(self, db_session, user_id, sales):
        SuburbFavoriteService(db_session, user_id).add_favorite("Northcote")
        SuburbFavoriteService(db_session, user_id).add_favorite("Westside")
        page = _list(db_session, user_id, favorites_only=True)
        assert _addresses(page) == ["2 Park Rd", "3 Hill Tce"]

    def test_favorites_only_without_favorites_is_unscoped(self, db_session, user_id, sales):
        assert len(_list(db_session, user_id, favorites_only=True).items) == 5


class TestOrderingAndPaging:
    def test_newest_first_undated_last(self, db_session, user_id, sales):
        assert _addresses(_list(db_session, user_id)) == [
            "1 Main St",
            "2 Park Rd",
            "3 Hill Tce",
            "4 Bay View",
            "5 Main St",
        ]

    def test_pages(self, db_session, user_id, sales):
        service = SaleQueryService(db_session, user_id)

        first = service.list_sales(page=0, page_size=2, today=TODAY)
        second = service.list_sales(page=1, page_size=2, today=TODAY)
        last = service.list_sales(page=2, page_size=2, today=TODAY)

        assert _addresses(first) == ["1 Main St", "2 Park Rd"]
        assert first.next_page == 1
        assert _addresses(second) == ["3 Hill Tce", "4 Bay View"]
        assert second.next_page == 2
        assert _addresses(last) == ["5 Main St"]
        assert last.next_page is None

    def test_negative_page(self, db_session, user_id):
        with pytest.raises(ValidationError):
            SaleQueryService(db_session, user_id).list_sales(page=-1)

    def test_count(self, db_session, user_id, sales):
        service = SaleQueryService(db_session, user_id)
        assert service.count_sales(SaleFilters(date_range="90d"), today=TODAY) == 3


class TestLookups:
    def test_get_sale(self, db_session, user_id, sales):
        sale = sales["month_mid"]
        assert SaleQueryService(db_session, user_id).get_sale(sale.id) is sale

    def test_get_missing_sale(self, db_session, user_id):
        with pytest.raises(NotFoundError):
            SaleQueryService(db_session, user_id).get_sale(123456)

    def test_list_suburbs(self, db_session, user_id, sales):
        suburbs = SaleQueryService(db_session, user_id).list_suburbs()
        assert suburbs == sorted(suburbs)
        assert "Northcote" in suburbs

    def test_available_suburbs(self, db_session, user_id, sales):
        SuburbFavoriteService(db_session, user_id).add_favorite("Westside")
        rows = SaleQueryService(db_session, user_id).available_suburbs()

        assert rows[0] == {"suburb": "Eastside", "city": "Auckland", "sale_count": 3, "is_favorite": False}
        westside = next(r for r in rows if r["suburb"] == "Westside")
        assert westside["is_favorite"] is True

    def test_available_suburbs_query(self, db_session, user_id, sales):
        rows = SaleQueryService(db_session, user_id).available_suburbs("north")
        assert [r["suburb"] for r in rows] == ["Northcote"]
