"""Sale feed: filtered, paginated access to recorded property sales."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from core.config import get_settings
from core.exceptions import NotFoundError, ValidationError
from core.logging_config import get_logger
from core.models import DateRange, PriceRange, Sale, SaleCompletion, SuburbFavorite
from core.utils import storage_call, utcnow
from domain.contacts import suburb_equals

LOGGER = get_logger(__name__)
SETTINGS = get_settings()

RELATIVE_RANGE_DAYS = {
    DateRange.LAST_7_DAYS: 7,
    DateRange.LAST_30_DAYS: 30,
    DateRange.LAST_90_DAYS: 90,
}

PRICE_500K = 500_000
PRICE_1M = 1_000_000


@dataclass
class SaleFilters:
    """
    Filter parameters for the sale feed. All filters are AND-ed.

    Sales without a sale date only pass `date_range="all"`; sales without a
    price only pass `price_range="any"`.
    """

    date_range: str = DateRange.ALL.value
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    price_range: str = PriceRange.ANY.value
    suburb: Optional[str] = None
    min_bedrooms: Optional[int] = None
    search: Optional[str] = None
    hide_completed: bool = False
    favorites_only: bool = False

    def validate(self) -> "SaleFilters":
        try:
            self.date_range = DateRange(self.date_range).value
        except ValueError:
            raise ValidationError(
                f"Invalid date_range '{self.date_range}'. Must be one of: {[d.value for d in DateRange]}"
            ) from None
        try:
            self.price_range = PriceRange(self.price_range).value
        except ValueError:
            raise ValidationError(
                f"Invalid price_range '{self.price_range}'. Must be one of: {[p.value for p in PriceRange]}"
            ) from None

        if self.date_range == DateRange.CUSTOM.value:
            if self.start_date is None or self.end_date is None:
                raise ValidationError("Custom date range requires both start_date and end_date")
            if self.end_date < self.start_date:
                raise ValidationError("Custom date range end_date is before start_date")

        if self.min_bedrooms is not None and self.min_bedrooms < 0:
            raise ValidationError("min_bedrooms must not be negative")

        if self.suburb is not None and not self.suburb.strip():
            self.suburb = None
        if self.search is not None and not self.search.strip():
            self.search = None
        return self


@dataclass
class SalePage:
    """One page of the infinite-scroll sale feed."""

    items: List[Sale]
    page: int
    page_size: int
    next_page: Optional[int] = None
    completed_ids: set = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [
                {**sale.to_dict(), "is_complete": sale.id in self.completed_ids}
                for sale in self.items
            ],
            "page": self.page,
            "page_size": self.page_size,
            "next_page": self.next_page,
        }


class SaleQueryService:
    """Read-only queries over the `nearby_sales` table for one user."""

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def _favorite_suburbs(self) -> List[str]:
        stmt = select(SuburbFavorite.suburb).where(SuburbFavorite.user_id == self.user_id)
        return list(self.session.scalars(stmt).all())

    def _apply_filters(self, stmt, filters: SaleFilters, today: date):
        date_range = DateRange(filters.date_range)
        if date_range in RELATIVE_RANGE_DAYS:
            cutoff = today - timedelta(days=RELATIVE_RANGE_DAYS[date_range])
            stmt = stmt.where(Sale.sale_date.isnot(None), Sale.sale_date >= cutoff)
        elif date_range == DateRange.CUSTOM:
            stmt = stmt.where(
                Sale.sale_date.isnot(None),
                Sale.sale_date >= filters.start_date,
                Sale.sale_date <= filters.end_date,
            )

        price_range = PriceRange(filters.price_range)
        if price_range == PriceRange.UNDER_500K:
            stmt = stmt.where(Sale.sale_price < PRICE_500K)
        elif price_range == PriceRange.FROM_500K_TO_1M:
            stmt = stmt.where(Sale.sale_price >= PRICE_500K, Sale.sale_price <= PRICE_1M)
        elif price_range == PriceRange.OVER_1M:
            stmt = stmt.where(Sale.sale_price > PRICE_1M)

        if filters.suburb:
            stmt = stmt.where(suburb_equals(Sale.suburb, filters.suburb))
        elif filters.favorites_only:
            favorites = [s.strip().lower() for s in self._favorite_suburbs()]
            if favorites:
                stmt = stmt.where(func.lower(func.trim(Sale.suburb)).in_(favorites))

        if filters.min_bedrooms is not None:
            stmt = stmt.where(Sale.bedrooms >= filters.min_bedrooms)

        if filters.search:
            # Literal substring match; % and _ in the term are not wildcards
            term = filters.search.strip()
            stmt = stmt.where(
                or_(
                    Sale.address.icontains(term, autoescape=True),
                    Sale.suburb.icontains(term, autoescape=True),
                )
            )

        if filters.hide_completed:
            completed = select(SaleCompletion.sale_id).where(SaleCompletion.user_id == self.user_id)
            stmt = stmt.where(Sale.id.not_in(completed))

        return stmt

    @storage_call
    def list_sales(
        self,
        filters: Optional[SaleFilters] = None,
        page: int = 0,
        page_size: Optional[int] = None,
        today: Optional[date] = None,
    ) -> SalePage:
        """
        Return one page of sales, newest sale date first, undated sales last.

        Args:
            filters: Filter parameters (validated here).
            page: Zero-based page index.
            page_size: Overrides the configured page size.
            today: Reference date for relative ranges.

        Returns:
            SalePage; `next_page` is set only when the page came back full.
        """
        filters = (filters or SaleFilters()).validate()
        if page < 0:
            raise ValidationError("page must not be negative")
        page_size = page_size or SETTINGS.sales_page_size
        today = today or utcnow().date()

        stmt = self._apply_filters(select(Sale), filters, today)
        stmt = (
            stmt.order_by(Sale.sale_date.desc().nulls_last(), Sale.id.desc())
            .offset(page * page_size)
            .limit(page_size)
        )
        items = list(self.session.scalars(stmt).all())

        completed = set()
        if items:
            completed_stmt = select(SaleCompletion.sale_id).where(
                SaleCompletion.user_id == self.user_id,
                SaleCompletion.sale_id.in_([s.id for s in items]),
            )
            completed = set(self.session.scalars(completed_stmt).all())

        return SalePage(
            items=items,
            page=page,
            page_size=page_size,
            next_page=page + 1 if len(items) == page_size else None,
            completed_ids=completed,
        )

    @storage_call
    def count_sales(self, filters: Optional[SaleFilters] = None, today: Optional[date] = None) -> int:
        filters = (filters or SaleFilters()).validate()
        today = today or utcnow().date()
        stmt = self._apply_filters(select(func.count(Sale.id)), filters, today)
        return self.session.scalar(stmt) or 0

    @storage_call
    def get_sale(self, sale_id: int) -> Sale:
        sale = self.session.get(Sale, sale_id)
        if sale is None:
            raise NotFoundError(f"Sale {sale_id} not found")
        return sale

    @storage_call
    def list_suburbs(self) -> List[str]:
        """Distinct suburbs that have at least one sale, sorted."""
        stmt = select(Sale.suburb).distinct().order_by(Sale.suburb)
        return list(self.session.scalars(stmt).all())

    @storage_call
    def recent_sales(self, days: int, limit: int = 50, today: Optional[date] = None) -> List[Sale]:
        """Sales dated within the last `days` days, newest first."""
        today = today or utcnow().date()
        stmt = (
            select(Sale)
            .where(Sale.sale_date.isnot(None), Sale.sale_date >= today - timedelta(days=days))
            .order_by(Sale.sale_date.desc(), Sale.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    @storage_call
    def available_suburbs(self, query: str = "") -> List[Dict[str, Any]]:
        """
        Suburbs with sale counts for the suburb picker, most sales first.

        Args:
            query: Optional case-insensitive substring filter.
        """
        key = func.lower(func.trim(Sale.suburb))
        stmt = select(func.min(Sale.suburb), func.min(Sale.city), func.count(Sale.id)).group_by(key)
        if query and query.strip():
            stmt = stmt.where(Sale.suburb.icontains(query.strip(), autoescape=True))

        favorites = {s.strip().lower() for s in self._favorite_suburbs()}
        rows = [
            {
                "suburb": suburb,
                "city": city,
                "sale_count": count,
                "is_favorite": suburb.strip().lower() in favorites,
            }
            for suburb, city, count in self.session.execute(stmt)
        ]
        return sorted(rows, key=lambda r: (-r["sale_count"], r["suburb"]))


__all__ = ["SaleFilters", "SalePage", "SaleQueryService"]
