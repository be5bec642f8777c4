"""Sale feed routes: filtered list, suburb pickers, single sale."""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.deps import get_current_user_id, get_readonly_db
from core.logging_config import get_logger
from core.models import DateRange, PriceRange
from domain.feed import FeedService
from domain.sales import SaleFilters, SaleQueryService

router = APIRouter()
LOGGER = get_logger(__name__)


@router.get("")
def list_sales(
    date_range: str = Query(default=DateRange.ALL.value, description="7d, 30d, 90d, all or custom"),
    start_date: Optional[date] = Query(default=None, description="Custom range start (inclusive)"),
    end_date: Optional[date] = Query(default=None, description="Custom range end (inclusive)"),
    price_range: str = Query(default=PriceRange.ANY.value, description="any, under500k, 500k-1m or over1m"),
    suburb: Optional[str] = Query(default=None),
    min_bedrooms: Optional[int] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Substring of address or suburb"),
    hide_completed: bool = Query(default=False),
    favorites_only: bool = Query(default=False),
    page: int = Query(default=0, ge=0),
    db: Session = Depends(get_readonly_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """One page of the sale feed, newest first, with opportunity counts."""
    filters = SaleFilters(
        date_range=date_range,
        start_date=start_date,
        end_date=end_date,
        price_range=price_range,
        suburb=suburb,
        min_bedrooms=min_bedrooms,
        search=search,
        hide_completed=hide_completed,
        favorites_only=favorites_only,
    )
    result = SaleQueryService(db, user_id).list_sales(filters, page=page)
    counts = FeedService(db, user_id).opportunity_counts(result.items)

    body = result.to_dict()
    for item in body["items"]:
        item["opportunity_count"] = counts.get(item["id"], 0)
    return body


@router.get("/suburbs")
def list_suburbs(
    db: Session = Depends(get_readonly_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Distinct suburbs with at least one sale, for the suburb filter."""
    return {"suburbs": SaleQueryService(db, user_id).list_suburbs()}


@router.get("/suburbs/available")
def available_suburbs(
    q: str = Query(default="", description="Case-insensitive suburb substring"),
    db: Session = Depends(get_readonly_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Suburbs with sale counts and favorite flags, for the favorites picker."""
    items = SaleQueryService(db, user_id).available_suburbs(q)
    return {"items": items, "total": len(items)}


@router.get("/{sale_id}")
def get_sale(
    sale_id: int,
    db: Session = Depends(get_readonly_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    sale = SaleQueryService(db, user_id).get_sale(sale_id)
    progress = FeedService(db, user_id).sale_progress_map([sale.id])[sale.id]
    return {**sale.to_dict(), "is_complete": progress.is_complete, "progress": progress.to_dict()}
