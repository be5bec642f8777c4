"""Dashboard widgets: hot opportunities and prospecting stats."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.deps import get_current_user_id, get_readonly_db
from domain.feed import FeedService
from domain.stats import ProspectingStatsService
from domain.user_settings import UserSettingsService

router = APIRouter()


@router.get("/hot-opportunities")
def hot_opportunities(
    limit: int = Query(default=5, ge=1, le=50),
    db: Session = Depends(get_readonly_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    items = FeedService(db, user_id).hot_opportunities(limit=limit)
    return {"items": [h.to_dict() for h in items], "total": len(items)}


@router.get("/stats")
def prospecting_stats(
    db: Session = Depends(get_readonly_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Weekly and monthly activity, with the user's weekly goals."""
    stats = ProspectingStatsService(db, user_id).compute()
    settings = UserSettingsService(db, user_id).get()
    return {
        **stats.to_dict(),
        "goals": {
            "weekly_contact_goal": settings.weekly_contact_goal,
            "weekly_sms_goal": settings.weekly_sms_goal,
        },
    }
