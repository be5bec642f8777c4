"""Per-sale opportunity, action and completion routes."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.deps import get_current_user_id, get_db, get_readonly_db
from core.logging_config import get_logger
from core.models import ActionType, SortMode
from domain.feed import FeedService
from domain.tracking import ActionTracker
from domain.user_settings import UserSettingsService

router = APIRouter()
LOGGER = get_logger(__name__)


# =============================================================================
# Pydantic Models
# =============================================================================


class ActionRequest(BaseModel):
    """Request body for recording an action on a (sale, contact) pair."""

    contact_id: int = Field(..., description="Contact the action applies to")
    action: ActionType = Field(..., description="contacted or ignored")


class ProgressRequest(BaseModel):
    """Request body for batch sale progress."""

    sale_ids: List[int] = Field(default_factory=list, max_length=500)


# =============================================================================
# Routes
# =============================================================================


@router.post("/progress")
def sales_progress(
    request: ProgressRequest,
    db: Session = Depends(get_readonly_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Progress counters for a batch of sales (unknown ids are omitted)."""
    progress = FeedService(db, user_id).sale_progress_map(request.sale_ids)
    return {"items": {str(sid): p.to_dict() for sid, p in progress.items()}}


@router.get("/{sale_id}/opportunities")
def get_opportunities(
    sale_id: int,
    sort: SortMode = Query(default=SortMode.SMARTMATCH),
    cooldown_days: Optional[int] = Query(default=None, ge=0, description="Overrides the user's setting"),
    db: Session = Depends(get_readonly_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Ranked opportunity list for one sale."""
    opportunities = FeedService(db, user_id).opportunities_for_sale(
        sale_id, cooldown_days=cooldown_days, sort_mode=sort
    )
    return {
        "sale_id": sale_id,
        "sort": sort.value,
        "items": [opp.to_dict() for opp in opportunities],
        "total": len(opportunities),
    }


@router.get("/{sale_id}/feed")
def get_feed(
    sale_id: int,
    sort: SortMode = Query(default=SortMode.SMARTMATCH),
    cooldown_days: Optional[int] = Query(default=None, ge=0),
    db: Session = Depends(get_readonly_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Opportunities partitioned into display groups, plus progress."""
    feed = FeedService(db, user_id).feed_for_sale(sale_id, cooldown_days=cooldown_days, sort_mode=sort)
    return feed.to_dict()


@router.post("/{sale_id}/actions")
def record_action(
    sale_id: int,
    request: ActionRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    record = ActionTracker(db, user_id).record_action(sale_id, request.contact_id, request.action)
    return {
        "success": True,
        "sale_id": record.sale_id,
        "contact_id": record.contact_id,
        "action": record.action,
    }


@router.delete("/{sale_id}/actions/{contact_id}")
def undo_action(
    sale_id: int,
    contact_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Revert a pair to no action. Undoing a missing action is a no-op."""
    removed = ActionTracker(db, user_id).undo_action(sale_id, contact_id)
    return {"success": True, "removed": removed}


@router.post("/{sale_id}/complete")
def mark_complete(
    sale_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Mark a sale worked; remaining actionable contacts become ignored."""
    cooldown = UserSettingsService(db, user_id).cooldown_days()
    ignored = ActionTracker(db, user_id).mark_sale_complete(sale_id, cooldown_days=cooldown)
    return {"success": True, "sale_id": sale_id, "ignored": ignored}


@router.delete("/{sale_id}/complete")
def undo_complete(
    sale_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    removed = ActionTracker(db, user_id).undo_sale_complete(sale_id)
    return {"success": True, "removed": removed}
