"""Per-user prospecting settings routes."""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.deps import get_current_user_id, get_db, get_readonly_db
from core.config import ALLOWED_COOLDOWN_DAYS
from domain.user_settings import UserSettingsService

router = APIRouter()


class SettingsUpdate(BaseModel):
    """Partial settings update; omitted fields are left unchanged."""

    cooldown_days: Optional[int] = Field(None, description=f"One of {list(ALLOWED_COOLDOWN_DAYS)}")
    search_radius_meters: Optional[int] = None
    weekly_contact_goal: Optional[int] = None
    weekly_sms_goal: Optional[int] = None


@router.get("")
def get_settings_for_user(
    db: Session = Depends(get_readonly_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    settings = UserSettingsService(db, user_id).get().to_dict()
    return {**settings, "allowed_cooldown_days": list(ALLOWED_COOLDOWN_DAYS)}


@router.patch("")
def update_settings(
    request: SettingsUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    updated = UserSettingsService(db, user_id).update(**request.model_dump(exclude_none=True))
    return updated.to_dict()
