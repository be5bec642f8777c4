"""Contact routes used by the external messaging collaborator."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.deps import get_current_user_id, get_db
from domain.contacts import ContactService

router = APIRouter()


class SmsLogCreate(BaseModel):
    """A message the collaborator has already sent."""

    message_body: str = Field(..., min_length=1)
    sale_id: Optional[int] = Field(None, description="Sale that prompted the message")
    sent_at: Optional[datetime] = Field(None, description="Defaults to now")


@router.post("/{contact_id}/sms-log", status_code=201)
def log_sms(
    contact_id: int,
    request: SmsLogCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Record a sent SMS and put the contact on cooldown."""
    service = ContactService(db, user_id)
    log = service.log_sms_sent(
        contact_id,
        request.message_body,
        sale_id=request.sale_id,
        sent_at=request.sent_at,
    )
    contact = service.get_contact(contact_id)
    return {
        "success": True,
        "sms_log_id": log.id,
        "contact_id": contact.id,
        "sale_id": log.related_sale_id,
        "last_sms_at": contact.last_sms_at.isoformat() if contact.last_sms_at else None,
    }
