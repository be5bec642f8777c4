"""Contact reads and the SMS collaborator's write path."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from core.logging_config import get_context_logger
from core.models import Contact, Sale, SmsLog
from core.utils import ensure_aware, storage_call, utcnow


def suburb_equals(column, suburb: str):
    """SQL clause: column equals suburb, trimmed and case-insensitive."""
    return func.lower(func.trim(column)) == suburb.strip().lower()


class ContactService:
    """Contact queries scoped to one user."""

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self.logger = get_context_logger(__name__, user_id=user_id)

    @storage_call
    def get_contact(self, contact_id: int) -> Contact:
        contact = self.session.get(Contact, contact_id)
        if contact is None or contact.user_id != self.user_id:
            raise NotFoundError(f"Contact {contact_id} not found")
        return contact

    @storage_call
    def list_in_suburb(self, suburb: str) -> List[Contact]:
        """All of the user's contacts whose suburb matches, in insertion order."""
        stmt = (
            select(Contact)
            .where(Contact.user_id == self.user_id, suburb_equals(Contact.address_suburb, suburb))
            .order_by(Contact.id)
        )
        return list(self.session.scalars(stmt).all())

    @storage_call
    def suburb_contact_counts(self) -> Dict[str, int]:
        """Lower-cased suburb -> number of the user's contacts in it."""
        key = func.lower(func.trim(Contact.address_suburb))
        stmt = (
            select(key, func.count(Contact.id))
            .where(Contact.user_id == self.user_id, Contact.address_suburb.isnot(None))
            .group_by(key)
        )
        return {suburb: count for suburb, count in self.session.execute(stmt) if suburb}

    @storage_call
    def set_last_contacted(self, contact_id: int, timestamp: Optional[datetime] = None) -> Contact:
        """Advance the contact's global last-contacted marker."""
        contact = self.get_contact(contact_id)
        contact.last_sms_at = ensure_aware(timestamp) or utcnow()
        self.session.flush()
        return contact

    @storage_call
    def log_sms_sent(
        self,
        contact_id: int,
        message_body: str,
        sale_id: Optional[int] = None,
        sent_at: Optional[datetime] = None,
    ) -> SmsLog:
        """
        Record an SMS sent by the messaging collaborator.

        Writes an SmsLog row and advances `last_sms_at`, which is what puts the
        contact on cooldown for every sale.
        """
        contact = self.get_contact(contact_id)
        if not contact.phone:
            raise ValidationError(f"Contact {contact_id} has no phone number")
        if not message_body or not message_body.strip():
            raise ValidationError("message_body must not be empty")
        if sale_id is not None and self.session.get(Sale, sale_id) is None:
            raise NotFoundError(f"Sale {sale_id} not found")

        sent_at = ensure_aware(sent_at) or utcnow()
        log = SmsLog(
            user_id=self.user_id,
            contact_id=contact.id,
            related_sale_id=sale_id,
            phone_number=contact.phone,
            message_body=message_body,
            sent_at=sent_at,
        )
        self.session.add(log)
        self.set_last_contacted(contact.id, sent_at)

        self.logger.info(
            f"Logged SMS to contact {contact.id}",
            extra={"extra_data": {"contact_id": contact.id, "sale_id": sale_id}},
        )
        return log


__all__ = ["ContactService", "suburb_equals"]
