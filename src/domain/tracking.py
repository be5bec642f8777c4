"""Cooldown and per-sale action tracking.

Two independent axes are maintained here:

- the explicit action an agent records for a (sale, contact) pair
  (contacted / ignored / none), stored in `sale_contact_actions`;
- the cooldown derived from the contact's global `last_sms_at`.

Writes are single-row upserts/deletes. Concurrent edits on the same pair
are last-write-wins; there is no conflict detection.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Set

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from core.address_utils import same_suburb
from core.config import get_settings
from core.exceptions import ConfigurationError, NotFoundError, ValidationError
from core.logging_config import get_context_logger
from core.models import ActionType, Contact, Sale, SaleCompletion, SaleContactAction
from core.utils import coerce_datetime, storage_call, utcnow
from domain.contacts import suburb_equals

SETTINGS = get_settings()

VALID_ACTIONS = {a.value for a in ActionType}

# Dialects with INSERT .. ON CONFLICT support
UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


@dataclass(frozen=True)
class CooldownStatus:
    """Result of a cooldown evaluation for one contact."""

    is_on_cooldown: bool
    days_remaining: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"is_on_cooldown": self.is_on_cooldown, "days_remaining": self.days_remaining}


NOT_ON_COOLDOWN = CooldownStatus(is_on_cooldown=False)


def compute_cooldown(
    last_sms_at: Any,
    cooldown_days: int,
    now: Optional[datetime] = None,
) -> CooldownStatus:
    """
    Evaluate the cooldown window for a contact.

    On cooldown iff fewer than `cooldown_days` (fractional) days have elapsed
    since `last_sms_at`. A timestamp in the future counts as zero elapsed.
    A contact never messaged is never on cooldown.

    Args:
        last_sms_at: Contact's last SMS timestamp (datetime, ISO string or None).
        cooldown_days: Window length in days.
        now: Reference time (defaults to current UTC time).

    Returns:
        CooldownStatus with days_remaining = ceil(window - elapsed) when on cooldown.
    """
    last = coerce_datetime(last_sms_at)
    if last is None:
        return NOT_ON_COOLDOWN

    now = now or utcnow()
    elapsed_days = max((now - last).total_seconds() / 86400, 0.0)
    if elapsed_days >= cooldown_days:
        return NOT_ON_COOLDOWN

    return CooldownStatus(
        is_on_cooldown=True,
        days_remaining=math.ceil(cooldown_days - elapsed_days),
    )


def contact_cooldown(contact: Any, cooldown_days: int, now: Optional[datetime] = None) -> CooldownStatus:
    """compute_cooldown for a Contact row."""
    return compute_cooldown(getattr(contact, "last_sms_at", None), cooldown_days, now=now)


class ActionTracker:
    """Records, lists and undoes per-(sale, contact) actions for one user."""

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self.logger = get_context_logger(__name__, user_id=user_id)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _require_sale(self, sale_id: int) -> Sale:
        sale = self.session.get(Sale, sale_id)
        if sale is None:
            raise NotFoundError(f"Sale {sale_id} not found")
        return sale

    def _require_contact(self, contact_id: int) -> Contact:
        contact = self.session.get(Contact, contact_id)
        if contact is None or contact.user_id != self.user_id:
            raise NotFoundError(f"Contact {contact_id} not found")
        return contact

    def _get_action(self, sale_id: int, contact_id: int) -> Optional[SaleContactAction]:
        stmt = select(SaleContactAction).where(
            SaleContactAction.user_id == self.user_id,
            SaleContactAction.sale_id == sale_id,
            SaleContactAction.contact_id == contact_id,
        ).execution_options(populate_existing=True)
        return self.session.scalars(stmt).first()

    def _insert(self, model):
        """Dialect INSERT construct that supports ON CONFLICT clauses."""
        dialect = self.session.get_bind().dialect.name
        insert_fn = UPSERT_INSERTS.get(dialect)
        if insert_fn is None:
            raise ConfigurationError(f"Upserts are not supported on '{dialect}' databases")
        return insert_fn(model)

    # -------------------------------------------------------------------------
    # Per-pair actions
    # -------------------------------------------------------------------------

    @storage_call
    def record_action(self, sale_id: int, contact_id: int, action: str) -> SaleContactAction:
        """
        Upsert the action for a (sale, contact) pair.

        Any previous action for the pair is replaced; no history is kept.
        A single INSERT .. ON CONFLICT DO UPDATE, so concurrent writers on
        the same pair never collide and the last write wins.
        Does not touch the contact's `last_sms_at`.
        """
        action = action.value if isinstance(action, ActionType) else str(action).lower()
        if action not in VALID_ACTIONS:
            raise ValidationError(f"Invalid action '{action}'. Must be one of: {sorted(VALID_ACTIONS)}")

        sale = self._require_sale(sale_id)
        contact = self._require_contact(contact_id)
        if not same_suburb(contact.address_suburb, sale.suburb):
            raise ValidationError(f"Contact {contact_id} is not in the suburb of sale {sale_id}")

        stmt = self._insert(SaleContactAction).values(
            user_id=self.user_id,
            sale_id=sale_id,
            contact_id=contact_id,
            action=action,
            created_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "sale_id", "contact_id"],
            set_={"action": stmt.excluded.action, "created_at": stmt.excluded.created_at},
        )
        self.session.execute(stmt)

        record = self._get_action(sale_id, contact_id)

        self.logger.info(
            f"Recorded '{action}' for sale {sale_id}, contact {contact_id}",
            extra={"extra_data": {"sale_id": sale_id, "contact_id": contact_id, "action": action}},
        )
        return record

    @storage_call
    def undo_action(self, sale_id: int, contact_id: int) -> bool:
        """
        Delete the action for a pair, reverting it to no action.

        Returns:
            True if a row was removed, False if there was nothing to undo.
        """
        result = self.session.execute(
            delete(SaleContactAction).where(
                SaleContactAction.user_id == self.user_id,
                SaleContactAction.sale_id == sale_id,
                SaleContactAction.contact_id == contact_id,
            )
        )
        removed = (result.rowcount or 0) > 0
        if removed:
            self.logger.info(f"Undid action for sale {sale_id}, contact {contact_id}")
        return removed

    @storage_call
    def list_for_sale(self, sale_id: int) -> Dict[int, str]:
        """Map contact_id -> action for every recorded action on a sale."""
        stmt = select(SaleContactAction.contact_id, SaleContactAction.action).where(
            SaleContactAction.user_id == self.user_id,
            SaleContactAction.sale_id == sale_id,
        )
        return {contact_id: action for contact_id, action in self.session.execute(stmt)}

    @storage_call
    def action_counts(self, sale_ids: Iterable[int]) -> Dict[int, Dict[str, int]]:
        """Per-sale {contacted, ignored} counts."""
        ids = list(sale_ids)
        counts: Dict[int, Dict[str, int]] = {
            sid: {ActionType.CONTACTED.value: 0, ActionType.IGNORED.value: 0} for sid in ids
        }
        if not ids:
            return counts

        stmt = (
            select(SaleContactAction.sale_id, SaleContactAction.action, func.count(SaleContactAction.id))
            .where(
                SaleContactAction.user_id == self.user_id,
                SaleContactAction.sale_id.in_(ids),
            )
            .group_by(SaleContactAction.sale_id, SaleContactAction.action)
        )
        for sale_id, action, count in self.session.execute(stmt):
            if action in counts[sale_id]:
                counts[sale_id][action] = count
        return counts

    # -------------------------------------------------------------------------
    # Sale completion
    # -------------------------------------------------------------------------

    @storage_call
    def mark_sale_complete(
        self,
        sale_id: int,
        cooldown_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Mark a sale as worked.

        Records a completion for the sale and inserts an `ignored` action for
        every remaining opportunity: contacts in the sale's suburb with no
        action yet and not on cooldown. Contacts on cooldown stay untouched.

        Returns:
            Number of contacts marked as ignored.
        """
        sale = self._require_sale(sale_id)
        if cooldown_days is None:
            cooldown_days = SETTINGS.default_cooldown_days
        now = now or utcnow()

        self.session.execute(
            self._insert(SaleCompletion)
            .values(user_id=self.user_id, sale_id=sale_id, completed_at=now)
            .on_conflict_do_nothing(index_elements=["user_id", "sale_id"])
        )

        contacts = self.session.scalars(
            select(Contact).where(
                Contact.user_id == self.user_id,
                suburb_equals(Contact.address_suburb, sale.suburb),
            )
        ).all()
        actioned = set(self.list_for_sale(sale_id))

        remaining = [
            c for c in contacts
            if c.id not in actioned and not contact_cooldown(c, cooldown_days, now).is_on_cooldown
        ]
        if remaining:
            # A concurrent explicit action on a pair takes precedence
            stmt = self._insert(SaleContactAction).values(
                [
                    {
                        "user_id": self.user_id,
                        "sale_id": sale_id,
                        "contact_id": contact.id,
                        "action": ActionType.IGNORED.value,
                        "created_at": now,
                    }
                    for contact in remaining
                ]
            )
            self.session.execute(
                stmt.on_conflict_do_nothing(index_elements=["user_id", "sale_id", "contact_id"])
            )

        self.logger.info(
            f"Sale {sale_id} marked complete, {len(remaining)} contacts ignored",
            extra={"extra_data": {"sale_id": sale_id, "ignored": len(remaining)}},
        )
        return len(remaining)

    @storage_call
    def undo_sale_complete(self, sale_id: int) -> bool:
        """Reopen a sale. Per-contact actions written on completion are kept."""
        result = self.session.execute(
            delete(SaleCompletion).where(
                SaleCompletion.user_id == self.user_id,
                SaleCompletion.sale_id == sale_id,
            )
        )
        removed = (result.rowcount or 0) > 0
        if removed:
            self.logger.info(f"Sale {sale_id} reopened")
        return removed

    @storage_call
    def completed_sale_ids(self, sale_ids: Optional[Iterable[int]] = None) -> Set[int]:
        """Ids of sales this user has marked complete (optionally restricted)."""
        stmt = select(SaleCompletion.sale_id).where(SaleCompletion.user_id == self.user_id)
        if sale_ids is not None:
            stmt = stmt.where(SaleCompletion.sale_id.in_(list(sale_ids)))
        return set(self.session.scalars(stmt).all())


__all__ = [
    "CooldownStatus",
    "compute_cooldown",
    "contact_cooldown",
    "ActionTracker",
    "VALID_ACTIONS",
]
