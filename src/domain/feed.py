"""Prioritized feed: grouping, per-sale counts and progress."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.address_utils import normalize_suburb
from core.config import get_settings
from core.logging_config import get_context_logger
from core.models import ActionType, Contact, ContactStatus, Sale, SmsLog, SortMode
from core.utils import storage_call, utcnow
from domain.contacts import ContactService
from domain.matching import Opportunity, days_since, match_opportunities
from domain.sales import SaleQueryService
from domain.tracking import ActionTracker
from domain.user_settings import UserSettingsService

SETTINGS = get_settings()


# =============================================================================
# Grouping
# =============================================================================


@dataclass
class FeedGroups:
    """
    Mutually exclusive display groups, in display order.

    Cooldown is only evaluated for pairs without an explicit action; a
    recorded contacted/ignored action always wins.
    """

    hot: List[Opportunity] = field(default_factory=list)
    never_contacted: List[Opportunity] = field(default_factory=list)
    previously_contacted: List[Opportunity] = field(default_factory=list)
    on_cooldown: List[Opportunity] = field(default_factory=list)
    contacted: List[Opportunity] = field(default_factory=list)
    ignored: List[Opportunity] = field(default_factory=list)

    GROUP_NAMES = (
        "hot",
        "never_contacted",
        "previously_contacted",
        "on_cooldown",
        "contacted",
        "ignored",
    )

    @property
    def actionable(self) -> List[Opportunity]:
        return self.hot + self.never_contacted + self.previously_contacted

    def counts(self) -> Dict[str, int]:
        return {name: len(getattr(self, name)) for name in self.GROUP_NAMES}

    def to_dict(self) -> Dict[str, Any]:
        return {
            name: [opp.to_dict() for opp in getattr(self, name)]
            for name in self.GROUP_NAMES
        }


def group_opportunities(opportunities: Iterable[Opportunity]) -> FeedGroups:
    """Partition opportunities into feed groups, keeping matcher order within each."""
    groups = FeedGroups()
    for opp in opportunities:
        if opp.action_status == ActionType.CONTACTED.value:
            groups.contacted.append(opp)
        elif opp.action_status == ActionType.IGNORED.value:
            groups.ignored.append(opp)
        elif opp.is_on_cooldown:
            groups.on_cooldown.append(opp)
        elif opp.never_contacted and opp.same_street:
            groups.hot.append(opp)
        elif opp.never_contacted:
            groups.never_contacted.append(opp)
        else:
            groups.previously_contacted.append(opp)
    return groups


# =============================================================================
# Progress
# =============================================================================


@dataclass
class SaleProgress:
    """Progress-bar counters for one sale."""

    sale_id: int
    total_opportunities: int = 0
    contacted: int = 0
    ignored: int = 0
    sms_count: int = 0
    is_complete: bool = False

    @property
    def remaining(self) -> int:
        return max(self.total_opportunities - self.contacted - self.ignored, 0)

    @property
    def progress_percent(self) -> int:
        if not self.total_opportunities:
            return 0
        done = min(self.contacted + self.ignored, self.total_opportunities)
        return round(done * 100 / self.total_opportunities)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["remaining"] = self.remaining
        data["progress_percent"] = self.progress_percent
        return data


@dataclass
class SaleFeed:
    sale: Sale
    groups: FeedGroups
    progress: SaleProgress
    cooldown_days: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sale": self.sale.to_dict(),
            "cooldown_days": self.cooldown_days,
            "groups": self.groups.to_dict(),
            "counts": self.groups.counts(),
            "progress": self.progress.to_dict(),
        }


@dataclass
class HotOpportunity:
    """Dashboard entry: a contact worth messaging about a recent nearby sale."""

    contact_id: int
    contact_name: str
    contact_address: Optional[str]
    contact_phone: Optional[str]
    sale_id: int
    sale_address: str
    sale_price: Optional[float]
    sale_date: Optional[str]
    suburb: str
    days_since_contact: Optional[int]
    last_contacted_at: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Service
# =============================================================================


class FeedService:
    """Joins sales, contacts, tracked actions and settings into the UI feed."""

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self.sales = SaleQueryService(session, user_id)
        self.contacts = ContactService(session, user_id)
        self.tracker = ActionTracker(session, user_id)
        self.settings = UserSettingsService(session, user_id)
        self.logger = get_context_logger(__name__, user_id=user_id)

    def _cooldown(self, cooldown_days: Optional[int]) -> int:
        return cooldown_days if cooldown_days is not None else self.settings.cooldown_days()

    def opportunities_for_sale(
        self,
        sale_id: int,
        cooldown_days: Optional[int] = None,
        sort_mode: SortMode | str = SortMode.SMARTMATCH,
        now: Optional[datetime] = None,
    ) -> List[Opportunity]:
        """Ranked opportunities for a sale, with recorded actions overlaid."""
        sale = self.sales.get_sale(sale_id)
        return self._opportunities(sale, self._cooldown(cooldown_days), sort_mode, now)

    def _opportunities(
        self,
        sale: Sale,
        cooldown_days: int,
        sort_mode: SortMode | str,
        now: Optional[datetime],
    ) -> List[Opportunity]:
        contacts = self.contacts.list_in_suburb(sale.suburb)
        if not contacts:
            return []
        actions = self.tracker.list_for_sale(sale.id)
        return match_opportunities(
            sale,
            contacts,
            now=now,
            cooldown_days=cooldown_days,
            actions=actions,
            sort_mode=sort_mode,
        )

    def feed_for_sale(
        self,
        sale_id: int,
        cooldown_days: Optional[int] = None,
        sort_mode: SortMode | str = SortMode.SMARTMATCH,
        now: Optional[datetime] = None,
    ) -> SaleFeed:
        sale = self.sales.get_sale(sale_id)
        cooldown = self._cooldown(cooldown_days)
        opportunities = self._opportunities(sale, cooldown, sort_mode, now)
        groups = group_opportunities(opportunities)
        progress = self.sale_progress_map([sale.id])[sale.id]

        self.logger.debug(
            f"Feed for sale {sale.id}: {groups.counts()}",
            extra={"extra_data": {"sale_id": sale.id, "cooldown_days": cooldown}},
        )
        return SaleFeed(sale=sale, groups=groups, progress=progress, cooldown_days=cooldown)

    def opportunity_counts(self, sales: Iterable[Sale]) -> Dict[int, int]:
        """Matched-contact count per sale from per-suburb counts, for list badges."""
        suburb_counts = self.contacts.suburb_contact_counts()
        return {sale.id: suburb_counts.get(normalize_suburb(sale.suburb), 0) for sale in sales}

    @storage_call
    def sale_progress_map(self, sale_ids: Iterable[int]) -> Dict[int, SaleProgress]:
        """Progress counters for each requested sale id. Unknown ids are skipped."""
        ids = list(dict.fromkeys(sale_ids))
        if not ids:
            return {}

        sales = list(self.session.scalars(select(Sale).where(Sale.id.in_(ids))).all())
        found = [s.id for s in sales]
        totals = self.opportunity_counts(sales)
        actions = self.tracker.action_counts(found)
        completed = self.tracker.completed_sale_ids(found)

        sms_stmt = (
            select(SmsLog.related_sale_id, func.count(SmsLog.id))
            .where(SmsLog.user_id == self.user_id, SmsLog.related_sale_id.in_(found))
            .group_by(SmsLog.related_sale_id)
        )
        sms_counts = dict(self.session.execute(sms_stmt).all())

        return {
            sid: SaleProgress(
                sale_id=sid,
                total_opportunities=totals.get(sid, 0),
                contacted=actions[sid][ActionType.CONTACTED.value],
                ignored=actions[sid][ActionType.IGNORED.value],
                sms_count=sms_counts.get(sid, 0),
                is_complete=sid in completed,
            )
            for sid in found
        }

    @storage_call
    def hot_opportunities(self, limit: int = 5, now: Optional[datetime] = None) -> List[HotOpportunity]:
        """
        Best contacts to message right now across recent sales.

        Active contacts with a phone in a suburb with a sale in the last
        HOT_WINDOW_DAYS, never contacted or silent for at least
        HOT_MIN_SILENCE_DAYS. The newest sale in the suburb is the trigger.
        Never-contacted first, then longest silence.
        """
        now = now or utcnow()
        recent = self.sales.recent_sales(SETTINGS.hot_window_days, today=now.date())
        if not recent:
            return []

        latest_by_suburb: Dict[str, Sale] = {}
        for sale in recent:
            latest_by_suburb.setdefault(normalize_suburb(sale.suburb), sale)

        contacts = self.session.scalars(
            select(Contact)
            .where(
                Contact.user_id == self.user_id,
                Contact.status == ContactStatus.ACTIVE.value,
                Contact.phone.isnot(None),
            )
            .order_by(Contact.id)
        ).all()

        results = []
        for contact in contacts:
            sale = latest_by_suburb.get(normalize_suburb(contact.address_suburb))
            if sale is None:
                continue
            silence = days_since(contact.last_sms_at, now)
            if silence is not None and silence < SETTINGS.hot_min_silence_days:
                continue
            results.append(
                HotOpportunity(
                    contact_id=contact.id,
                    contact_name=contact.full_name,
                    contact_address=contact.address,
                    contact_phone=contact.phone,
                    sale_id=sale.id,
                    sale_address=sale.address,
                    sale_price=float(sale.sale_price) if sale.sale_price is not None else None,
                    sale_date=sale.sale_date.isoformat() if sale.sale_date else None,
                    suburb=sale.suburb,
                    days_since_contact=silence,
                    last_contacted_at=contact.last_sms_at.isoformat() if contact.last_sms_at else None,
                )
            )

        results.sort(key=lambda h: (h.days_since_contact is not None, -(h.days_since_contact or 0)))
        return results[:limit]


__all__ = [
    "FeedGroups",
    "FeedService",
    "HotOpportunity",
    "SaleFeed",
    "SaleProgress",
    "group_opportunities",
]
