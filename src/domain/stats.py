"""Prospecting activity statistics for the dashboard."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.logging_config import get_logger
from core.models import ActionType, Sale, SaleContactAction, SmsLog
from core.utils import coerce_datetime, storage_call, utcnow

LOGGER = get_logger(__name__)

TREND_WEEKS = 4


@dataclass
class PeriodStats:
    contacted: int = 0
    ignored: int = 0
    sms_sent: int = 0
    suburbs_covered: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProspectingStats:
    this_week: PeriodStats
    last_week: PeriodStats
    this_month: PeriodStats
    last_month: PeriodStats
    weekly_trend: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "this_week": self.this_week.to_dict(),
            "last_week": self.last_week.to_dict(),
            "this_month": self.this_month.to_dict(),
            "last_month": self.last_month.to_dict(),
            "weekly_trend": self.weekly_trend,
        }


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def week_bounds(today: date, weeks_back: int = 0) -> Tuple[datetime, datetime]:
    """[Monday 00:00, next Monday 00:00) in UTC for the week `weeks_back` ago."""
    monday = today - timedelta(days=today.weekday()) - timedelta(weeks=weeks_back)
    return _midnight(monday), _midnight(monday + timedelta(days=7))


def month_bounds(today: date, months_back: int = 0) -> Tuple[datetime, datetime]:
    """[1st 00:00, 1st of next month 00:00) in UTC."""
    year, month = today.year, today.month - months_back
    while month < 1:
        month += 12
        year -= 1
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return _midnight(start), _midnight(end)


class ProspectingStatsService:
    """Counts a user's actions and SMS logs per calendar period."""

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    @storage_call
    def compute(self, now: Optional[datetime] = None) -> ProspectingStats:
        """
        Activity for this/last week (weeks start Monday) and this/last month,
        plus a four-week trend of contacted actions and SMS sent.

        suburbs_covered is the number of distinct sale suburbs touched by an
        action or a sale-linked SMS within the period.
        """
        now = now or utcnow()
        today = now.date()

        periods = {
            "this_week": week_bounds(today, 0),
            "last_week": week_bounds(today, 1),
            "this_month": month_bounds(today, 0),
            "last_month": month_bounds(today, 1),
        }
        trend_weeks = [week_bounds(today, n) for n in range(TREND_WEEKS - 1, -1, -1)]
        since = min([start for start, _ in periods.values()] + [trend_weeks[0][0]])

        actions = [
            (coerce_datetime(created_at), action, sale_id)
            for created_at, action, sale_id in self.session.execute(
                select(SaleContactAction.created_at, SaleContactAction.action, SaleContactAction.sale_id)
                .where(SaleContactAction.user_id == self.user_id, SaleContactAction.created_at >= since)
            )
        ]
        sms = [
            (coerce_datetime(sent_at), sale_id)
            for sent_at, sale_id in self.session.execute(
                select(SmsLog.sent_at, SmsLog.related_sale_id)
                .where(SmsLog.user_id == self.user_id, SmsLog.sent_at >= since)
            )
        ]

        sale_ids = {sale_id for _, _, sale_id in actions} | {sid for _, sid in sms if sid}
        suburbs: Dict[int, str] = {}
        if sale_ids:
            suburbs = {
                sid: suburb.strip().lower()
                for sid, suburb in self.session.execute(
                    select(Sale.id, Sale.suburb).where(Sale.id.in_(sale_ids))
                )
            }

        def period(start: datetime, end: datetime) -> PeriodStats:
            in_actions = [(a, sid) for ts, a, sid in actions if ts and start <= ts < end]
            in_sms = [sid for ts, sid in sms if ts and start <= ts < end]
            covered = {suburbs.get(sid) for _, sid in in_actions} | {suburbs.get(sid) for sid in in_sms if sid}
            covered.discard(None)
            return PeriodStats(
                contacted=sum(1 for a, _ in in_actions if a == ActionType.CONTACTED.value),
                ignored=sum(1 for a, _ in in_actions if a == ActionType.IGNORED.value),
                sms_sent=len(in_sms),
                suburbs_covered=len(covered),
            )

        trend = []
        for start, end in trend_weeks:
            stats = period(start, end)
            trend.append({"week_start": start.date().isoformat(), "contacted": stats.contacted, "sms": stats.sms_sent})

        return ProspectingStats(
            **{name: period(start, end) for name, (start, end) in periods.items()},
            weekly_trend=trend,
        )


__all__ = ["PeriodStats", "ProspectingStats", "ProspectingStatsService", "month_bounds", "week_bounds"]
