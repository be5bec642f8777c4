"""Pinned suburbs for prospecting (ordered, at most MAX_FAVORITE_SUBURBS)."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.config import get_settings
from core.exceptions import NotFoundError, ValidationError
from core.logging_config import get_context_logger
from core.models import Contact, Sale, SaleCompletion, SaleContactAction, SuburbFavorite
from core.utils import storage_call
from domain.contacts import suburb_equals

SETTINGS = get_settings()


@dataclass
class SuburbProgress:
    """Favorite suburb with the counters shown in the suburb picker."""

    suburb: str
    city: Optional[str]
    display_order: int
    sale_count: int
    contacted_count: int
    total_opportunities: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SuburbFavoriteService:
    """CRUD over one user's favorite suburbs."""

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self.logger = get_context_logger(__name__, user_id=user_id)

    def _find(self, suburb: str) -> Optional[SuburbFavorite]:
        stmt = select(SuburbFavorite).where(
            SuburbFavorite.user_id == self.user_id,
            suburb_equals(SuburbFavorite.suburb, suburb),
        )
        return self.session.scalars(stmt).first()

    @storage_call
    def list_favorites(self) -> List[SuburbFavorite]:
        stmt = (
            select(SuburbFavorite)
            .where(SuburbFavorite.user_id == self.user_id)
            .order_by(SuburbFavorite.display_order, SuburbFavorite.id)
        )
        return list(self.session.scalars(stmt).all())

    @storage_call
    def add_favorite(self, suburb: str, city: Optional[str] = None) -> SuburbFavorite:
        """Append a suburb after the current last position."""
        if not suburb or not suburb.strip():
            raise ValidationError("suburb must not be empty")
        suburb = suburb.strip()

        favorites = self.list_favorites()
        if len(favorites) >= SETTINGS.max_favorite_suburbs:
            raise ValidationError(
                f"Maximum {SETTINGS.max_favorite_suburbs} favorite suburbs allowed"
            )
        if self._find(suburb) is not None:
            raise ValidationError(f"Suburb '{suburb}' is already a favorite")

        next_order = max((f.display_order for f in favorites), default=-1) + 1
        favorite = SuburbFavorite(
            user_id=self.user_id,
            suburb=suburb,
            city=city,
            display_order=next_order,
        )
        self.session.add(favorite)
        self.session.flush()

        self.logger.info(f"Added favorite suburb '{suburb}'")
        return favorite

    @storage_call
    def remove_favorite(self, suburb: str) -> None:
        favorite = self._find(suburb)
        if favorite is None:
            raise NotFoundError(f"Suburb '{suburb}' is not a favorite")
        self.session.delete(favorite)
        self.session.flush()
        self.logger.info(f"Removed favorite suburb '{suburb}'")

    @storage_call
    def reorder(self, ordered_suburbs: List[str]) -> List[SuburbFavorite]:
        """Set each favorite's position to its index in `ordered_suburbs`."""
        favorites = {f.suburb.strip().lower(): f for f in self.list_favorites()}
        unknown = [s for s in ordered_suburbs if s.strip().lower() not in favorites]
        if unknown:
            raise ValidationError(f"Not favorite suburbs: {unknown}")

        for index, suburb in enumerate(ordered_suburbs):
            favorites[suburb.strip().lower()].display_order = index
        self.session.flush()
        return self.list_favorites()

    @storage_call
    def favorites_with_progress(self) -> List[SuburbProgress]:
        """
        Counters per favorite suburb.

        sale_count excludes sales this user has completed; contacted_count is
        the number of recorded actions on the suburb's sales; total
        opportunities is the number of the user's contacts in the suburb.
        """
        results = []
        for favorite in self.list_favorites():
            sale_ids = list(
                self.session.scalars(
                    select(Sale.id).where(suburb_equals(Sale.suburb, favorite.suburb))
                ).all()
            )

            completed = 0
            actioned = 0
            if sale_ids:
                completed = self.session.scalar(
                    select(func.count(SaleCompletion.id)).where(
                        SaleCompletion.user_id == self.user_id,
                        SaleCompletion.sale_id.in_(sale_ids),
                    )
                ) or 0
                actioned = self.session.scalar(
                    select(func.count(SaleContactAction.id)).where(
                        SaleContactAction.user_id == self.user_id,
                        SaleContactAction.sale_id.in_(sale_ids),
                    )
                ) or 0

            contacts = self.session.scalar(
                select(func.count(Contact.id)).where(
                    Contact.user_id == self.user_id,
                    suburb_equals(Contact.address_suburb, favorite.suburb),
                )
            ) or 0

            results.append(
                SuburbProgress(
                    suburb=favorite.suburb,
                    city=favorite.city,
                    display_order=favorite.display_order,
                    sale_count=len(sale_ids) - completed,
                    contacted_count=actioned,
                    total_opportunities=contacts,
                )
            )
        return results


__all__ = ["SuburbFavoriteService", "SuburbProgress"]
