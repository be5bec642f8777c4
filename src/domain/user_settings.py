"""Per-user prospecting settings (cooldown window and weekly goals)."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from core.config import ALLOWED_COOLDOWN_DAYS, get_settings
from core.exceptions import ValidationError
from core.logging_config import get_context_logger
from core.models import UserSettings
from core.utils import storage_call

SETTINGS = get_settings()

EDITABLE_FIELDS = ("cooldown_days", "search_radius_meters", "weekly_contact_goal", "weekly_sms_goal")


@dataclass
class ProspectingSettings:
    """Effective settings for a user (stored values or defaults)."""

    cooldown_days: int
    search_radius_meters: int = 500
    weekly_contact_goal: int = 50
    weekly_sms_goal: int = 100

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class UserSettingsService:
    """Reads and updates the settings row for one user."""

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self.logger = get_context_logger(__name__, user_id=user_id)

    def _defaults(self) -> ProspectingSettings:
        return ProspectingSettings(cooldown_days=SETTINGS.default_cooldown_days)

    @storage_call
    def get(self) -> ProspectingSettings:
        row = self.session.get(UserSettings, self.user_id)
        if row is None:
            return self._defaults()
        return ProspectingSettings(
            cooldown_days=row.cooldown_days,
            search_radius_meters=row.search_radius_meters,
            weekly_contact_goal=row.weekly_contact_goal,
            weekly_sms_goal=row.weekly_sms_goal,
        )

    def cooldown_days(self) -> int:
        return self.get().cooldown_days

    @staticmethod
    def _validate(fields: Dict[str, Any]) -> None:
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown settings: {sorted(unknown)}")

        cooldown = fields.get("cooldown_days")
        if cooldown is not None and cooldown not in ALLOWED_COOLDOWN_DAYS:
            raise ValidationError(f"cooldown_days must be one of {list(ALLOWED_COOLDOWN_DAYS)}")

        for name in ("search_radius_meters", "weekly_contact_goal", "weekly_sms_goal"):
            value = fields.get(name)
            if value is not None and value <= 0:
                raise ValidationError(f"{name} must be positive")

    @storage_call
    def update(self, **fields: Optional[int]) -> ProspectingSettings:
        """Merge the given fields into the stored settings. None values are ignored."""
        fields = {k: v for k, v in fields.items() if v is not None}
        self._validate(fields)

        row = self.session.get(UserSettings, self.user_id)
        if row is None:
            defaults = self._defaults().to_dict()
            row = UserSettings(user_id=self.user_id, **defaults)
            self.session.add(row)

        for name, value in fields.items():
            setattr(row, name, value)
        self.session.flush()

        self.logger.info("Settings updated", extra={"extra_data": fields})
        return self.get()


__all__ = ["ProspectingSettings", "UserSettingsService"]
