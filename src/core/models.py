"""SQLAlchemy ORM models for the prospecting engine."""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from core.db import Base


# =============================================================================
# Enums
# =============================================================================


class ActionType(str, enum.Enum):
    """Explicit decision an agent records for a (sale, contact) pair."""
    CONTACTED = "contacted"
    IGNORED = "ignored"


class DateRange(str, enum.Enum):
    """Sale-date filter presets."""
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    ALL = "all"
    CUSTOM = "custom"


class PriceRange(str, enum.Enum):
    """Sale-price filter bands."""
    ANY = "any"
    UNDER_500K = "under500k"
    FROM_500K_TO_1M = "500k-1m"
    OVER_1M = "over1m"


class SortMode(str, enum.Enum):
    """Opportunity ordering modes."""
    SMARTMATCH = "smartmatch"
    PROXIMITY = "proximity"


class ContactStatus(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


# =============================================================================
# Sale Model
# =============================================================================


class Sale(Base):
    """
    A recorded property transaction.

    Rows are bulk-imported and never mutated by the matching engine,
    apart from the geocoding fields.
    """
    __tablename__ = "nearby_sales"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)

    # Location
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    suburb: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    street_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    street_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Transaction
    sale_price: Mapped[Optional[float]] = mapped_column(Numeric(14, 2), nullable=True)
    sale_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    property_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    bedrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    floor_area: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    land_area: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    days_to_sell: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    valuation: Mapped[Optional[float]] = mapped_column(Numeric(14, 2), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "address": self.address,
            "suburb": self.suburb,
            "city": self.city,
            "street_name": self.street_name,
            "street_number": self.street_number,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "sale_price": float(self.sale_price) if self.sale_price is not None else None,
            "sale_date": self.sale_date.isoformat() if self.sale_date else None,
            "property_type": self.property_type,
            "bedrooms": self.bedrooms,
            "floor_area": self.floor_area,
            "land_area": self.land_area,
            "days_to_sell": self.days_to_sell,
            "valuation": float(self.valuation) if self.valuation is not None else None,
        }


# =============================================================================
# Contact Model
# =============================================================================


class Contact(Base):
    """
    A prospect owned by an agent.

    `last_sms_at` is the single global "last contacted" marker used for the
    cross-sale cooldown and for the never-contacted flag.
    """
    __tablename__ = "contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address_suburb: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    bedrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=ContactStatus.ACTIVE.value, index=True)
    last_sms_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    sms_logs: Mapped[list["SmsLog"]] = relationship("SmsLog", back_populates="contact")

    __table_args__ = (
        Index("ix_contacts_user_suburb", "user_id", "address_suburb"),
    )

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or "Unknown"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "phone": self.phone,
            "address": self.address,
            "address_suburb": self.address_suburb,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "bedrooms": self.bedrooms,
            "status": self.status,
            "last_sms_at": self.last_sms_at.isoformat() if self.last_sms_at else None,
        }


# =============================================================================
# Action Tracking Models
# =============================================================================


class SaleContactAction(Base):
    """At most one active decision per (user, sale, contact); undo deletes the row."""
    __tablename__ = "sale_contact_actions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    sale_id: Mapped[int] = mapped_column(ForeignKey("nearby_sales.id"), nullable=False, index=True)
    contact_id: Mapped[int] = mapped_column(ForeignKey("contacts.id"), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(20), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "sale_id", "contact_id", name="uq_sale_contact_action"),
    )


class SaleCompletion(Base):
    """A sale the user has marked as fully worked."""
    __tablename__ = "user_sale_completions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    sale_id: Mapped[int] = mapped_column(ForeignKey("nearby_sales.id"), nullable=False, index=True)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "sale_id", name="uq_user_sale_completion"),
    )


class SuburbFavorite(Base):
    """A suburb pinned by the user for prospecting, with a manual sort position."""
    __tablename__ = "user_suburb_favorites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    suburb: Mapped[str] = mapped_column(String(100), nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "suburb", name="uq_user_suburb_favorite"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "suburb": self.suburb,
            "city": self.city,
            "display_order": self.display_order,
        }


class SmsLog(Base):
    """Record of an SMS sent by the messaging collaborator."""
    __tablename__ = "sms_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    contact_id: Mapped[Optional[int]] = mapped_column(ForeignKey("contacts.id"), nullable=True, index=True)
    related_sale_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("nearby_sales.id"), nullable=True, index=True
    )
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    message_body: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )

    contact: Mapped[Optional["Contact"]] = relationship("Contact", back_populates="sms_logs")


class UserSettings(Base):
    """Per-user prospecting preferences."""
    __tablename__ = "user_settings"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    cooldown_days: Mapped[int] = mapped_column(Integer, default=7)
    search_radius_meters: Mapped[int] = mapped_column(Integer, default=500)
    weekly_contact_goal: Mapped[int] = mapped_column(Integer, default=50)
    weekly_sms_goal: Mapped[int] = mapped_column(Integer, default=100)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
