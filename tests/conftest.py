"""Pytest configuration and fixtures."""
from __future__ import annotations

import os
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Dict

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# Set test environment
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from core.db import Base
from core.models import Contact, Sale


SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

# Fixed clock so cooldown and date-range assertions are deterministic
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()

USER_ID = "agent-1"
OTHER_USER_ID = "agent-2"


@pytest.fixture(scope="session")
def engine():
    """Create a test database engine."""
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


@pytest.fixture(scope="session")
def tables(engine):
    """Create all tables for testing."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(engine, tables) -> Session:
    """
    Returns a SQLAlchemy session for testing.

    Each test gets a fresh transaction that is rolled back after the test.
    """
    connection = engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=connection)
    session = SessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def user_id() -> str:
    return USER_ID


def make_sale(db_session: Session, **overrides) -> Sale:
    """Insert a sale; defaults describe 12 Main St, Eastside."""
    values = dict(
        address="12 Main St",
        suburb="Eastside",
        city="Auckland",
        street_name="Main St",
        street_number="12",
        sale_price=750_000,
        sale_date=TODAY - timedelta(days=5),
        property_type="house",
        bedrooms=3,
    )
    values.update(overrides)
    sale = Sale(**values)
    db_session.add(sale)
    db_session.flush()
    return sale


def make_contact(db_session: Session, **overrides) -> Contact:
    values = dict(
        user_id=USER_ID,
        first_name="Test",
        last_name="Contact",
        phone="+6421000000",
        address="1 Somewhere Rd",
        address_suburb="Eastside",
    )
    values.update(overrides)
    contact = Contact(**values)
    db_session.add(contact)
    db_session.flush()
    return contact


@pytest.fixture
def sample_sale(db_session) -> Sale:
    """Sale at 12 Main St, Eastside."""
    return make_sale(db_session)


@pytest.fixture
def contacts(db_session) -> Dict[str, Contact]:
    """
    Contacts around the sample sale.

    a: same street, never contacted (hot, 20m)
    b: other street, never contacted
    c: same street but Westside (excluded)
    d: same street, messaged 3 days ago (on cooldown with a 7-day window)
    e: same street, messaged 40 days ago (previously contacted, 380m)
    other_user: Eastside contact belonging to another agent (excluded)
    """
    return {
        "a": make_contact(db_session, first_name="Alice", address="10 Main St"),
        "b": make_contact(db_session, first_name="Bob", address="45 Other Ave"),
        "c": make_contact(db_session, first_name="Carol", address="99 Main St", address_suburb="Westside"),
        "d": make_contact(
            db_session,
            first_name="Dan",
            address="20 Main St",
            last_sms_at=NOW - timedelta(days=3),
        ),
        "e": make_contact(
            db_session,
            first_name="Eve",
            address="50 Main St",
            last_sms_at=NOW - timedelta(days=40),
        ),
        "other_user": make_contact(
            db_session,
            user_id=OTHER_USER_ID,
            first_name="Olga",
            address="11 Main St",
        ),
    }
