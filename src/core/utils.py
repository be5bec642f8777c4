"""Core utility functions."""
from __future__ import annotations

from datetime import date, datetime, timezone
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import StorageError
from core.logging_config import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")


def utcnow() -> datetime:
    """Get current UTC datetime with timezone info. Always use this instead of datetime.now()."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware (UTC).

    SQLite stores datetimes without timezone info, so we need to make them
    aware before comparing with utcnow().

    Args:
        dt: A datetime that may or may not be timezone-aware.

    Returns:
        Timezone-aware datetime in UTC, or None if input was None.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # Assume naive datetimes are UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt


def coerce_datetime(value: Any) -> Optional[datetime]:
    """
    Lenient timestamp parsing for values read from imported rows.

    Accepts datetimes, dates and ISO-8601 strings (a trailing "Z" is allowed).
    Anything unparseable is treated as missing and returns None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_aware(datetime.fromisoformat(text))
        except ValueError:
            LOGGER.debug(f"Ignoring unparseable timestamp: {value!r}")
            return None
    return None


def coerce_date(value: Any) -> Optional[date]:
    """Like coerce_datetime, but returns the calendar date."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = coerce_datetime(value)
    return parsed.date() if parsed else None


def storage_call(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator translating SQLAlchemy failures into StorageError.

    The original exception is kept as the cause; nothing is retried.
    """

    @wraps(func)
    def wrapper(*args, **kwargs) -> T:
        try:
            return func(*args, **kwargs)
        except SQLAlchemyError as e:
            LOGGER.error(f"Storage call {func.__qualname__} failed: {e}")
            raise StorageError(f"{func.__name__} failed: {e}") from e

    return wrapper


__all__ = [
    "utcnow",
    "ensure_aware",
    "coerce_datetime",
    "coerce_date",
    "storage_call",
]
