"""API route modules."""
from __future__ import annotations

from . import (
    contacts,
    dashboard,
    favorites,
    health,
    opportunities,
    sales,
    settings,
)

__all__ = [
    "contacts",
    "dashboard",
    "favorites",
    "health",
    "opportunities",
    "sales",
    "settings",
]
