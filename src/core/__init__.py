"""Core module exports."""
from __future__ import annotations

from core.config import Settings, get_settings, reload_settings
from core.db import Base, SessionLocal, get_readonly_session, get_session
from core.exceptions import (
    ConfigurationError,
    NotFoundError,
    ProspectingError,
    StorageError,
    ValidationError,
)
from core.logging_config import (
    ContextLogger,
    JSONFormatter,
    get_context_logger,
    get_logger,
    setup_logging,
)
from core.models import (
    Contact,
    Sale,
    SaleCompletion,
    SaleContactAction,
    SmsLog,
    SuburbFavorite,
    UserSettings,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "reload_settings",
    # Database
    "get_session",
    "get_readonly_session",
    "SessionLocal",
    "Base",
    # Models
    "Sale",
    "Contact",
    "SaleContactAction",
    "SaleCompletion",
    "SuburbFavorite",
    "SmsLog",
    "UserSettings",
    # Exceptions
    "ProspectingError",
    "ConfigurationError",
    "NotFoundError",
    "ValidationError",
    "StorageError",
    # Logging
    "setup_logging",
    "get_logger",
    "get_context_logger",
    "JSONFormatter",
    "ContextLogger",
]
