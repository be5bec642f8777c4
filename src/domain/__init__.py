"""Domain layer for the prospecting engine.

Separates business logic from infrastructure (CLI, API). Matching and
cooldown evaluation are pure functions; everything that reads or writes
rows goes through a service bound to a session and a user id.
"""
from __future__ import annotations

from .sales import SaleFilters, SalePage, SaleQueryService
from .matching import Opportunity, match_opportunities, sort_opportunities
from .tracking import ActionTracker, CooldownStatus, compute_cooldown
from .contacts import ContactService
from .feed import FeedGroups, FeedService, SaleFeed, SaleProgress, group_opportunities
from .favorites import SuburbFavoriteService, SuburbProgress
from .stats import ProspectingStatsService
from .user_settings import ProspectingSettings, UserSettingsService

__all__ = [
    # Sales
    "SaleFilters",
    "SalePage",
    "SaleQueryService",
    # Matching
    "Opportunity",
    "match_opportunities",
    "sort_opportunities",
    # Tracking
    "ActionTracker",
    "CooldownStatus",
    "compute_cooldown",
    "ContactService",
    # Feed
    "FeedGroups",
    "FeedService",
    "SaleFeed",
    "SaleProgress",
    "group_opportunities",
    # Favorites / stats / settings
    "SuburbFavoriteService",
    "SuburbProgress",
    "ProspectingStatsService",
    "ProspectingSettings",
    "UserSettingsService",
]
