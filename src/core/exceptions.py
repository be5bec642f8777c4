"""Custom exceptions for the prospecting engine."""
from __future__ import annotations


class ProspectingError(Exception):
    """Base exception for all application errors."""

    pass


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ProspectingError):
    """Raised when required configuration is missing or invalid."""

    pass


# =============================================================================
# Lookup / Validation Errors
# =============================================================================


class NotFoundError(ProspectingError):
    """Raised when a referenced sale, contact or favorite does not exist."""

    pass


class ValidationError(ProspectingError):
    """Raised when a request carries an invalid argument or filter combination."""

    pass


# =============================================================================
# Storage Errors
# =============================================================================


class StorageError(ProspectingError):
    """Raised when the underlying persistence call fails."""

    pass


__all__ = [
    "ProspectingError",
    "ConfigurationError",
    "NotFoundError",
    "ValidationError",
    "StorageError",
]
