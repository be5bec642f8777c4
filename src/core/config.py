"""Configuration management for the nearby-sale prospecting engine.

All configuration is loaded from environment variables and/or .env file.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root detection
PROJECT_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = PROJECT_ROOT / ".env"

DATABASE_FILE = PROJECT_ROOT / "prospecting.db"
ABSOLUTE_DATABASE_URL = f"sqlite:///{DATABASE_FILE.as_posix()}"

# Cooldown windows offered in the feed settings
ALLOWED_COOLDOWN_DAYS = (3, 7, 14, 30)


def _resolve_database_url(url: str) -> str:
    """
    Convert relative SQLite paths to absolute paths based on PROJECT_ROOT.

    In-memory URLs and non-SQLite URLs are returned unchanged.
    """
    if not url.startswith("sqlite:///"):
        return url

    path_part = url.replace("sqlite:///", "")

    if path_part.startswith("./") or (not path_part.startswith("/") and ":" not in path_part):
        if path_part.startswith("./"):
            path_part = path_part[2:]

        absolute_path = PROJECT_ROOT / path_part
        return f"sqlite:///{absolute_path.as_posix()}"

    return url


class Settings(BaseSettings):
    """
    Runtime configuration powered by environment variables and .env overrides.

    All settings can be configured via:
    1. Environment variables (highest priority)
    2. .env file in project root (loaded automatically)
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_file=ENV_FILE if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Database
    # -------------------------------------------------------------------------
    database_url: str = Field(
        default=ABSOLUTE_DATABASE_URL,
        alias="DATABASE_URL",
        description="SQLAlchemy connection string.",
    )
    db_pool_size: int = Field(default=5, alias="DB_POOL_SIZE", ge=1)
    db_max_overflow: int = Field(default=10, alias="DB_MAX_OVERFLOW", ge=0)
    db_pool_timeout: int = Field(default=30, alias="DB_POOL_TIMEOUT", ge=1)

    # -------------------------------------------------------------------------
    # Prospecting
    # -------------------------------------------------------------------------
    default_cooldown_days: int = Field(default=7, alias="DEFAULT_COOLDOWN_DAYS")
    sales_page_size: int = Field(default=20, alias="SALES_PAGE_SIZE", ge=1, le=200)
    max_favorite_suburbs: int = Field(default=5, alias="MAX_FAVORITE_SUBURBS", ge=1)
    meters_per_house_number: int = Field(default=10, alias="METERS_PER_HOUSE_NUMBER", ge=1)
    use_coordinate_distance: bool = Field(
        default=True,
        alias="USE_COORDINATE_DISTANCE",
        description="Use haversine distance when both sale and contact are geocoded",
    )
    hot_window_days: int = Field(default=30, alias="HOT_WINDOW_DAYS", ge=1)
    hot_min_silence_days: int = Field(default=14, alias="HOT_MIN_SILENCE_DAYS", ge=0)

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")  # "text" or "json"
    environment: str = Field(default="local", alias="ENVIRONMENT")
    api_port: int = Field(default=8000, alias="API_PORT", ge=1)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Ensure log format is valid."""
        lower = v.lower()
        if lower not in {"text", "json"}:
            raise ValueError("log_format must be 'text' or 'json'")
        return lower

    @field_validator("default_cooldown_days")
    @classmethod
    def validate_cooldown(cls, v: int) -> int:
        if v not in ALLOWED_COOLDOWN_DAYS:
            raise ValueError(f"default_cooldown_days must be one of {ALLOWED_COOLDOWN_DAYS}")
        return v

    @model_validator(mode="after")
    def resolve_database_url(self) -> "Settings":
        """Convert relative SQLite paths to absolute paths."""
        self.database_url = _resolve_database_url(self.database_url)
        return self

    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and cached. To reload settings,
    call `get_settings.cache_clear()` first.

    Returns:
        Settings object with all configuration.
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Clear settings cache and reload from environment.

    Useful for testing or after modifying .env file.
    """
    get_settings.cache_clear()
    return get_settings()
