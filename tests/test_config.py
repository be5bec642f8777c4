"""Test configuration loading."""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

# Add src to path
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))


def test_settings_load():
    """Test that settings load correctly."""
    os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

    from core.config import get_settings

    settings = get_settings()

    assert settings.default_cooldown_days in (3, 7, 14, 30)
    assert settings.sales_page_size > 0
    assert settings.max_favorite_suburbs == 5
    assert settings.log_level in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def test_defaults():
    from core.config import Settings

    settings = Settings(DATABASE_URL="sqlite:///:memory:")
    assert settings.default_cooldown_days == 7
    assert settings.meters_per_house_number == 10
    assert settings.hot_window_days == 30
    assert settings.hot_min_silence_days == 14
    assert settings.use_coordinate_distance is True


def test_cooldown_must_be_offered_window():
    from core.config import Settings

    with pytest.raises(PydanticValidationError):
        Settings(DATABASE_URL="sqlite:///:memory:", DEFAULT_COOLDOWN_DAYS=5)


def test_log_level_is_normalized():
    from core.config import Settings

    assert Settings(DATABASE_URL="sqlite:///:memory:", LOG_LEVEL="debug").log_level == "DEBUG"
    with pytest.raises(PydanticValidationError):
        Settings(DATABASE_URL="sqlite:///:memory:", LOG_LEVEL="chatty")


def test_relative_sqlite_path_is_resolved():
    from core.config import PROJECT_ROOT, Settings

    settings = Settings(DATABASE_URL="sqlite:///./local.db")
    assert settings.database_url == f"sqlite:///{(PROJECT_ROOT / 'local.db').as_posix()}"
    assert settings.is_sqlite()


def test_memory_and_remote_urls_unchanged():
    from core.config import Settings

    assert Settings(DATABASE_URL="sqlite:///:memory:").database_url == "sqlite:///:memory:"
    url = "postgresql://user:pw@db:5432/prospecting"
    settings = Settings(DATABASE_URL=url)
    assert settings.database_url == url
    assert not settings.is_sqlite()


def test_reload_settings(monkeypatch):
    from core.config import get_settings, reload_settings

    monkeypatch.setenv("SALES_PAGE_SIZE", "7")
    try:
        assert reload_settings().sales_page_size == 7
    finally:
        monkeypatch.delenv("SALES_PAGE_SIZE")
        get_settings.cache_clear()
