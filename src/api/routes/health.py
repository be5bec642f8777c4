"""Health check routes."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import inspect, text
from sqlalchemy.orm import Session

from api.deps import get_readonly_db
from core.config import get_settings
from core.db import REQUIRED_TABLES
from core.logging_config import get_logger
from core.utils import utcnow

router = APIRouter()
LOGGER = get_logger(__name__)
SETTINGS = get_settings()


@router.get("")
async def health_check() -> Dict[str, Any]:
    """Basic health check - always returns OK."""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "environment": SETTINGS.environment,
    }


@router.get("/detailed")
def detailed_health_check(
    db: Session = Depends(get_readonly_db),
) -> Dict[str, Any]:
    """Health check including database connectivity and required tables."""
    status = "healthy"
    checks: Dict[str, Any] = {}

    try:
        db.execute(text("SELECT 1"))
        existing = set(inspect(db.get_bind()).get_table_names())
        missing = [t for t in REQUIRED_TABLES if t not in existing]
        checks["database"] = {
            "status": "healthy" if not missing else "degraded",
            "connected": True,
            "tables_missing": missing,
        }
        if missing:
            status = "degraded"
    except Exception as e:
        LOGGER.error(f"Database health check failed: {e}")
        status = "unhealthy"
        checks["database"] = {"status": "unhealthy", "connected": False, "error": str(e)}

    checks["matching"] = {
        "default_cooldown_days": SETTINGS.default_cooldown_days,
        "coordinate_distance": SETTINGS.use_coordinate_distance,
        "meters_per_house_number": SETTINGS.meters_per_house_number,
    }

    return {
        "status": status,
        "timestamp": utcnow().isoformat(),
        "checks": checks,
    }
