"""Request-scoped dependencies for FastAPI routes."""
from __future__ import annotations

from typing import Generator, Optional

from fastapi import Header, HTTPException, status
from sqlalchemy.orm import Session

from core.db import SessionLocal

USER_ID_HEADER = "X-User-Id"


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a database session.

    Commits when the request handler returns, rolls back on any error.

    Yields:
        SQLAlchemy Session instance.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_readonly_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a read-only database session.

    Yields:
        SQLAlchemy Session instance (rolled back on exit).
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
) -> str:
    """
    Opaque id of the calling agent.

    Authentication happens upstream; this service only scopes rows by it.
    Raises 401 if the header is missing or blank.
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"{USER_ID_HEADER} header required",
        )
    return x_user_id.strip()


__all__ = ["USER_ID_HEADER", "get_current_user_id", "get_db", "get_readonly_db"]
