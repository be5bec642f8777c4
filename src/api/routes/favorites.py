"""Favorite suburb routes."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.deps import get_current_user_id, get_db, get_readonly_db
from domain.favorites import SuburbFavoriteService

router = APIRouter()


class FavoriteCreate(BaseModel):
    suburb: str = Field(..., min_length=1)
    city: Optional[str] = None


class FavoriteOrder(BaseModel):
    """Suburbs in their new display order."""

    suburbs: List[str] = Field(..., min_length=1)


@router.get("")
def list_favorites(
    db: Session = Depends(get_readonly_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    favorites = SuburbFavoriteService(db, user_id).list_favorites()
    return {"items": [f.to_dict() for f in favorites], "total": len(favorites)}


@router.get("/progress")
def favorites_progress(
    db: Session = Depends(get_readonly_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """Favorites with active sale, contacted and opportunity counts."""
    items = SuburbFavoriteService(db, user_id).favorites_with_progress()
    return {"items": [p.to_dict() for p in items]}


@router.post("", status_code=201)
def add_favorite(
    request: FavoriteCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    favorite = SuburbFavoriteService(db, user_id).add_favorite(request.suburb, request.city)
    return favorite.to_dict()


@router.delete("/{suburb}")
def remove_favorite(
    suburb: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    SuburbFavoriteService(db, user_id).remove_favorite(suburb)
    return {"success": True, "suburb": suburb}


@router.put("/order")
def reorder_favorites(
    request: FavoriteOrder,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    favorites = SuburbFavoriteService(db, user_id).reorder(request.suburbs)
    return {"items": [f.to_dict() for f in favorites]}
