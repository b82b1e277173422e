"""
Search API endpoints.
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from betpromo.db import schemas
from betpromo.db.database import get_db
from betpromo.services import search_service

router = APIRouter(prefix="/search", tags=["search"])


@router.get("/", response_model=schemas.SearchPage)
def search_users_endpoint(
    q: str,
    type: search_service.SearchType = "both",
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
):
    return search_service.search_users(db, q, search_type=type, page=page, limit=limit)


@router.get("/quick", response_model=List[schemas.EndUserWithPromotions])
def quick_search_endpoint(q: str, db: Session = Depends(get_db)):
    return search_service.quick_search(db, q)
