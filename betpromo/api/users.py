"""
Users API endpoints.

Listing with promotions, per-user history, brand views and system statistics.
"""
from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from betpromo.db import schemas
from betpromo.db.models import MAX_USER_ID
from betpromo.db.database import get_db
from betpromo.services import user_service

router = APIRouter(prefix="/users", tags=["users"])

UserId = Annotated[int, Path(gt=0, le=MAX_USER_ID)]


@router.get("/", response_model=schemas.EndUserPage)
def list_users_endpoint(
    page: int = 1,
    limit: int = 10,
    smartico_user_id: Optional[int] = Query(default=None, gt=0, le=MAX_USER_ID),
    crm_brand_id: Optional[int] = Query(default=None, ge=-MAX_USER_ID, le=MAX_USER_ID),
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    return user_service.list_users(
        db,
        page=page,
        limit=limit,
        smartico_user_id=smartico_user_id,
        crm_brand_id=crm_brand_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/stats")
def system_stats_endpoint(db: Session = Depends(get_db)):
    return user_service.system_stats(db)


@router.get("/brands")
def brand_summary_endpoint(db: Session = Depends(get_db)):
    return user_service.brand_summary(db)


@router.get("/brands/{crm_brand_id}", response_model=schemas.EndUserPage)
def users_by_brand_endpoint(
    crm_brand_id: Annotated[int, Path(ge=-MAX_USER_ID, le=MAX_USER_ID)],
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
):
    return user_service.users_by_brand(db, crm_brand_id, page=page, limit=limit)


@router.get("/{smartico_user_id}", response_model=schemas.EndUserWithPromotions)
def get_user_endpoint(smartico_user_id: UserId, db: Session = Depends(get_db)):
    return user_service.get_user(db, smartico_user_id)


@router.get("/{smartico_user_id}/history", response_model=List[schemas.UserPromotionHistoryEntry])
def user_history_endpoint(smartico_user_id: UserId, db: Session = Depends(get_db)):
    return user_service.get_user_history(db, smartico_user_id)
