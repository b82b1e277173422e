"""
Promotions API endpoints.

CRUD for promotions plus user enrollment, membership checks and the
scheduled activation/expiry sweep.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from betpromo.db import schemas
from betpromo.db.models import MAX_PROMOTION_ID, MAX_USER_ID
from betpromo.db.database import get_db
from betpromo.services import promotion_service, user_service

router = APIRouter(prefix="/promotions", tags=["promotions"])

PromotionId = Annotated[int, Path(gt=0, le=MAX_PROMOTION_ID)]
UserId = Annotated[int, Path(gt=0, le=MAX_USER_ID)]


@router.post("/", response_model=schemas.Promotion, status_code=status.HTTP_201_CREATED)
def create_promotion_endpoint(promotion: schemas.PromotionCreate, db: Session = Depends(get_db)):
    return promotion_service.create_promotion(db, promotion)


@router.get("/", response_model=schemas.PromotionPage)
def list_promotions_endpoint(
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return promotion_service.list_promotions(db, page=page, limit=limit, status=status, search=search)


@router.post("/maintenance/run")
def run_maintenance(db: Session = Depends(get_db)):
    activated = promotion_service.activate_scheduled_promotions(db)
    expired = promotion_service.expire_promotions(db)
    return {"activated_promotions": activated, **expired}


@router.get("/{promotion_id}", response_model=schemas.PromotionDetail)
def get_promotion_endpoint(promotion_id: PromotionId, db: Session = Depends(get_db)):
    return promotion_service.get_promotion_detail(db, promotion_id)


@router.put("/{promotion_id}", response_model=schemas.Promotion)
def update_promotion_endpoint(promotion_id: PromotionId, promotion: schemas.PromotionUpdate, db: Session = Depends(get_db)):
    return promotion_service.update_promotion(db, promotion_id, promotion)


@router.delete("/{promotion_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_promotion_endpoint(promotion_id: PromotionId, db: Session = Depends(get_db)):
    promotion_service.delete_promotion(db, promotion_id)


@router.get("/{promotion_id}/stats", response_model=schemas.PromotionStats)
def promotion_stats_endpoint(promotion_id: PromotionId, db: Session = Depends(get_db)):
    return promotion_service.promotion_stats(db, promotion_id)


@router.post("/{promotion_id}/users")
def associate_users_endpoint(promotion_id: PromotionId, payload: schemas.PromotionUsersAssociate, db: Session = Depends(get_db)):
    return promotion_service.associate_users(db, promotion_id, payload.user_ids)


@router.get("/{promotion_id}/users", response_model=schemas.EndUserPage)
def promotion_users_endpoint(
    promotion_id: PromotionId,
    page: int = 1,
    limit: int = 100,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return user_service.users_in_promotion(db, promotion_id, page=page, limit=limit, status=status)


@router.get("/{promotion_id}/users/{smartico_user_id}")
def check_user_in_promotion(promotion_id: PromotionId, smartico_user_id: UserId, db: Session = Depends(get_db)):
    return user_service.is_user_in_promotion(db, smartico_user_id, promotion_id)


@router.delete("/{promotion_id}/users/{smartico_user_id}")
def remove_user_from_promotion(promotion_id: PromotionId, smartico_user_id: UserId, db: Session = Depends(get_db)):
    link = user_service.remove_user_from_promotion(db, smartico_user_id, promotion_id)
    return {"smartico_user_id": link.smartico_user_id, "promotion_id": link.promotion_id, "status": link.status}
