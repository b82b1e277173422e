"""
Promotion repository functions.

Implements CRUD and lookups for promotions, their user links and history.
"""
from __future__ import annotations

from typing import Optional, List, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session

from betpromo.db import models, schemas


def get_promotion(db: Session, promotion_id: int) -> Optional[models.Promotion]:
    return db.query(models.Promotion).filter(models.Promotion.id == promotion_id).first()


def get_promotion_by_name(db: Session, name: str) -> Optional[models.Promotion]:
    key = models.promotion_name_key(name)
    return db.query(models.Promotion).filter(models.Promotion.name_key == key).first()


def get_promotions(
    db: Session,
    *,
    status: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 10,
) -> Tuple[List[models.Promotion], int]:
    query = db.query(models.Promotion)
    if status:
        query = query.filter(models.Promotion.status == status)
    if search:
        # name_key is already case-folded
        query = query.filter(models.Promotion.name_key.contains(models.promotion_name_key(search), autoescape=True))
    total = query.count()
    items = (
        query.order_by(models.Promotion.created_at.desc(), models.Promotion.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total


def update_promotion(db: Session, promotion_id: int, promotion: schemas.PromotionUpdate) -> Optional[models.Promotion]:
    db_promotion = get_promotion(db, promotion_id)
    if db_promotion:
        update_data = promotion.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            setattr(db_promotion, key, value)
        if "name" in update_data:
            db_promotion.name_key = models.promotion_name_key(update_data["name"])
        db.commit()
        db.refresh(db_promotion)
    return db_promotion


def delete_promotion(db: Session, promotion_id: int) -> bool:
    """Delete a promotion together with its links and history."""
    db_promotion = get_promotion(db, promotion_id)
    if not db_promotion:
        return False
    try:
        db.query(models.UserPromotion).filter(models.UserPromotion.promotion_id == promotion_id).delete(synchronize_session=False)
        db.query(models.UserPromotionHistory).filter(models.UserPromotionHistory.promotion_id == promotion_id).delete(synchronize_session=False)
        db.delete(db_promotion)
        db.commit()
        return True
    except Exception as e:
        db.rollback()
        raise RuntimeError(f"Failed to delete promotion {promotion_id}: {str(e)}")


def count_promotion_users(db: Session, promotion_id: int) -> int:
    return (
        db.query(func.count(models.UserPromotion.smartico_user_id))
        .filter(models.UserPromotion.promotion_id == promotion_id)
        .scalar()
    ) or 0


def get_user_promotion(db: Session, smartico_user_id: int, promotion_id: int) -> Optional[models.UserPromotion]:
    return (
        db.query(models.UserPromotion)
        .filter(
            models.UserPromotion.smartico_user_id == smartico_user_id,
            models.UserPromotion.promotion_id == promotion_id,
        )
        .first()
    )


def add_history(db: Session, link: models.UserPromotion, operation_type: str, filename: Optional[str] = None) -> models.UserPromotionHistory:
    """Stage a history row mirroring ``link``; the caller commits."""
    entry = models.UserPromotionHistory(
        smartico_user_id=link.smartico_user_id,
        promotion_id=link.promotion_id,
        filename=filename,
        status=link.status,
        rules=link.rules,
        start_date=link.start_date,
        end_date=link.end_date,
        operation_type=operation_type,
    )
    db.add(entry)
    return entry
