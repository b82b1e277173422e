"""
End user repository functions.
"""
from __future__ import annotations

from typing import Optional, List, Iterable
from sqlalchemy.orm import Session

from betpromo.db import models


def get_end_user(db: Session, smartico_user_id: int) -> Optional[models.EndUser]:
    return db.query(models.EndUser).filter(models.EndUser.smartico_user_id == smartico_user_id).first()


def get_existing_user_ids(db: Session, user_ids: Iterable[int]) -> set:
    ids = list(set(user_ids))
    if not ids:
        return set()
    rows = db.query(models.EndUser.smartico_user_id).filter(models.EndUser.smartico_user_id.in_(ids)).all()
    return {row[0] for row in rows}


def get_links_for_users(db: Session, user_ids: List[int], status: Optional[str] = None):
    """Return (UserPromotion, promotion name) pairs for the given users."""
    if not user_ids:
        return []
    query = (
        db.query(models.UserPromotion, models.Promotion.name)
        .join(models.Promotion, models.Promotion.id == models.UserPromotion.promotion_id)
        .filter(models.UserPromotion.smartico_user_id.in_(user_ids))
    )
    if status:
        query = query.filter(models.UserPromotion.status == status)
    return query.order_by(models.UserPromotion.linked_at.desc()).all()
