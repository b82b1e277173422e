"""
End user queries: listings with promotions, history, brands and statistics.
"""
import logging
import math
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from betpromo.db import crud, models
from betpromo.db.models import now_utc
from betpromo.db.types import as_utc
from betpromo.utils.errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
MAX_PROMOTION_PAGE_SIZE = 1000


def _check_page(page: int, limit: int, max_limit: int = MAX_PAGE_SIZE) -> None:
    if page < 1:
        raise ValidationFailed("page must be greater than 0")
    if not 1 <= limit <= max_limit:
        raise ValidationFailed(f"limit must be between 1 and {max_limit}")


def _user_dict(user: models.EndUser) -> Dict:
    return {
        "smartico_user_id": user.smartico_user_id,
        "user_ext_id": user.user_ext_id,
        "core_sm_brand_id": user.core_sm_brand_id,
        "crm_brand_id": user.crm_brand_id,
        "ext_brand_id": user.ext_brand_id,
        "crm_brand_name": user.crm_brand_name,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


def _link_dict(link: models.UserPromotion, promotion_name: str) -> Dict:
    return {
        "promotion_id": link.promotion_id,
        "promotion_name": promotion_name,
        "status": link.status,
        "linked_at": link.linked_at,
        "start_date": link.start_date,
        "end_date": link.end_date,
        "rules": link.rules,
    }


def attach_promotions(db: Session, users: List[models.EndUser], status: Optional[str] = None, current_only: bool = False) -> List[Dict]:
    """Return user dicts carrying a ``promotions`` list.

    ``current_only`` keeps active links whose end date is unset or not yet past.
    """
    ids = [u.smartico_user_id for u in users]
    by_user: Dict[int, List[Dict]] = {uid: [] for uid in ids}
    now = now_utc()
    for link, name in crud.get_links_for_users(db, ids, status="active" if current_only else status):
        if current_only and link.end_date is not None and link.end_date < now:
            continue
        by_user[link.smartico_user_id].append(_link_dict(link, name))
    result = []
    for user in users:
        data = _user_dict(user)
        data["promotions"] = by_user[user.smartico_user_id]
        result.append(data)
    return result


def list_users(
    db: Session,
    page: int = 1,
    limit: int = 10,
    smartico_user_id: Optional[int] = None,
    crm_brand_id: Optional[int] = None,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> Dict:
    _check_page(page, limit)
    U = models.EndUser
    UP = models.UserPromotion
    query = db.query(U)
    if smartico_user_id:
        query = query.filter(U.smartico_user_id == smartico_user_id)
    if crm_brand_id:
        query = query.filter(U.crm_brand_id == crm_brand_id)
    if status or start_date or end_date:
        link_filter = [UP.smartico_user_id == U.smartico_user_id]
        if status:
            link_filter.append(UP.status == status)
        if start_date:
            link_filter.append(UP.start_date >= as_utc(start_date))
        if end_date:
            link_filter.append(UP.end_date <= as_utc(end_date))
        query = query.filter(select(UP.smartico_user_id).where(*link_filter).exists())
    total = query.count()
    users = (
        query.order_by(U.created_at.desc(), U.smartico_user_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": attach_promotions(db, users, status=status),
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if total else 0,
    }


def get_user(db: Session, smartico_user_id: int) -> Dict:
    user = crud.get_end_user(db, smartico_user_id)
    if not user:
        raise NotFound(f"User {smartico_user_id} not found")
    return attach_promotions(db, [user])[0]


def get_user_history(db: Session, smartico_user_id: int) -> List[Dict]:
    if not crud.get_end_user(db, smartico_user_id):
        raise NotFound(f"User {smartico_user_id} not found")
    H = models.UserPromotionHistory
    rows = (
        db.query(H, models.Promotion.name)
        .outerjoin(models.Promotion, models.Promotion.id == H.promotion_id)
        .filter(H.smartico_user_id == smartico_user_id)
        .order_by(H.added_at.desc(), H.id.desc())
        .all()
    )
    return [
        {
            "id": h.id,
            "smartico_user_id": h.smartico_user_id,
            "promotion_id": h.promotion_id,
            "promotion_name": name,
            "filename": h.filename,
            "added_at": h.added_at,
            "status": h.status,
            "rules": h.rules,
            "start_date": h.start_date,
            "end_date": h.end_date,
            "operation_type": h.operation_type,
        }
        for h, name in rows
    ]


def users_in_promotion(db: Session, promotion_id: int, page: int = 1, limit: int = 100, status: Optional[str] = None) -> Dict:
    _check_page(page, limit, MAX_PROMOTION_PAGE_SIZE)
    promotion = crud.get_promotion(db, promotion_id)
    if not promotion:
        raise NotFound(f"Promotion {promotion_id} not found")
    UP = models.UserPromotion
    query = (
        db.query(models.EndUser, UP)
        .join(UP, UP.smartico_user_id == models.EndUser.smartico_user_id)
        .filter(UP.promotion_id == promotion_id)
    )
    if status:
        query = query.filter(UP.status == status)
    total = query.count()
    rows = query.order_by(UP.linked_at.desc(), UP.smartico_user_id).offset((page - 1) * limit).limit(limit).all()
    items = []
    for user, link in rows:
        data = _user_dict(user)
        data["promotions"] = [_link_dict(link, promotion.name)]
        items.append(data)
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if total else 0,
    }


def is_user_in_promotion(db: Session, smartico_user_id: int, promotion_id: int) -> Dict:
    link = crud.get_user_promotion(db, smartico_user_id, promotion_id)
    return {
        "smartico_user_id": smartico_user_id,
        "promotion_id": promotion_id,
        "linked": link is not None,
        "status": link.status if link else None,
    }


def remove_user_from_promotion(db: Session, smartico_user_id: int, promotion_id: int) -> models.UserPromotion:
    """Deactivate a user's link to a promotion, keeping it for history."""
    link = crud.get_user_promotion(db, smartico_user_id, promotion_id)
    if not link:
        raise NotFound(f"User {smartico_user_id} is not linked to promotion {promotion_id}")
    link.status = "inactive"
    link.updated_at = now_utc()
    crud.add_history(db, link, "delete")
    db.commit()
    db.refresh(link)
    logger.info("remove_user_from_promotion: user=%s promotion=%s", smartico_user_id, promotion_id)
    return link


def users_by_brand(db: Session, crm_brand_id: int, page: int = 1, limit: int = 10) -> Dict:
    return list_users(db, page=page, limit=limit, crm_brand_id=crm_brand_id)


def brand_summary(db: Session) -> List[Dict]:
    U = models.EndUser
    rows = (
        db.query(U.crm_brand_id, func.max(U.crm_brand_name), func.count(U.smartico_user_id))
        .group_by(U.crm_brand_id)
        .order_by(func.count(U.smartico_user_id).desc(), U.crm_brand_id)
        .all()
    )
    return [
        {"crm_brand_id": brand_id, "crm_brand_name": name, "total_users": total}
        for brand_id, name, total in rows
    ]


def system_stats(db: Session) -> Dict[str, int]:
    def _count(query) -> int:
        return db.scalar(query) or 0

    P = models.Promotion
    UP = models.UserPromotion
    U = models.EndUser
    S = models.StagingImport
    return {
        "total_users": _count(select(func.count()).select_from(U)),
        "total_promotions": _count(select(func.count()).select_from(P)),
        "active_promotions": _count(select(func.count()).select_from(P).where(P.status == "active")),
        "active_links": _count(select(func.count()).select_from(UP).where(UP.status == "active")),
        "total_brands": _count(select(func.count(func.distinct(U.crm_brand_id)))),
        "pending_staged_rows": _count(select(func.count()).select_from(S).where(S.processed.is_(False))),
    }


def health(db: Session) -> Dict[str, str]:
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return {"status": "error", "database": str(e)}
