"""
Promotion lifecycle operations.

Creation goes through ``INSERT ... ON CONFLICT (name_key)`` so concurrent
callers asking for the same promotion name always end up with one row.
"""
import logging
import math
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from betpromo.db import crud, models, schemas
from betpromo.db.dialect_insert import upsert_insert
from betpromo.db.models import now_utc, promotion_name_key
from betpromo.db.types import as_utc
from betpromo.imports import pipeline
from betpromo.utils.errors import Conflict, NotFound, ValidationFailed, is_unique_violation

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def _check_dates(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start and end and as_utc(end) <= as_utc(start):
        raise ValidationFailed("end_date must be after start_date")


def get_or_create_promotion(db: Session, data: schemas.PromotionBase, status: str = "active") -> Tuple[models.Promotion, bool]:
    """Return the promotion named like ``data.name``, creating it if needed.

    Returns ``(promotion, created)``. Safe under concurrency: a racing insert
    of the same name is absorbed by ``ON CONFLICT DO NOTHING``.
    """
    now = now_utc()
    values = data.model_dump(include=set(schemas.PromotionBase.model_fields))
    values.update(name_key=promotion_name_key(data.name), status=status, created_at=now, updated_at=now)
    stmt = (
        upsert_insert(db, models.Promotion.__table__)
        .values(**values)
        .on_conflict_do_nothing(index_elements=["name_key"])
    )
    created = db.execute(stmt).rowcount == 1
    db.commit()
    promotion = crud.get_promotion_by_name(db, data.name)
    return promotion, created


def create_promotion(db: Session, data: schemas.PromotionCreate) -> models.Promotion:
    _check_dates(data.start_date, data.end_date)
    status = data.status
    if data.schedule_activation and data.start_date and as_utc(data.start_date) > now_utc():
        status = "scheduled"

    promotion, created = get_or_create_promotion(db, data, status=status)
    if not created:
        raise Conflict(f"Promotion '{data.name}' already exists")
    logger.info("promotion_created: id=%s name=%s status=%s", promotion.id, promotion.name, promotion.status)

    if data.target_user_ids:
        associate_users(db, promotion.id, data.target_user_ids)
    if data.csv_filename:
        try:
            pipeline.link_staged_users(db, data.csv_filename, promotion_name=promotion.name)
        except Exception as e:
            # Creation stands even if the staged file cannot be linked
            logger.error(f"Failed to link staged file {data.csv_filename} to promotion {promotion.id}: {e}")
    db.refresh(promotion)
    return promotion


def list_promotions(
    db: Session,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> Dict:
    if page < 1:
        raise ValidationFailed("page must be greater than 0")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationFailed(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    items, total = crud.get_promotions(db, status=status, search=search, skip=(page - 1) * limit, limit=limit)
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if total else 0,
    }


def get_promotion(db: Session, promotion_id: int) -> models.Promotion:
    promotion = crud.get_promotion(db, promotion_id)
    if not promotion:
        raise NotFound(f"Promotion {promotion_id} not found")
    return promotion


def get_promotion_detail(db: Session, promotion_id: int) -> Dict:
    promotion = get_promotion(db, promotion_id)
    detail = schemas.Promotion.model_validate(promotion).model_dump()
    detail["total_users"] = crud.count_promotion_users(db, promotion_id)
    return detail


def update_promotion(db: Session, promotion_id: int, data: schemas.PromotionUpdate) -> models.Promotion:
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No fields to update")
    promotion = get_promotion(db, promotion_id)
    _check_dates(changes.get("start_date", promotion.start_date), changes.get("end_date", promotion.end_date))
    if "name" in changes:
        other = crud.get_promotion_by_name(db, changes["name"])
        if other and other.id != promotion_id:
            raise Conflict(f"Promotion '{changes['name']}' already exists")
    try:
        return crud.update_promotion(db, promotion_id, data)
    except IntegrityError as e:
        db.rollback()
        if "name" in changes and is_unique_violation(e):
            raise Conflict(f"Promotion '{changes['name']}' already exists")
        raise


def delete_promotion(db: Session, promotion_id: int) -> None:
    if not crud.delete_promotion(db, promotion_id):
        raise NotFound(f"Promotion {promotion_id} not found")
    logger.info("promotion_deleted: id=%s", promotion_id)


def associate_users(db: Session, promotion_id: int, user_ids: Iterable[int]) -> Dict[str, int]:
    """Manually enroll known users in a promotion; unknown ids are skipped."""
    promotion = get_promotion(db, promotion_id)
    requested = list(dict.fromkeys(user_ids))
    existing = crud.get_existing_user_ids(db, requested)
    known = [uid for uid in requested if uid in existing]

    links = models.UserPromotion.__table__
    already = set()
    if known:
        already = {
            row[0]
            for row in db.execute(
                select(links.c.smartico_user_id).where(
                    links.c.promotion_id == promotion_id,
                    links.c.smartico_user_id.in_(known),
                )
            )
        }
    new_ids = [uid for uid in known if uid not in already]

    now = now_utc()
    for uid in new_ids:
        stmt = (
            upsert_insert(db, links)
            .values(
                smartico_user_id=uid,
                promotion_id=promotion_id,
                linked_at=now,
                start_date=promotion.start_date,
                end_date=promotion.end_date,
                rules=promotion.rules,
                status="active",
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["smartico_user_id", "promotion_id"])
        )
        if db.execute(stmt).rowcount:
            link = crud.get_user_promotion(db, uid, promotion_id)
            crud.add_history(db, link, "manual_insert")
    db.commit()
    result = {
        "associated": len(new_ids),
        "skipped_missing": len(requested) - len(known),
        "already_linked": len(already),
    }
    logger.info("associate_users: promotion=%s %s", promotion_id, result)
    return result


def activate_scheduled_promotions(db: Session, now: Optional[datetime] = None) -> int:
    now = as_utc(now) or now_utc()
    P = models.Promotion.__table__
    result = db.execute(
        update(P)
        .where(P.c.status == "scheduled", P.c.start_date.isnot(None), P.c.start_date <= now)
        .values(status="active", updated_at=now)
    )
    db.commit()
    if result.rowcount:
        logger.info("activate_scheduled_promotions: activated=%d", result.rowcount)
    return result.rowcount


def expire_promotions(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    """Expire promotions past their end date, and their active links."""
    now = as_utc(now) or now_utc()
    P = models.Promotion.__table__
    L = models.UserPromotion.__table__
    due = select(P.c.id).where(
        P.c.status.in_(("active", "scheduled")),
        P.c.end_date.isnot(None),
        P.c.end_date <= now,
    )
    due_ids = [row[0] for row in db.execute(due)]
    if not due_ids:
        return {"expired_promotions": 0, "expired_links": 0}
    try:
        links_result = db.execute(
            update(L)
            .where(L.c.promotion_id.in_(due_ids), L.c.status == "active")
            .values(status="expired", updated_at=now)
        )
        db.execute(update(P).where(P.c.id.in_(due_ids)).values(status="expired", updated_at=now))
        db.commit()
    except Exception:
        db.rollback()
        raise
    result = {"expired_promotions": len(due_ids), "expired_links": links_result.rowcount}
    logger.info("expire_promotions: %s", result)
    return result


def promotion_stats(db: Session, promotion_id: int) -> Dict[str, int]:
    get_promotion(db, promotion_id)
    UP = models.UserPromotion
    counts = dict(
        db.query(UP.status, func.count())
        .filter(UP.promotion_id == promotion_id)
        .group_by(UP.status)
        .all()
    )
    history_entries = (
        db.query(func.count(models.UserPromotionHistory.id))
        .filter(models.UserPromotionHistory.promotion_id == promotion_id)
        .scalar()
    ) or 0
    return {
        "promotion_id": promotion_id,
        "total_links": sum(counts.values()),
        "active_links": counts.get("active", 0),
        "inactive_links": counts.get("inactive", 0),
        "expired_links": counts.get("expired", 0),
        "history_entries": history_entries,
    }
