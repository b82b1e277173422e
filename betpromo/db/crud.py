"""
CRUD operations for ORM models.

Thin facade over the per-domain repositories for promotions, end users and
import jobs.
"""
import uuid
from typing import Optional, List, Iterable
from sqlalchemy.orm import Session

from . import models, schemas
from .repositories import promotions as repo_promotions
from .repositories import end_users as repo_users
from .repositories import import_jobs as repo_jobs


# CRUD for Promotion (facade delegates to repository)
def get_promotion(db: Session, promotion_id: int):
    return repo_promotions.get_promotion(db, promotion_id)


def get_promotion_by_name(db: Session, name: str):
    return repo_promotions.get_promotion_by_name(db, name)


def get_promotions(db: Session, *, status: Optional[str] = None, search: Optional[str] = None, skip: int = 0, limit: int = 10):
    return repo_promotions.get_promotions(db, status=status, search=search, skip=skip, limit=limit)


def update_promotion(db: Session, promotion_id: int, promotion: schemas.PromotionUpdate):
    return repo_promotions.update_promotion(db, promotion_id, promotion)


def delete_promotion(db: Session, promotion_id: int) -> bool:
    return repo_promotions.delete_promotion(db, promotion_id)


def count_promotion_users(db: Session, promotion_id: int) -> int:
    return repo_promotions.count_promotion_users(db, promotion_id)


def get_user_promotion(db: Session, smartico_user_id: int, promotion_id: int):
    return repo_promotions.get_user_promotion(db, smartico_user_id, promotion_id)


def add_history(db: Session, link: models.UserPromotion, operation_type: str, filename: Optional[str] = None):
    return repo_promotions.add_history(db, link, operation_type, filename=filename)


# CRUD for EndUser
def get_end_user(db: Session, smartico_user_id: int):
    return repo_users.get_end_user(db, smartico_user_id)


def get_existing_user_ids(db: Session, user_ids: Iterable[int]) -> set:
    return repo_users.get_existing_user_ids(db, user_ids)


def get_links_for_users(db: Session, user_ids: List[int], status: Optional[str] = None):
    return repo_users.get_links_for_users(db, user_ids, status=status)


# CRUD for ImportJob
def create_import_job(db: Session, import_job: schemas.ImportJobCreate):
    return repo_jobs.create_import_job(db, import_job)


def get_import_job(db: Session, import_job_id: uuid.UUID):
    return repo_jobs.get_import_job(db, import_job_id)


def get_import_jobs(db: Session, status: Optional[str] = None, skip: int = 0, limit: int = 100):
    return repo_jobs.get_import_jobs(db, status=status, skip=skip, limit=limit)
