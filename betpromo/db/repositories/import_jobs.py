"""
Import job repository functions.

Implements create/read/list for background CSV import jobs; the worker
updates job rows in place.
"""
from __future__ import annotations

import uuid
from typing import Optional
from sqlalchemy.orm import Session

from betpromo.db import schemas, models


def create_import_job(db: Session, import_job: schemas.ImportJobCreate):
    db_import_job = models.ImportJob(**import_job.model_dump(), status="pending", progress=0)
    db.add(db_import_job)
    db.commit()
    db.refresh(db_import_job)
    return db_import_job


def get_import_job(db: Session, import_job_id: uuid.UUID):
    return db.query(models.ImportJob).filter(models.ImportJob.id == import_job_id).first()


def get_import_jobs(db: Session, status: Optional[str] = None, skip: int = 0, limit: int = 100):
    query = db.query(models.ImportJob)
    if status:
        query = query.filter(models.ImportJob.status == status)
    return query.order_by(models.ImportJob.created_at.desc()).offset(skip).limit(limit).all()
