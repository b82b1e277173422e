"""
CSV import API endpoints.

Accepts uploads, runs them as background import jobs, and exposes staged
files, job status and the deferred promotion-linking step. Files can also
be validated without importing them, and a template can be downloaded.
"""
from typing import List, Optional
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from betpromo.db import crud, schemas
from betpromo.db.database import get_db
from betpromo.imports import pipeline
from betpromo.imports import service as import_service
from betpromo.imports.csv_parser import parse_csv, template_csv
from betpromo.workers import import_worker

router = APIRouter(prefix="/imports", tags=["imports"])


@router.post("/upload", response_model=schemas.ImportJob, status_code=status.HTTP_202_ACCEPTED)
async def upload_csv(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    promotion_name: Optional[str] = Form(default=None),
    users_only: bool = Form(default=False),
    db: Session = Depends(get_db),
):
    content = await file.read()
    import_service.validate_upload(file.filename, len(content))
    # Reject invalid files before anything is stored or staged
    rows = parse_csv(content, default_promotion_name=promotion_name or None)
    stored, path = import_service.store_upload(content, file.filename)
    job = crud.create_import_job(
        db,
        schemas.ImportJobCreate(
            filename=stored,
            original_filename=file.filename,
            promotion_name=promotion_name or None,
            mode="users_only" if users_only else "full",
        ),
    )
    job.total = len(rows)
    db.commit()
    db.refresh(job)
    background_tasks.add_task(import_worker.run_import_job, job.id, path)
    return job


@router.get("/jobs", response_model=List[schemas.ImportJob])
def list_import_jobs(status: Optional[str] = None, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return crud.get_import_jobs(db, status=status, skip=skip, limit=limit)


@router.get("/jobs/{job_id}", response_model=schemas.ImportJob)
def get_import_job(job_id: uuid.UUID, db: Session = Depends(get_db)):
    job = crud.get_import_job(db, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Import job not found")
    return job


@router.post("/cleanup")
def cleanup_uploads(max_age_hours: float = 24):
    return {"removed": import_service.cleanup_old_uploads(max_age_hours)}


@router.post("/validate", response_model=schemas.ImportValidation)
async def validate_csv(
    file: UploadFile = File(...),
    promotion_name: Optional[str] = Form(default=None),
):
    content = await file.read()
    return import_service.validate_file(content, file.filename, promotion_name=promotion_name)


@router.get("/template")
def download_template():
    return Response(
        content=template_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="import_template.csv"'},
    )


@router.get("/", response_model=List[schemas.ImportSummary])
def list_imports(db: Session = Depends(get_db)):
    return import_service.list_imports(db)


@router.get("/{filename}", response_model=List[schemas.StagedRow])
def get_import_details(filename: str, db: Session = Depends(get_db)):
    return import_service.get_import_details(db, filename)


@router.post("/{filename}/link")
def link_staged_file(filename: str, payload: schemas.LinkStagedRequest, db: Session = Depends(get_db)):
    stats = pipeline.link_staged_users(db, filename, promotion_name=payload.promotion_name)
    return stats.as_dict()
