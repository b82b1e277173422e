"""
Background execution of CSV import jobs.

An upload creates an ``ImportJob`` row and schedules ``run_import_job``. The
worker opens its own session, validates the whole file, stages it, then
merges the staged rows batch by batch, committing job progress after each
batch.
"""
import logging
import uuid
from datetime import datetime, timezone

from betpromo.db import crud
from betpromo.db.database import get_db_session_local
from betpromo.imports import pipeline
from betpromo.imports import service as import_service
from betpromo.imports.csv_parser import parse_csv
from betpromo.imports.pipeline import ImportStats
from betpromo.utils.errors import CSVValidationError, PromotionServiceError
from betpromo.utils.settings import get_import_settings

logger = logging.getLogger(__name__)


def _get_db():
    """Helper to get a new DB session for the worker."""
    return next(get_db_session_local())


def _error_log(exc: Exception) -> dict:
    log = {"message": getattr(exc, "message", None) or str(exc)}
    if isinstance(exc, CSVValidationError):
        log["errors"] = exc.errors
    if isinstance(exc, PromotionServiceError):
        log["error_code"] = exc.error_code
    return log


def run_import_job(job_id: uuid.UUID, path: str) -> None:
    """Execute import job ``job_id`` for the CSV stored at ``path``."""
    db = _get_db()
    job = None
    try:
        job = crud.get_import_job(db, job_id)
        if not job:
            logger.error(f"Import job {job_id} not found for execution.")
            return

        job.status = "running"
        job.started_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(job)

        users_only = job.mode == "users_only"
        rows = parse_csv(import_service.read_upload(path), default_promotion_name=job.promotion_name)
        job.total = len(rows)
        db.commit()

        batch_size = get_import_settings().batch_size
        stats = ImportStats()
        if users_only:
            for start in range(0, len(rows), batch_size):
                batch = rows[start:start + batch_size]
                stats.merge(pipeline.import_users_only(db, batch, job.filename))
                job.progress = min(start + len(batch), len(rows))
                db.commit()
        else:
            # Links are only deactivated against the complete file
            pipeline.stage_file(db, rows, job.filename)
            while stats.processed_rows < len(rows):
                batch = pipeline.process_staged_batch(db, job.filename, batch_size)
                if not batch.processed_rows:
                    break
                stats.merge(batch)
                job.progress = stats.processed_rows
                db.commit()

        import_service.finish_file(db, path, job.filename, fully_processed=not users_only)

        job.status = "completed"
        job.finished_at = datetime.now(timezone.utc)
        job.result_summary = stats.as_dict()
        db.commit()
        logger.info("import_job_completed: job=%s filename=%s %s", job_id, job.filename, stats.as_dict())
    except Exception as e:
        db.rollback()
        if job is not None:
            job.status = "failed"
            job.finished_at = datetime.now(timezone.utc)
            job.error_log = _error_log(e)
            db.commit()
        logger.error(f"Error during import job {job_id}: {e}")
    finally:
        db.close()
