"""
Import bookkeeping: stored uploads, staged files and end-to-end file runs.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Dict, List, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from betpromo.db import models
from betpromo.imports import pipeline
from betpromo.imports.csv_parser import make_stored_filename, parse_csv, validate_upload
from betpromo.imports.pipeline import ImportStats
from betpromo.utils.errors import NotFound
from betpromo.utils.settings import get_import_settings

logger = logging.getLogger(__name__)


def list_imports(db: Session) -> List[Dict]:
    """One summary per staged file, newest first."""
    S = models.StagingImport
    rows = (
        db.query(
            S.filename,
            func.count(S.id).label("total_records"),
            func.min(S.imported_at).label("import_date"),
            func.sum(case((S.processed.is_(False), 1), else_=0)).label("unprocessed"),
        )
        .group_by(S.filename)
        .order_by(func.min(S.imported_at).desc(), S.filename.desc())
        .all()
    )
    names: Dict[str, List[str]] = {}
    for filename, name in (
        db.query(S.filename, S.promotion_name)
        .filter(S.promotion_name.isnot(None))
        .distinct()
        .order_by(S.filename, S.promotion_name)
    ):
        names.setdefault(filename, []).append(name)
    return [
        {
            "filename": row.filename,
            "total_records": row.total_records,
            "import_date": row.import_date,
            "processed": not row.unprocessed,
            "promotion_names": names.get(row.filename, []),
        }
        for row in rows
    ]


def get_import_details(db: Session, filename: str) -> List[models.StagingImport]:
    rows = (
        db.query(models.StagingImport)
        .filter(models.StagingImport.filename == filename)
        .order_by(models.StagingImport.id)
        .all()
    )
    if not rows:
        raise NotFound(f"Import '{filename}' not found")
    return rows


def store_upload(content: bytes, original_filename: Optional[str]) -> Tuple[str, str]:
    """Validate an uploaded CSV and write it under ``UPLOAD_PATH``.

    Returns ``(stored_filename, path)``.
    """
    validate_upload(original_filename, len(content))
    settings = get_import_settings()
    os.makedirs(settings.upload_path, exist_ok=True)
    stored = make_stored_filename()
    path = os.path.join(settings.upload_path, stored)
    with open(path, "wb") as fh:
        fh.write(content)
    return stored, path


def validate_file(content: bytes, original_filename: Optional[str], promotion_name: Optional[str] = None) -> Dict:
    """Dry run of an upload: parse and validate without storing or staging.

    Raises the same errors an upload would; otherwise summarizes the file.
    """
    validate_upload(original_filename, len(content))
    rows = parse_csv(content, default_promotion_name=promotion_name or None)
    return {
        "valid": True,
        "total_rows": len(rows),
        "unique_users": len({row.smartico_user_id for row in rows}),
        "promotion_names": sorted({row.promotion_name for row in rows}),
    }


def read_upload(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()


def remove_upload(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def finish_file(db: Session, path: str, filename: str, fully_processed: bool) -> None:
    """Apply the retention settings once a stored file has been imported."""
    settings = get_import_settings()
    if not settings.keep_files:
        remove_upload(path)
    if fully_processed and settings.purge_staging:
        purged = pipeline.purge_staging(db, filename)
        db.commit()
        logger.info("purge_staging: filename=%s rows=%d", filename, purged)


def run_import_file(
    db: Session,
    path: str,
    filename: str,
    promotion_name: Optional[str] = None,
    users_only: bool = False,
) -> ImportStats:
    """Parse a stored CSV and run it through the pipeline in one transaction."""
    rows = parse_csv(read_upload(path), default_promotion_name=promotion_name)
    if users_only:
        stats = pipeline.import_users_only(db, rows, filename)
    else:
        stats = pipeline.process_rows(db, rows, filename)
    finish_file(db, path, filename, fully_processed=not users_only)
    return stats


def cleanup_old_uploads(max_age_hours: float = 24) -> int:
    """Delete stored CSVs older than ``max_age_hours``; returns how many were removed."""
    upload_path = get_import_settings().upload_path
    if not os.path.isdir(upload_path):
        return 0
    cutoff = time.time() - max_age_hours * 3600
    removed = 0
    for entry in os.scandir(upload_path):
        if entry.is_file() and entry.name.endswith(".csv") and entry.stat().st_mtime < cutoff:
            remove_upload(entry.path)
            removed += 1
    if removed:
        logger.info("cleanup_old_uploads: removed=%d path=%s", removed, upload_path)
    return removed
