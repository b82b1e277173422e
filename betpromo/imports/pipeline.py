"""
Staging-and-merge pipeline for CSV imports.

Parsed rows are written to ``staging_imports`` under a unique filename and
then merged into the permanent tables with set-based ``INSERT ... SELECT``
and ``ON CONFLICT`` statements:

1. ``merge_users``: new end users are inserted, known ones only get their
   empty columns filled.
2. ``upsert_promotions``: one promotion per normalized name. The unique index
   on ``promotions.name_key`` arbitrates concurrent imports, so two uploads
   naming the same promotion can never create two rows.
3. ``link_users``: each staged user is linked to the file's promotions and
   loses its other active links.
4. ``record_history`` and ``mark_processed``.

Steps never commit. The orchestration functions at the bottom own the
transaction: they commit once on success and roll back on any error.

Large files are staged whole by ``stage_file`` and then merged with
``process_staged_batch``, one transaction per batch of staging ids. Every
step accepts ``upto_id`` to restrict itself to the unprocessed rows at or
below that id.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from sqlalchemy import and_, delete, func, insert, literal, select, update
from sqlalchemy.orm import Session

from betpromo.db import models
from betpromo.db.dialect_insert import upsert_insert
from betpromo.db.models import now_utc, promotion_name_key
from betpromo.db.types import UTCDateTime
from betpromo.imports.csv_parser import CSVRow
from betpromo.utils.errors import ImportNotFound, ValidationFailed
from betpromo.utils.settings import get_import_settings

logger = logging.getLogger(__name__)

staging = models.StagingImport.__table__
end_users = models.EndUser.__table__
promotions = models.Promotion.__table__
links = models.UserPromotion.__table__
history = models.UserPromotionHistory.__table__

USER_COLUMNS = (
    "user_ext_id",
    "core_sm_brand_id",
    "crm_brand_id",
    "ext_brand_id",
    "crm_brand_name",
)
HISTORY_COLUMNS = [
    "smartico_user_id",
    "promotion_id",
    "filename",
    "added_at",
    "status",
    "rules",
    "start_date",
    "end_date",
    "operation_type",
]


@dataclass
class ImportStats:
    total_rows: int = 0
    processed_rows: int = 0
    new_users: int = 0
    new_promotions: int = 0
    new_user_promotions: int = 0
    deactivated_links: int = 0

    def merge(self, other: "ImportStats") -> "ImportStats":
        """Accumulate ``other`` (e.g. the stats of one batch) into this instance."""
        self.total_rows += other.total_rows
        self.processed_rows += other.processed_rows
        self.new_users += other.new_users
        self.new_promotions += other.new_promotions
        self.new_user_promotions += other.new_user_promotions
        self.deactivated_links += other.deactivated_links
        return self

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _pending(filename: str, upto_id: Optional[int] = None):
    clause = and_(staging.c.filename == filename, staging.c.processed.is_(False))
    if upto_id is not None:
        clause = and_(clause, staging.c.id <= upto_id)
    return clause


def _ts(value):
    return literal(value, UTCDateTime())


def _staged_with_promotion():
    return staging.join(promotions, promotions.c.name_key == staging.c.promotion_key)


def _staging_values(row: CSVRow, filename: str, now) -> Dict[str, Any]:
    values = row.model_dump()
    values.update(
        promotion_key=promotion_name_key(row.promotion_name) if row.promotion_name else None,
        filename=filename,
        imported_at=now,
        processed=False,
    )
    return values


def stage_rows(db: Session, rows: Sequence[CSVRow], filename: str, batch_size: Optional[int] = None) -> int:
    batch_size = batch_size or get_import_settings().batch_size
    now = now_utc()
    staged = 0
    for start in range(0, len(rows), batch_size):
        chunk = rows[start:start + batch_size]
        db.execute(insert(staging), [_staging_values(row, filename, now) for row in chunk])
        staged += len(chunk)
    return staged


def count_pending(db: Session, filename: str, upto_id: Optional[int] = None) -> int:
    return db.scalar(select(func.count()).select_from(staging).where(_pending(filename, upto_id))) or 0


def next_batch_bound(db: Session, filename: str, batch_size: int) -> Optional[int]:
    """Highest staging id among the next ``batch_size`` unprocessed rows, or None."""
    ids = (
        select(staging.c.id)
        .where(_pending(filename))
        .order_by(staging.c.id)
        .limit(batch_size)
        .subquery()
    )
    return db.scalar(select(func.max(ids.c.id)))


def assign_promotion(db: Session, filename: str, promotion_name: str) -> int:
    """Point every unprocessed row of ``filename`` at ``promotion_name``."""
    result = db.execute(
        update(staging)
        .where(_pending(filename))
        .values(promotion_name=promotion_name, promotion_key=promotion_name_key(promotion_name))
    )
    return result.rowcount


def merge_users(db: Session, filename: str, upto_id: Optional[int] = None) -> int:
    """Insert unseen users of ``filename``; fill NULL columns of known ones.

    When a user appears more than once in the file the last row wins.
    Returns the number of users created.
    """
    latest_ids = (
        select(func.max(staging.c.id))
        .where(_pending(filename, upto_id))
        .group_by(staging.c.smartico_user_id)
    )
    already_known = (
        select(end_users.c.smartico_user_id)
        .where(end_users.c.smartico_user_id == staging.c.smartico_user_id)
        .exists()
    )
    new_users = db.scalar(
        select(func.count()).select_from(staging).where(staging.c.id.in_(latest_ids), ~already_known)
    ) or 0

    now = now_utc()
    source = select(
        staging.c.smartico_user_id,
        *[staging.c[col] for col in USER_COLUMNS],
        _ts(now),
        _ts(now),
    ).where(staging.c.id.in_(latest_ids))
    stmt = upsert_insert(db, end_users).from_select(
        ["smartico_user_id", *USER_COLUMNS, "created_at", "updated_at"], source
    )
    set_ = {col: func.coalesce(end_users.c[col], stmt.excluded[col]) for col in USER_COLUMNS}
    set_["updated_at"] = stmt.excluded.updated_at
    stmt = stmt.on_conflict_do_update(index_elements=[end_users.c.smartico_user_id], set_=set_)
    db.execute(stmt)
    return new_users


def upsert_promotions(db: Session, filename: str, upto_id: Optional[int] = None) -> int:
    """Create or refresh one promotion per distinct promotion name in the file.

    Existing promotions keep values the file leaves empty. Returns the number
    of promotions created.
    """
    has_key = and_(_pending(filename, upto_id), staging.c.promotion_key.isnot(None))
    exists_already = (
        select(promotions.c.id)
        .where(promotions.c.name_key == staging.c.promotion_key)
        .exists()
    )
    new_promotions = db.scalar(
        select(func.count(func.distinct(staging.c.promotion_key))).where(has_key, ~exists_already)
    ) or 0

    now = now_utc()
    source = (
        select(
            func.min(staging.c.promotion_name),
            staging.c.promotion_key,
            func.max(staging.c.rules),
            func.min(staging.c.start_date),
            func.max(staging.c.end_date),
            literal("active"),
            _ts(now),
            _ts(now),
        )
        .where(has_key)
        .group_by(staging.c.promotion_key)
    )
    stmt = upsert_insert(db, promotions).from_select(
        ["name", "name_key", "rules", "start_date", "end_date", "status", "created_at", "updated_at"],
        source,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[promotions.c.name_key],
        set_={
            "rules": func.coalesce(stmt.excluded.rules, promotions.c.rules),
            "start_date": func.coalesce(stmt.excluded.start_date, promotions.c.start_date),
            "end_date": func.coalesce(stmt.excluded.end_date, promotions.c.end_date),
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)
    return new_promotions


def link_users(db: Session, filename: str, upto_id: Optional[int] = None) -> Tuple[int, int]:
    """Link staged users to their promotions, deactivating their other links.

    Returns ``(new_links, deactivated_links)``.
    """
    now = now_utc()
    pending = _pending(filename, upto_id)

    # A link stays active when any row of the file pairs it with the user,
    # including rows of other batches, processed or not.
    in_file = (
        select(staging.c.id)
        .select_from(_staged_with_promotion())
        .where(
            staging.c.filename == filename,
            staging.c.smartico_user_id == links.c.smartico_user_id,
            promotions.c.id == links.c.promotion_id,
        )
        .correlate(links)
        .exists()
    )
    stale = and_(
        links.c.status == "active",
        links.c.smartico_user_id.in_(select(staging.c.smartico_user_id).where(pending)),
        ~in_file,
    )
    db.execute(
        insert(history).from_select(
            HISTORY_COLUMNS,
            select(
                links.c.smartico_user_id,
                links.c.promotion_id,
                literal(filename),
                _ts(now),
                literal("inactive"),
                links.c.rules,
                links.c.start_date,
                links.c.end_date,
                literal("update"),
            ).where(stale),
        )
    )
    deactivated = db.execute(update(links).where(stale).values(status="inactive", updated_at=now)).rowcount

    pairs = (
        select(staging.c.smartico_user_id.label("uid"), promotions.c.id.label("pid"))
        .select_from(_staged_with_promotion())
        .where(pending)
        .distinct()
        .subquery()
    )
    new_links = db.scalar(
        select(func.count())
        .select_from(pairs)
        .where(
            ~select(links.c.smartico_user_id)
            .where(links.c.smartico_user_id == pairs.c.uid, links.c.promotion_id == pairs.c.pid)
            .exists()
        )
    ) or 0

    source = (
        select(
            staging.c.smartico_user_id,
            promotions.c.id,
            func.min(staging.c.start_date),
            func.max(staging.c.end_date),
            func.max(staging.c.rules),
            literal("active"),
            _ts(now),
            _ts(now),
        )
        .select_from(_staged_with_promotion())
        .where(pending)
        .group_by(staging.c.smartico_user_id, promotions.c.id)
    )
    stmt = upsert_insert(db, links).from_select(
        ["smartico_user_id", "promotion_id", "start_date", "end_date", "rules", "status", "linked_at", "updated_at"],
        source,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[links.c.smartico_user_id, links.c.promotion_id],
        set_={
            "start_date": stmt.excluded.start_date,
            "end_date": stmt.excluded.end_date,
            "rules": stmt.excluded.rules,
            "status": "active",
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)
    return new_links, deactivated


def record_history(db: Session, filename: str, upto_id: Optional[int] = None) -> int:
    now = now_utc()
    source = (
        select(
            staging.c.smartico_user_id,
            promotions.c.id,
            literal(filename),
            _ts(now),
            literal("active"),
            staging.c.rules,
            staging.c.start_date,
            staging.c.end_date,
            literal("insert"),
        )
        .select_from(_staged_with_promotion())
        .where(_pending(filename, upto_id))
        .distinct()
    )
    return db.execute(insert(history).from_select(HISTORY_COLUMNS, source)).rowcount


def mark_processed(db: Session, filename: str, upto_id: Optional[int] = None) -> int:
    return db.execute(update(staging).where(_pending(filename, upto_id)).values(processed=True)).rowcount


def purge_staging(db: Session, filename: str) -> int:
    return db.execute(delete(staging).where(staging.c.filename == filename)).rowcount


def _link_pending(db: Session, filename: str, stats: ImportStats, upto_id: Optional[int] = None) -> None:
    stats.new_promotions = upsert_promotions(db, filename, upto_id)
    stats.new_user_promotions, stats.deactivated_links = link_users(db, filename, upto_id)
    record_history(db, filename, upto_id)
    mark_processed(db, filename, upto_id)


def import_users_only(db: Session, rows: Sequence[CSVRow], filename: str, batch_size: Optional[int] = None) -> ImportStats:
    """Stage ``rows`` and merge their users; promotions are linked later."""
    stats = ImportStats(total_rows=len(rows))
    try:
        stage_rows(db, rows, filename, batch_size)
        stats.new_users = merge_users(db, filename)
        db.commit()
    except Exception:
        db.rollback()
        raise
    stats.processed_rows = len(rows)
    logger.info("import_users_only: filename=%s rows=%d new_users=%d", filename, len(rows), stats.new_users)
    return stats


def link_staged_users(db: Session, filename: str, promotion_name: Optional[str] = None) -> ImportStats:
    """Link the unprocessed staged users of ``filename`` to their promotion.

    ``promotion_name`` replaces whatever promotion the rows carried.
    """
    if promotion_name is not None:
        promotion_name = promotion_name.strip()
        if not promotion_name or len(promotion_name) > 255:
            raise ValidationFailed("promotion_name must be between 1 and 255 characters")
    pending_rows = count_pending(db, filename)
    if not pending_rows:
        raise ImportNotFound(f"No unprocessed staged rows found for '{filename}'")

    stats = ImportStats(total_rows=pending_rows)
    try:
        if promotion_name:
            assign_promotion(db, filename, promotion_name)
        _link_pending(db, filename, stats)
        db.commit()
    except Exception:
        db.rollback()
        raise
    stats.processed_rows = pending_rows
    logger.info(
        "link_staged_users: filename=%s rows=%d new_promotions=%d new_links=%d deactivated=%d",
        filename, pending_rows, stats.new_promotions, stats.new_user_promotions, stats.deactivated_links,
    )
    return stats


def process_rows(db: Session, rows: Sequence[CSVRow], filename: str, batch_size: Optional[int] = None) -> ImportStats:
    """Stage, merge and link ``rows`` in a single transaction."""
    stats = ImportStats(total_rows=len(rows))
    try:
        stage_rows(db, rows, filename, batch_size)
        stats.new_users = merge_users(db, filename)
        _link_pending(db, filename, stats)
        db.commit()
    except Exception:
        db.rollback()
        raise
    stats.processed_rows = len(rows)
    logger.info(
        "process_rows: filename=%s rows=%d new_users=%d new_promotions=%d new_links=%d deactivated=%d",
        filename, len(rows), stats.new_users, stats.new_promotions,
        stats.new_user_promotions, stats.deactivated_links,
    )
    return stats


def stage_file(db: Session, rows: Sequence[CSVRow], filename: str, batch_size: Optional[int] = None) -> int:
    """Stage every row of a file and commit, ahead of ``process_staged_batch``."""
    try:
        staged = stage_rows(db, rows, filename, batch_size)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("stage_file: filename=%s rows=%d", filename, staged)
    return staged


def process_staged_batch(db: Session, filename: str, batch_size: Optional[int] = None) -> ImportStats:
    """Merge and link the next ``batch_size`` unprocessed staged rows of ``filename``.

    Deactivation looks at every staged row of the file, so the file must be
    staged completely before its first batch runs. Returns empty stats when
    nothing is left to process.
    """
    batch_size = batch_size or get_import_settings().batch_size
    upto_id = next_batch_bound(db, filename, batch_size)
    if upto_id is None:
        return ImportStats()

    batch_rows = count_pending(db, filename, upto_id)
    stats = ImportStats(total_rows=batch_rows)
    try:
        stats.new_users = merge_users(db, filename, upto_id)
        _link_pending(db, filename, stats, upto_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    stats.processed_rows = batch_rows
    logger.info(
        "process_staged_batch: filename=%s rows=%d new_users=%d new_promotions=%d new_links=%d deactivated=%d",
        filename, batch_rows, stats.new_users, stats.new_promotions,
        stats.new_user_promotions, stats.deactivated_links,
    )
    return stats
