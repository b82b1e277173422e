import uuid
from sqlalchemy import Column, String, Text, Integer, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from ..types import UTCDateTime
from .base import Base, now_utc


class ImportJob(Base):
    __tablename__ = 'import_jobs'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    filename = Column(String(255), nullable=False)
    original_filename = Column(String(255), nullable=True)
    promotion_name = Column(String(255), nullable=True)
    mode = Column(String(20), nullable=False, default='full')  # full|users_only
    status = Column(Text, nullable=False, default='pending')  # pending|running|completed|failed
    progress = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=True)
    started_at = Column(UTCDateTime(), nullable=True)
    finished_at = Column(UTCDateTime(), nullable=True)
    error_log = Column(JSONB, nullable=True)
    result_summary = Column(JSONB, nullable=True)
    created_at = Column(UTCDateTime(), default=now_utc, nullable=False)

    __table_args__ = (
        Index('ix_import_jobs_status_created_at', 'status', 'created_at'),
        Index('ix_import_jobs_filename', 'filename'),
        CheckConstraint("mode in ('full','users_only')", name='ck_import_jobs_mode'),
    )
