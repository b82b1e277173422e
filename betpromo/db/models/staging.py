from sqlalchemy import Column, String, Text, Integer, BigInteger, Boolean, Index
from ..types import UTCDateTime
from .base import Base, now_utc


class StagingImport(Base):
    __tablename__ = 'staging_imports'
    id = Column(Integer, primary_key=True, autoincrement=True)
    smartico_user_id = Column(BigInteger, nullable=False)
    user_ext_id = Column(String(255), nullable=True)
    core_sm_brand_id = Column(BigInteger, nullable=True)
    crm_brand_id = Column(BigInteger, nullable=True)
    ext_brand_id = Column(String(255), nullable=True)
    crm_brand_name = Column(String(255), nullable=True)
    promotion_name = Column(String(255), nullable=True)
    promotion_key = Column(String(255), nullable=True)
    rules = Column(Text, nullable=True)
    start_date = Column(UTCDateTime(), nullable=True)
    end_date = Column(UTCDateTime(), nullable=True)
    filename = Column(String(255), nullable=False)
    imported_at = Column(UTCDateTime(), default=now_utc, nullable=False)
    processed = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index('ix_staging_imports_filename_processed', 'filename', 'processed'),
        Index('ix_staging_imports_promotion_key', 'promotion_key'),
    )
