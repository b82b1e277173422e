from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    BigInteger,
    ForeignKey,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from ..types import UTCDateTime
from .base import Base, now_utc

# Upper bound of the INTEGER primary key
MAX_PROMOTION_ID = 2**31 - 1


class Promotion(Base):
    __tablename__ = 'promotions'
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    # Case/whitespace-folded name; the unique index on it is what prevents
    # concurrent imports from creating the same promotion twice.
    name_key = Column(String(255), nullable=False)
    rules = Column(Text, nullable=True)
    start_date = Column(UTCDateTime(), nullable=True)
    end_date = Column(UTCDateTime(), nullable=True)
    status = Column(String(20), nullable=False, default='active')
    brand = Column(String(100), nullable=True)
    kind = Column(String(100), nullable=True)
    created_at = Column(UTCDateTime(), default=now_utc, nullable=False)
    updated_at = Column(UTCDateTime(), default=now_utc, onupdate=now_utc, nullable=False)

    user_links = relationship("UserPromotion", back_populates="promotion")

    __table_args__ = (
        Index('ux_promotions_name_key', 'name_key', unique=True),
        Index('ix_promotions_status', 'status'),
        Index('ix_promotions_created_at', 'created_at'),
        CheckConstraint(
            "status in ('active','inactive','scheduled','expired')",
            name='ck_promotions_status',
        ),
    )


class UserPromotion(Base):
    __tablename__ = 'user_promotions'
    smartico_user_id = Column(BigInteger, ForeignKey('end_users.smartico_user_id', ondelete='CASCADE'), primary_key=True)
    promotion_id = Column(Integer, ForeignKey('promotions.id', ondelete='CASCADE'), primary_key=True)
    linked_at = Column(UTCDateTime(), default=now_utc, nullable=False)
    start_date = Column(UTCDateTime(), nullable=True)
    end_date = Column(UTCDateTime(), nullable=True)
    rules = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default='active')  # active|inactive|expired
    updated_at = Column(UTCDateTime(), default=now_utc, onupdate=now_utc, nullable=False)

    user = relationship("EndUser", back_populates="promotion_links")
    promotion = relationship("Promotion", back_populates="user_links")

    __table_args__ = (
        Index('ix_user_promotions_promotion_id_status', 'promotion_id', 'status'),
        Index('ix_user_promotions_user_status', 'smartico_user_id', 'status'),
        CheckConstraint("status in ('active','inactive','expired')", name='ck_user_promotions_status'),
    )


class UserPromotionHistory(Base):
    __tablename__ = 'user_promotion_history'
    id = Column(Integer, primary_key=True, autoincrement=True)
    smartico_user_id = Column(BigInteger, ForeignKey('end_users.smartico_user_id', ondelete='CASCADE'), nullable=False)
    promotion_id = Column(Integer, ForeignKey('promotions.id', ondelete='CASCADE'), nullable=False)
    filename = Column(String(255), nullable=True)
    added_at = Column(UTCDateTime(), default=now_utc, nullable=False)
    status = Column(String(20), nullable=False)
    rules = Column(Text, nullable=True)
    start_date = Column(UTCDateTime(), nullable=True)
    end_date = Column(UTCDateTime(), nullable=True)
    operation_type = Column(String(20), nullable=False)

    promotion = relationship("Promotion")

    __table_args__ = (
        Index('ix_user_promotion_history_user_added', 'smartico_user_id', 'added_at'),
        Index('ix_user_promotion_history_promotion_id', 'promotion_id'),
        Index('ix_user_promotion_history_filename', 'filename'),
        CheckConstraint(
            "operation_type in ('insert','update','delete','manual_insert')",
            name='ck_user_promotion_history_operation_type',
        ),
    )
