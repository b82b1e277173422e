from sqlalchemy import Column, String, BigInteger, Index, CheckConstraint
from sqlalchemy.orm import relationship
from ..types import UTCDateTime
from .base import Base, now_utc

# Upper bound of the BIGINT smartico id
MAX_USER_ID = 2**63 - 1


class EndUser(Base):
    __tablename__ = 'end_users'
    smartico_user_id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_ext_id = Column(String(255), nullable=True)
    core_sm_brand_id = Column(BigInteger, nullable=True)
    crm_brand_id = Column(BigInteger, nullable=True)
    ext_brand_id = Column(String(255), nullable=True)
    crm_brand_name = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime(), default=now_utc, nullable=False)
    updated_at = Column(UTCDateTime(), default=now_utc, onupdate=now_utc, nullable=False)

    promotion_links = relationship("UserPromotion", back_populates="user")

    __table_args__ = (
        Index('ix_end_users_user_ext_id', 'user_ext_id'),
        Index('ix_end_users_crm_brand_id', 'crm_brand_id'),
        Index('ix_end_users_updated_at', 'updated_at'),
        CheckConstraint('smartico_user_id > 0', name='ck_end_users_smartico_user_id_positive'),
    )
