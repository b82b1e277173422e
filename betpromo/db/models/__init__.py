"""
Domain-split SQLAlchemy models with a single import surface.

Exposes `Base`, `now_utc`, `promotion_name_key` and all ORM classes.
"""

from .base import Base, now_utc, promotion_name_key  # re-export

# Domain models
from .end_users import EndUser, MAX_USER_ID
from .promotions import (
    Promotion,
    UserPromotion,
    UserPromotionHistory,
    MAX_PROMOTION_ID,
)
from .staging import StagingImport
from .import_jobs import ImportJob

__all__ = [
    # base
    "Base",
    "now_utc",
    "promotion_name_key",
    # users/promotions
    "EndUser",
    "Promotion",
    "UserPromotion",
    "UserPromotionHistory",
    "MAX_USER_ID",
    "MAX_PROMOTION_ID",
    # imports
    "StagingImport",
    "ImportJob",
]
