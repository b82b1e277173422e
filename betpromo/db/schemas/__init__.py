"""
Domain-split Pydantic schemas with a single import surface.
"""

from .end_users import (
    EndUserBase,
    EndUser,
    UserPromotionInfo,
    EndUserWithPromotions,
    UserPromotionHistoryEntry,
    EndUserPage,
    SearchPage,
)
from .promotions import (
    PromotionStatus,
    PromotionBase,
    PromotionCreate,
    PromotionUpdate,
    Promotion,
    PromotionDetail,
    PromotionPage,
    PromotionUsersAssociate,
    PromotionStats,
)
from .import_jobs import (
    ImportJobBase,
    ImportJobCreate,
    ImportJob,
)
from .imports import ImportSummary, StagedRow, LinkStagedRequest, ImportValidation

__all__ = [
    # users
    "EndUserBase",
    "EndUser",
    "UserPromotionInfo",
    "EndUserWithPromotions",
    "UserPromotionHistoryEntry",
    "EndUserPage",
    "SearchPage",
    # promotions
    "PromotionStatus",
    "PromotionBase",
    "PromotionCreate",
    "PromotionUpdate",
    "Promotion",
    "PromotionDetail",
    "PromotionPage",
    "PromotionUsersAssociate",
    "PromotionStats",
    # imports
    "ImportJobBase",
    "ImportJobCreate",
    "ImportJob",
    "ImportSummary",
    "StagedRow",
    "LinkStagedRequest",
    "ImportValidation",
]
