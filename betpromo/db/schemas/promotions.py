from datetime import datetime
from typing import Annotated, Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator

from betpromo.db.models import MAX_USER_ID

PromotionStatus = Literal["active", "inactive", "scheduled", "expired"]
UserId = Annotated[int, Field(gt=0, le=MAX_USER_ID)]


def _clean_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("name must not be blank")
    return value


class PromotionBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    rules: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    brand: Optional[str] = Field(default=None, max_length=100)
    kind: Optional[str] = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value):
        return _clean_name(value)


class PromotionCreate(PromotionBase):
    status: Literal["active", "inactive", "scheduled"] = "active"
    # Switch to 'scheduled' when start_date lies in the future
    schedule_activation: bool = False
    target_user_ids: Optional[List[UserId]] = None
    # Link users staged from this uploaded file
    csv_filename: Optional[str] = None


class PromotionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    rules: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[PromotionStatus] = None
    brand: Optional[str] = Field(default=None, max_length=100)
    kind: Optional[str] = Field(default=None, max_length=100)

    # Omitting name or status leaves it unchanged; null is not a value for either
    @field_validator("name", "status")
    @classmethod
    def _not_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return _clean_name(value) if info.field_name == "name" else value


class Promotion(PromotionBase):
    id: int
    status: PromotionStatus
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class PromotionDetail(Promotion):
    total_users: int = 0


class PromotionPage(BaseModel):
    items: List[Promotion]
    total: int
    page: int
    limit: int
    pages: int


class PromotionUsersAssociate(BaseModel):
    user_ids: List[UserId] = Field(min_length=1)


class PromotionStats(BaseModel):
    promotion_id: int
    total_links: int
    active_links: int
    inactive_links: int
    expired_links: int
    history_entries: int
