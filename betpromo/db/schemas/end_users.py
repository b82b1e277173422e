from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field


class EndUserBase(BaseModel):
    smartico_user_id: int = Field(gt=0)
    user_ext_id: Optional[str] = None
    core_sm_brand_id: Optional[int] = None
    crm_brand_id: Optional[int] = None
    ext_brand_id: Optional[str] = None
    crm_brand_name: Optional[str] = None


class EndUser(EndUserBase):
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class UserPromotionInfo(BaseModel):
    promotion_id: int
    promotion_name: str
    status: str
    linked_at: Optional[datetime] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    rules: Optional[str] = None


class EndUserWithPromotions(EndUser):
    promotions: List[UserPromotionInfo] = []


class UserPromotionHistoryEntry(BaseModel):
    id: int
    smartico_user_id: int
    promotion_id: int
    promotion_name: Optional[str] = None
    filename: Optional[str] = None
    added_at: datetime
    status: str
    rules: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    operation_type: str


class EndUserPage(BaseModel):
    items: List[EndUserWithPromotions]
    total: int
    page: int
    limit: int
    pages: int


class SearchPage(BaseModel):
    items: List[EndUserWithPromotions]
    total: int
    page: int
    limit: int
    has_next: bool
    has_prev: bool
