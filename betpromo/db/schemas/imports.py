from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict


class ImportSummary(BaseModel):
    filename: str
    total_records: int
    import_date: datetime
    processed: bool
    promotion_names: List[str] = []


class StagedRow(BaseModel):
    id: int
    smartico_user_id: int
    user_ext_id: Optional[str] = None
    core_sm_brand_id: Optional[int] = None
    crm_brand_id: Optional[int] = None
    ext_brand_id: Optional[str] = None
    crm_brand_name: Optional[str] = None
    promotion_name: Optional[str] = None
    rules: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    filename: str
    imported_at: datetime
    processed: bool
    model_config = ConfigDict(from_attributes=True)


class LinkStagedRequest(BaseModel):
    promotion_name: Optional[str] = None


class ImportValidation(BaseModel):
    valid: bool
    total_rows: int
    unique_users: int
    promotion_names: List[str] = []
