import uuid
from datetime import datetime
from typing import Optional, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict


class ImportJobBase(BaseModel):
    filename: str
    original_filename: Optional[str] = None
    promotion_name: Optional[str] = None
    mode: Literal["full", "users_only"] = "full"


class ImportJobCreate(ImportJobBase):
    pass


class ImportJob(ImportJobBase):
    id: uuid.UUID
    status: str
    progress: int
    total: Optional[int] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error_log: Optional[Dict[str, Any]] = None
    result_summary: Optional[Dict[str, Any]] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
