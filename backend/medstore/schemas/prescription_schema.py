from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PrescriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    buyer_id: str
    status: str
    content_type: Optional[str] = None
    original_filename: Optional[str] = None
    reviewer_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    approval_comments: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime


class ReviewIn(BaseModel):
    decision: str
    comments: Optional[str] = None
    reason: Optional[str] = None


class ReviewMetricsOut(BaseModel):
    approved_this_week: int
    rejected_this_week: int
    pending_count: int
    total_processed: int
