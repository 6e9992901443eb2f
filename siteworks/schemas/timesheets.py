import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, Field

from .assignments import Pagination


class TimesheetStatus(str, Enum):
    draft = "draft"
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"


class DailyBreakdown(BaseModel):
    date: str
    check_in: str
    check_out: str
    total_hours: float
    regular_hours: float
    overtime_hours: float


class TimesheetGenerateRequest(BaseModel):
    worker_id: uuid.UUID
    site_id: uuid.UUID
    week_start_date: date


class SiteGenerateRequest(BaseModel):
    week_start_date: date


class TimesheetUpdate(BaseModel):
    notes: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class TimesheetResponse(BaseModel):
    id: uuid.UUID
    worker_id: uuid.UUID
    site_id: uuid.UUID
    week_start_date: date
    week_end_date: date
    daily_breakdown: List[DailyBreakdown] = []
    regular_hours: Decimal
    overtime_hours: Decimal
    total_hours: Decimal
    hourly_rate: Decimal
    regular_pay: Decimal
    overtime_pay: Decimal
    total_pay: Decimal
    status: TimesheetStatus
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TimesheetListResponse(BaseModel):
    items: List[TimesheetResponse]
    pagination: Pagination


class BatchFailure(BaseModel):
    worker_id: uuid.UUID
    error: str
    message: str


class SiteGenerateResponse(BaseModel):
    succeeded: List[TimesheetResponse]
    failed: List[BatchFailure]

    class Config:
        from_attributes = True


class SiteSummary(BaseModel):
    total_workers: int
    total_regular_hours: Decimal
    total_overtime_hours: Decimal
    total_hours: Decimal
    total_pay: Decimal
    by_status: Dict[str, int]


class SiteSummaryResponse(BaseModel):
    summary: SiteSummary
    timesheets: List[TimesheetResponse]
