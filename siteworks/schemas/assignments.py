import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, Field


# Enums
class AssigneeType(str, Enum):
    worker = "worker"
    material = "material"


class EntityType(str, Enum):
    site = "site"
    task = "task"


class AssignmentStatus(str, Enum):
    active = "active"
    completed = "completed"
    cancelled = "cancelled"
    reassigned = "reassigned"


class HistoryAction(str, Enum):
    created = "created"
    updated = "updated"
    reassigned = "reassigned"
    completed = "completed"
    cancelled = "cancelled"


# Assignment Schemas
class AssignmentBase(BaseModel):
    assignee_type: AssigneeType
    assignee_id: uuid.UUID
    entity_type: EntityType
    entity_id: uuid.UUID
    start_date: date
    end_date: Optional[date] = None
    hours_per_day: Decimal = Decimal("8")
    quantity: Optional[Decimal] = None
    notes: Optional[str] = None


class AssignmentCreate(AssignmentBase):
    pass


class AssignmentUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None  # Explicit null makes the assignment open-ended
    hours_per_day: Optional[Decimal] = None
    quantity: Optional[Decimal] = None
    notes: Optional[str] = None


class AssignmentResponse(AssignmentBase):
    id: uuid.UUID
    status: AssignmentStatus
    assigned_by: Optional[uuid.UUID] = None
    reassigned_from_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class ReassignRequest(BaseModel):
    new_assignee_id: uuid.UUID
    reason: Optional[str] = None


class AbsenceCoverRequest(BaseModel):
    worker_id: uuid.UUID
    absent_date: date
    candidate_worker_ids: List[uuid.UUID]
    reason: Optional[str] = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class AssignmentListResponse(BaseModel):
    items: List[AssignmentResponse]
    pagination: Pagination


# History Schemas
class AssignmentHistoryResponse(BaseModel):
    id: int
    assignment_id: uuid.UUID
    action: HistoryAction
    previous_assignee_id: Optional[uuid.UUID] = None
    new_assignee_id: Optional[uuid.UUID] = None
    previous_status: Optional[AssignmentStatus] = None
    new_status: Optional[AssignmentStatus] = None
    reason: Optional[str] = None
    changed_by: Optional[uuid.UUID] = None
    metadata_json: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True
