import uuid
from datetime import date
from typing import List, Optional

from pydantic import BaseModel

from .assignments import AssigneeType, EntityType


class ConflictCheckRequest(BaseModel):
    assignee_type: AssigneeType
    assignee_id: uuid.UUID
    start_date: date
    end_date: Optional[date] = None
    exclude_assignment_id: Optional[uuid.UUID] = None  # When editing an existing assignment


class ConflictDescriptorResponse(BaseModel):
    conflicting_assignment_id: uuid.UUID
    entity_type: EntityType
    entity_id: uuid.UUID
    overlap_start: date
    overlap_end: Optional[date] = None
    message: str

    class Config:
        from_attributes = True


class ConflictCheckResponse(BaseModel):
    has_conflicts: bool
    conflicts: List[ConflictDescriptorResponse]
