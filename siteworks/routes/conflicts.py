"""
Conflict preview API.
Lets a dispatcher see double-bookings before creating an assignment.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ValidationError
from ..schemas.conflicts import ConflictCheckRequest, ConflictCheckResponse
from ..services.conflicts import Candidate, check_conflicts

router = APIRouter(prefix="/conflicts", tags=["conflicts"])


@router.post("/check", response_model=ConflictCheckResponse)
def check(payload: ConflictCheckRequest, db: Session = Depends(get_db)):
    if payload.end_date is not None and payload.start_date > payload.end_date:
        raise ValidationError("start_date must be on or before end_date")
    candidate = Candidate(
        assignee_type=payload.assignee_type.value,
        assignee_id=payload.assignee_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        id=payload.exclude_assignment_id,
    )
    conflicts = check_conflicts(db, candidate)
    return {"has_conflicts": len(conflicts) > 0, "conflicts": conflicts}
