"""
Assignment API routes.
Scheduling of workers and materials against sites and tasks, plus history.
"""
import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ValidationError
from ..schemas.assignments import (
    AbsenceCoverRequest,
    AssigneeType,
    AssignmentCreate,
    AssignmentHistoryResponse,
    AssignmentListResponse,
    AssignmentResponse,
    AssignmentStatus,
    AssignmentUpdate,
    CancelRequest,
    EntityType,
    ReassignRequest,
)
from ..services import assignment_store, assignments
from ..services.history import get_history
from .deps import get_actor_id

router = APIRouter(prefix="/assignments", tags=["assignments"])


# ---------- QUERIES ----------
@router.get("", response_model=AssignmentListResponse)
def list_assignments(
    assignee_type: Optional[AssigneeType] = Query(None),
    entity_type: Optional[EntityType] = Query(None),
    status: Optional[AssignmentStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """List assignments with filters; the date filter applies when both bounds are given"""
    return assignment_store.list_assignments(
        db,
        assignee_type=assignee_type.value if assignee_type else None,
        entity_type=entity_type.value if entity_type else None,
        status=status.value if status else None,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.get("/worker/{worker_id}", response_model=List[AssignmentResponse])
def worker_assignments(worker_id: uuid.UUID, db: Session = Depends(get_db)):
    return assignment_store.worker_assignments(db, worker_id)


@router.get("/worker/{worker_id}/timeline", response_model=List[AssignmentResponse])
def worker_timeline(
    worker_id: uuid.UUID,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: Session = Depends(get_db),
):
    if start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")
    return assignment_store.worker_timeline(db, worker_id, start_date, end_date)


@router.get("/site/{site_id}", response_model=List[AssignmentResponse])
def site_assignments(site_id: uuid.UUID, db: Session = Depends(get_db)):
    """Active assignments on a site"""
    return assignment_store.site_assignments(db, site_id)


@router.get("/{assignment_id}", response_model=AssignmentResponse)
def get_assignment(assignment_id: uuid.UUID, db: Session = Depends(get_db)):
    return assignment_store.get_assignment(db, assignment_id)


@router.get("/{assignment_id}/history", response_model=List[AssignmentHistoryResponse])
def assignment_history(assignment_id: uuid.UUID, db: Session = Depends(get_db)):
    """Lifecycle trail of an assignment, oldest first"""
    assignment_store.get_assignment(db, assignment_id)
    return get_history(db, assignment_id)


# ---------- LIFECYCLE ----------
@router.post("", response_model=AssignmentResponse, status_code=201)
def create_assignment(
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
):
    """
    Create an assignment.
    Conflicts are advisory: run POST /conflicts/check first unless strict mode is enabled.
    """
    return assignments.create(
        db,
        assignee_type=payload.assignee_type.value,
        assignee_id=payload.assignee_id,
        entity_type=payload.entity_type.value,
        entity_id=payload.entity_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        hours_per_day=payload.hours_per_day,
        quantity=payload.quantity,
        notes=payload.notes,
        assigned_by=actor_id,
    )


@router.put("/{assignment_id}", response_model=AssignmentResponse)
def update_assignment(
    assignment_id: uuid.UUID,
    payload: AssignmentUpdate,
    db: Session = Depends(get_db),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
):
    changes = payload.model_dump(exclude_unset=True)
    # end_date and notes may be cleared explicitly; the other fields may not
    for key in ("start_date", "hours_per_day"):
        if key in changes and changes[key] is None:
            del changes[key]
    return assignments.update(db, assignment_id, changes, changed_by=actor_id)


@router.put("/{assignment_id}/complete", response_model=AssignmentResponse)
def complete_assignment(
    assignment_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
):
    return assignments.complete(db, assignment_id, changed_by=actor_id)


@router.put("/{assignment_id}/cancel", response_model=AssignmentResponse)
def cancel_assignment(
    assignment_id: uuid.UUID,
    payload: CancelRequest,
    db: Session = Depends(get_db),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
):
    return assignments.cancel(db, assignment_id, payload.reason, changed_by=actor_id)


@router.post("/{assignment_id}/reassign", response_model=AssignmentResponse, status_code=201)
def reassign_assignment(
    assignment_id: uuid.UUID,
    payload: ReassignRequest,
    db: Session = Depends(get_db),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
):
    """Supersede the assignment with a new one for another assignee; returns the new assignment"""
    return assignments.reassign(
        db, assignment_id, payload.new_assignee_id, reason=payload.reason, changed_by=actor_id
    )


@router.post("/absences/cover", response_model=List[AssignmentResponse])
def cover_absence(
    payload: AbsenceCoverRequest,
    db: Session = Depends(get_db),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
):
    """Hand an absent worker's assignments for the day to the first free candidate"""
    return assignments.cover_absence(
        db,
        payload.worker_id,
        payload.absent_date,
        payload.candidate_worker_ids,
        reason=payload.reason,
        changed_by=actor_id,
    )
