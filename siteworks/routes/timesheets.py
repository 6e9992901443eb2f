"""
Timesheet API routes.
Weekly generation from attendance and the approval workflow.
"""
import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas.timesheets import (
    RejectRequest,
    SiteGenerateRequest,
    SiteGenerateResponse,
    SiteSummaryResponse,
    TimesheetGenerateRequest,
    TimesheetListResponse,
    TimesheetResponse,
    TimesheetStatus,
    TimesheetUpdate,
)
from ..services import timesheets
from .deps import get_actor_id

router = APIRouter(prefix="/timesheets", tags=["timesheets"])


# ---------- GENERATION ----------
@router.post("/generate", response_model=TimesheetResponse)
def generate_timesheet(payload: TimesheetGenerateRequest, db: Session = Depends(get_db)):
    """Generate (or regenerate) the draft timesheet for one worker, site and week"""
    return timesheets.generate(db, payload.worker_id, payload.site_id, payload.week_start_date)


@router.post("/site/{site_id}/generate", response_model=SiteGenerateResponse)
def generate_site_timesheets(site_id: uuid.UUID, payload: SiteGenerateRequest, db: Session = Depends(get_db)):
    """Generate timesheets for every worker on the site; per-worker failures are reported, not raised"""
    result = timesheets.generate_for_site(db, site_id, payload.week_start_date)
    return {"succeeded": result.succeeded, "failed": result.failed}


# ---------- QUERIES ----------
@router.get("", response_model=TimesheetListResponse)
def list_timesheets(
    worker_id: Optional[uuid.UUID] = Query(None),
    site_id: Optional[uuid.UUID] = Query(None),
    status: Optional[TimesheetStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return timesheets.list_timesheets(
        db,
        worker_id=worker_id,
        site_id=site_id,
        status=status.value if status else None,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.get("/site/{site_id}/summary", response_model=SiteSummaryResponse)
def site_summary(site_id: uuid.UUID, week_start_date: date = Query(...), db: Session = Depends(get_db)):
    return timesheets.site_summary(db, site_id, week_start_date)


@router.get("/{timesheet_id}", response_model=TimesheetResponse)
def get_timesheet(timesheet_id: uuid.UUID, db: Session = Depends(get_db)):
    return timesheets.get_timesheet(db, timesheet_id)


# ---------- WORKFLOW ----------
@router.put("/{timesheet_id}", response_model=TimesheetResponse)
def update_timesheet(timesheet_id: uuid.UUID, payload: TimesheetUpdate, db: Session = Depends(get_db)):
    """Edit notes on a draft timesheet"""
    return timesheets.update_notes(db, timesheet_id, payload.notes)


@router.put("/{timesheet_id}/submit", response_model=TimesheetResponse)
def submit_timesheet(timesheet_id: uuid.UUID, db: Session = Depends(get_db)):
    return timesheets.submit(db, timesheet_id)


@router.put("/{timesheet_id}/approve", response_model=TimesheetResponse)
def approve_timesheet(
    timesheet_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
):
    return timesheets.approve(db, timesheet_id, approved_by=actor_id)


@router.put("/{timesheet_id}/reject", response_model=TimesheetResponse)
def reject_timesheet(
    timesheet_id: uuid.UUID,
    payload: RejectRequest,
    db: Session = Depends(get_db),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
):
    return timesheets.reject(db, timesheet_id, payload.reason, rejected_by=actor_id)


@router.put("/{timesheet_id}/reopen", response_model=TimesheetResponse)
def reopen_timesheet(timesheet_id: uuid.UUID, db: Session = Depends(get_db)):
    """Return a rejected timesheet to draft"""
    return timesheets.reopen(db, timesheet_id)
