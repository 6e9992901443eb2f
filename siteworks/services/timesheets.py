"""
Timesheet lifecycle service.
Generates weekly timesheets from attendance and moves them through
draft -> submitted -> approved | rejected (-> draft).
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import atomic
from ..errors import InvalidStateError, NotFoundError, SchedulingError, ValidationError
from ..models.models import Timesheet
from .attendance_aggregator import WeeklyAggregate, aggregate
from .collaborators import AttendanceSource, SiteRoster, WorkerDirectory
from .notifications import fire
from .time_rules import is_week_start, round_money, week_bounds


logger = structlog.get_logger(__name__)

STATUSES = ("draft", "submitted", "approved", "rejected")
# Statuses generation may overwrite; rejected timesheets return to draft
REGENERABLE = ("draft", "rejected")

_workers = WorkerDirectory()
_attendance = AttendanceSource()
_roster = SiteRoster()


@dataclass
class BatchResult:
    succeeded: List[Timesheet] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)


def _validate_week_start(week_start_date: date, weekday: Optional[int]) -> None:
    if not is_week_start(week_start_date, weekday):
        raise ValidationError(
            f"week_start_date {week_start_date.isoformat()} does not fall on the configured week-start day"
        )


def get_timesheet(db: Session, timesheet_id: uuid.UUID, for_update: bool = False) -> Timesheet:
    query = db.query(Timesheet).filter(Timesheet.id == timesheet_id)
    if for_update:
        query = query.with_for_update()
    timesheet = query.first()
    if not timesheet:
        raise NotFoundError(f"Timesheet {timesheet_id} not found")
    return timesheet


def _computed_fields(agg: WeeklyAggregate, rate: Decimal, multiplier: Decimal) -> Dict[str, Any]:
    regular_pay = round_money(agg.regular_hours * rate)
    overtime_pay = round_money(agg.overtime_hours * rate * multiplier)
    return {
        "week_end_date": agg.week_end_date,
        "daily_breakdown": [d.to_dict() for d in agg.daily_breakdown],
        "regular_hours": agg.regular_hours,
        "overtime_hours": agg.overtime_hours,
        "total_hours": agg.total_hours,
        "hourly_rate": round_money(rate),
        "regular_pay": regular_pay,
        "overtime_pay": overtime_pay,
        "total_pay": round_money(regular_pay + overtime_pay),
    }


def _write(db: Session, worker_id: uuid.UUID, site_id: uuid.UUID, week_start_date: date, values: Dict[str, Any]) -> Timesheet:
    with atomic(db):
        timesheet = (
            db.query(Timesheet)
            .filter(
                Timesheet.worker_id == worker_id,
                Timesheet.site_id == site_id,
                Timesheet.week_start_date == week_start_date,
            )
            .with_for_update()
            .first()
        )
        if timesheet is None:
            timesheet = Timesheet(worker_id=worker_id, site_id=site_id, week_start_date=week_start_date, status="draft", **values)
            db.add(timesheet)
            db.flush()
            return timesheet

        if timesheet.status not in REGENERABLE:
            raise InvalidStateError(
                f"Timesheet {timesheet.id} is '{timesheet.status}' and can no longer be regenerated"
            )

        changed = timesheet.status != "draft" or any(getattr(timesheet, k) != v for k, v in values.items())
        if changed:
            for key, value in values.items():
                setattr(timesheet, key, value)
            timesheet.status = "draft"
            timesheet.rejection_reason = None
            timesheet.rejected_at = None
            timesheet.updated_at = datetime.now(timezone.utc)
            db.flush()
        return timesheet


def generate(
    db: Session,
    worker_id: uuid.UUID,
    site_id: uuid.UUID,
    week_start_date: date,
    workers: Optional[WorkerDirectory] = None,
    attendance: Optional[AttendanceSource] = None,
    overtime_multiplier: Optional[float] = None,
    week_start_weekday: Optional[int] = None,
    threshold_hours: Optional[float] = None,
    unpaid_break_min: Optional[int] = None,
) -> Timesheet:
    """
    Build or rebuild the draft timesheet for one worker, site and week.

    Regenerating a draft overwrites it in place; a rejected timesheet is
    rebuilt and returns to draft. Submitted and approved timesheets are
    never touched (InvalidStateError).
    """
    workers = workers or _workers
    attendance = attendance or _attendance
    if overtime_multiplier is None:
        overtime_multiplier = settings.overtime_multiplier

    _validate_week_start(week_start_date, week_start_weekday)
    week_start, week_end = week_bounds(week_start_date)

    rate = workers.hourly_rate(db, worker_id)
    records = attendance.fetch(db, worker_id, site_id, week_start, week_end)
    agg = aggregate(records, week_start, threshold_hours=threshold_hours, unpaid_break_min=unpaid_break_min)
    values = _computed_fields(agg, rate, Decimal(str(overtime_multiplier)))

    try:
        timesheet = _write(db, worker_id, site_id, week_start, values)
    except IntegrityError:
        # Lost the insert race on (worker, site, week); the winner's row now exists
        logger.info("timesheet.insert_race", worker_id=str(worker_id), site_id=str(site_id), week_start_date=week_start.isoformat())
        timesheet = _write(db, worker_id, site_id, week_start, values)

    db.refresh(timesheet)
    logger.info(
        "timesheet.generated",
        timesheet_id=str(timesheet.id),
        worker_id=str(worker_id),
        site_id=str(site_id),
        week_start_date=week_start.isoformat(),
        total_hours=str(timesheet.total_hours),
    )
    return timesheet


def generate_for_site(
    db: Session,
    site_id: uuid.UUID,
    week_start_date: date,
    roster: Optional[SiteRoster] = None,
    workers: Optional[WorkerDirectory] = None,
    attendance: Optional[AttendanceSource] = None,
    week_start_weekday: Optional[int] = None,
) -> BatchResult:
    """
    Generate timesheets for every worker on the site roster for the week.

    Each worker is generated in its own transaction; a failure is recorded
    and the batch moves on to the next worker.
    """
    roster = roster or _roster
    _validate_week_start(week_start_date, week_start_weekday)
    week_start, week_end = week_bounds(week_start_date)

    result = BatchResult()
    for worker_id in roster.active_worker_ids(db, site_id, week_start, week_end):
        try:
            result.succeeded.append(generate(
                db, worker_id, site_id, week_start,
                workers=workers, attendance=attendance, week_start_weekday=week_start_weekday,
            ))
        except SchedulingError as e:
            logger.error("timesheet.batch_item_failed", worker_id=str(worker_id), site_id=str(site_id), error=e.kind, detail=e.message)
            result.failed.append({"worker_id": worker_id, "error": e.kind, "message": e.message})
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("timesheet.batch_item_failed", worker_id=str(worker_id), site_id=str(site_id))
            result.failed.append({"worker_id": worker_id, "error": "persistence_error", "message": str(e)})
        except Exception as e:
            db.rollback()
            logger.exception("timesheet.batch_item_failed", worker_id=str(worker_id), site_id=str(site_id))
            result.failed.append({"worker_id": worker_id, "error": "unexpected_error", "message": str(e)})

    logger.info(
        "timesheet.batch_generated",
        site_id=str(site_id),
        week_start_date=week_start.isoformat(),
        succeeded=len(result.succeeded),
        failed=len(result.failed),
    )
    return result


def _require_status(timesheet: Timesheet, expected: str, operation: str) -> None:
    if timesheet.status != expected:
        raise InvalidStateError(
            f"Cannot {operation} timesheet {timesheet.id}: status is '{timesheet.status}', expected '{expected}'"
        )


def submit(db: Session, timesheet_id: uuid.UUID, require_hours: Optional[bool] = None) -> Timesheet:
    if require_hours is None:
        require_hours = settings.require_hours_on_submit

    with atomic(db):
        timesheet = get_timesheet(db, timesheet_id, for_update=True)
        _require_status(timesheet, "draft", "submit")
        if require_hours and not Decimal(timesheet.total_hours or 0):
            raise ValidationError(f"Timesheet {timesheet.id} has no recorded hours to submit")
        timesheet.status = "submitted"
        timesheet.submitted_at = datetime.now(timezone.utc)

    db.refresh(timesheet)
    logger.info("timesheet.submitted", timesheet_id=str(timesheet.id))
    return timesheet


def approve(db: Session, timesheet_id: uuid.UUID, approved_by: Optional[uuid.UUID] = None) -> Timesheet:
    with atomic(db):
        timesheet = get_timesheet(db, timesheet_id, for_update=True)
        _require_status(timesheet, "submitted", "approve")
        timesheet.status = "approved"
        timesheet.approved_by = approved_by
        timesheet.approved_at = datetime.now(timezone.utc)

    db.refresh(timesheet)
    logger.info("timesheet.approved", timesheet_id=str(timesheet.id))
    fire(db, "timesheet.approved", "timesheet", timesheet.id, {
        "worker_id": str(timesheet.worker_id),
        "site_id": str(timesheet.site_id),
        "week_start_date": timesheet.week_start_date.isoformat(),
        "total_pay": str(timesheet.total_pay),
    })
    return timesheet


def reject(db: Session, timesheet_id: uuid.UUID, reason: Optional[str], rejected_by: Optional[uuid.UUID] = None) -> Timesheet:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required")

    with atomic(db):
        timesheet = get_timesheet(db, timesheet_id, for_update=True)
        _require_status(timesheet, "submitted", "reject")
        timesheet.status = "rejected"
        timesheet.rejection_reason = reason
        timesheet.rejected_at = datetime.now(timezone.utc)

    db.refresh(timesheet)
    logger.info("timesheet.rejected", timesheet_id=str(timesheet.id), rejected_by=str(rejected_by) if rejected_by else None)
    fire(db, "timesheet.rejected", "timesheet", timesheet.id, {
        "worker_id": str(timesheet.worker_id),
        "site_id": str(timesheet.site_id),
        "week_start_date": timesheet.week_start_date.isoformat(),
        "reason": reason,
    })
    return timesheet


def reopen(db: Session, timesheet_id: uuid.UUID) -> Timesheet:
    """Return a rejected timesheet to draft for correction and resubmission."""
    with atomic(db):
        timesheet = get_timesheet(db, timesheet_id, for_update=True)
        _require_status(timesheet, "rejected", "reopen")
        timesheet.status = "draft"
        timesheet.rejection_reason = None
        timesheet.rejected_at = None
        timesheet.updated_at = datetime.now(timezone.utc)

    db.refresh(timesheet)
    logger.info("timesheet.reopened", timesheet_id=str(timesheet.id))
    return timesheet


def update_notes(db: Session, timesheet_id: uuid.UUID, notes: Optional[str]) -> Timesheet:
    with atomic(db):
        timesheet = get_timesheet(db, timesheet_id, for_update=True)
        _require_status(timesheet, "draft", "update")
        timesheet.notes = notes
        timesheet.updated_at = datetime.now(timezone.utc)

    db.refresh(timesheet)
    return timesheet


def list_timesheets(
    db: Session,
    worker_id: Optional[uuid.UUID] = None,
    site_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: int = 10,
) -> Dict:
    query = db.query(Timesheet)
    if worker_id:
        query = query.filter(Timesheet.worker_id == worker_id)
    if site_id:
        query = query.filter(Timesheet.site_id == site_id)
    if status:
        query = query.filter(Timesheet.status == status)
    if start_date and end_date:
        query = query.filter(Timesheet.week_start_date >= start_date, Timesheet.week_start_date <= end_date)

    total = query.count()
    items = (
        query.order_by(Timesheet.week_start_date.desc(), Timesheet.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": items,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit,
        },
    }


def site_summary(db: Session, site_id: uuid.UUID, week_start_date: date) -> Dict[str, Any]:
    timesheets = (
        db.query(Timesheet)
        .filter(Timesheet.site_id == site_id, Timesheet.week_start_date == week_start_date)
        .order_by(Timesheet.created_at.asc())
        .all()
    )

    zero = Decimal("0")
    summary = {
        "total_workers": len(timesheets),
        "total_regular_hours": sum((Decimal(t.regular_hours or 0) for t in timesheets), zero),
        "total_overtime_hours": sum((Decimal(t.overtime_hours or 0) for t in timesheets), zero),
        "total_hours": sum((Decimal(t.total_hours or 0) for t in timesheets), zero),
        "total_pay": sum((Decimal(t.total_pay or 0) for t in timesheets), zero),
        "by_status": {status: 0 for status in STATUSES},
    }
    for t in timesheets:
        summary["by_status"][t.status] = summary["by_status"].get(t.status, 0) + 1

    return {"summary": summary, "timesheets": timesheets}
