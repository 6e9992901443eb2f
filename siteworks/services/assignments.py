"""
Assignment lifecycle service.
Create, update, complete, cancel and reassign assignments, writing history for each transition.
"""
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..db import atomic
from ..errors import ConflictDetected, InvalidStateError, ValidationError
from ..models.models import Assignment
from .assignment_store import get_assignment, lock_assignee, active_for_assignee
from .conflicts import Candidate, find_conflicts, report_conflicts
from .history import append_history, compute_diff
from .time_rules import today_local


logger = structlog.get_logger(__name__)

ASSIGNEE_TYPES = ("worker", "material")
ENTITY_TYPES = ("site", "task")
UPDATABLE_FIELDS = ("start_date", "end_date", "hours_per_day", "quantity", "notes")


def _validate_interval(start_date: date, end_date: Optional[date]) -> None:
    if end_date is not None and start_date > end_date:
        raise ValidationError(
            f"start_date {start_date.isoformat()} must be on or before end_date {end_date.isoformat()}"
        )


def _validate_hours(hours_per_day) -> Decimal:
    hours = Decimal(str(hours_per_day))
    if hours < 1 or hours > 24:
        raise ValidationError(f"hours_per_day must be between 1 and 24, got {hours_per_day}")
    return hours


def _validate_quantity(quantity) -> Optional[Decimal]:
    if quantity is None:
        return None
    value = Decimal(str(quantity))
    if value < 0:
        raise ValidationError("quantity must not be negative")
    return value


def _validate_lock_horizon(start_date: date, lock_horizon_days: Optional[int], today: Optional[date]) -> None:
    if lock_horizon_days is None:
        return
    earliest = (today or today_local()) - timedelta(days=lock_horizon_days)
    if start_date < earliest:
        raise ValidationError(
            f"start_date {start_date.isoformat()} is before the lock horizon ({earliest.isoformat()})"
        )


def _snapshot(assignment: Assignment) -> Dict[str, Any]:
    return {
        "start_date": assignment.start_date.isoformat() if assignment.start_date else None,
        "end_date": assignment.end_date.isoformat() if assignment.end_date else None,
        "hours_per_day": str(assignment.hours_per_day) if assignment.hours_per_day is not None else None,
        "quantity": str(assignment.quantity) if assignment.quantity is not None else None,
        "notes": assignment.notes,
    }


def _raise_conflicts(candidate: Candidate, conflicts) -> None:
    raise ConflictDetected(
        f"{candidate.assignee_type.capitalize()} {candidate.assignee_id} has "
        f"{len(conflicts)} overlapping active assignment(s)",
        conflicts=[c.to_dict() for c in conflicts],
    )


def _require_active(assignment: Assignment, operation: str) -> None:
    if assignment.status != "active":
        raise InvalidStateError(
            f"Cannot {operation} assignment {assignment.id}: status is '{assignment.status}', expected 'active'"
        )


def create(
    db: Session,
    *,
    assignee_type: str,
    assignee_id: uuid.UUID,
    entity_type: str,
    entity_id: uuid.UUID,
    start_date: date,
    end_date: Optional[date] = None,
    hours_per_day=8,
    quantity=None,
    notes: Optional[str] = None,
    assigned_by: Optional[uuid.UUID] = None,
    strict: Optional[bool] = None,
    lock_horizon_days: Optional[int] = None,
    today: Optional[date] = None,
) -> Assignment:
    """
    Create an active assignment and its `created` history entry.

    Conflicts are not checked unless strict mode is on; callers are expected
    to run the conflict check first. In strict mode the check runs under the
    assignee lock and raises ConflictDetected.
    """
    if strict is None:
        strict = settings.strict_conflict_mode
    if lock_horizon_days is None:
        lock_horizon_days = settings.assignment_lock_horizon_days

    if assignee_type not in ASSIGNEE_TYPES:
        raise ValidationError(f"assignee_type must be one of {', '.join(ASSIGNEE_TYPES)}")
    if entity_type not in ENTITY_TYPES:
        raise ValidationError(f"entity_type must be one of {', '.join(ENTITY_TYPES)}")
    _validate_interval(start_date, end_date)
    hours = _validate_hours(hours_per_day)
    quantity = _validate_quantity(quantity)
    _validate_lock_horizon(start_date, lock_horizon_days, today)

    candidate = Candidate(assignee_type, assignee_id, start_date, end_date)
    conflicts = []
    try:
        with atomic(db):
            lock_assignee(db, assignee_type, assignee_id)
            if strict:
                conflicts = find_conflicts(db, candidate)
                if conflicts:
                    _raise_conflicts(candidate, conflicts)

            assignment = Assignment(
                assignee_type=assignee_type,
                assignee_id=assignee_id,
                entity_type=entity_type,
                entity_id=entity_id,
                start_date=start_date,
                end_date=end_date,
                hours_per_day=hours,
                quantity=quantity,
                notes=notes,
                status="active",
                assigned_by=assigned_by,
            )
            db.add(assignment)
            db.flush()
            append_history(db, assignment, "created", changed_by=assigned_by, metadata=_snapshot(assignment))
    except ConflictDetected:
        report_conflicts(db, candidate, conflicts)
        raise

    db.refresh(assignment)
    logger.info(
        "assignment.created",
        assignment_id=str(assignment.id),
        assignee_type=assignee_type,
        assignee_id=str(assignee_id),
        entity_type=entity_type,
        entity_id=str(entity_id),
    )
    return assignment


def update(
    db: Session,
    assignment_id: uuid.UUID,
    changes: Dict[str, Any],
    changed_by: Optional[uuid.UUID] = None,
    strict: Optional[bool] = None,
    lock_horizon_days: Optional[int] = None,
    today: Optional[date] = None,
) -> Assignment:
    """
    Edit dates, hours, quantity or notes of an active assignment.

    Only keys present in `changes` are applied; an `end_date` of None makes
    the assignment open-ended. A new `start_date` is held to the same lock
    horizon as `create`. Edits that change nothing write no history.
    """
    if strict is None:
        strict = settings.strict_conflict_mode
    if lock_horizon_days is None:
        lock_horizon_days = settings.assignment_lock_horizon_days

    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    conflicts = []
    candidate = None
    try:
        with atomic(db):
            assignment = get_assignment(db, assignment_id, for_update=True)
            _require_active(assignment, "update")

            start_date = changes.get("start_date", assignment.start_date)
            end_date = changes.get("end_date", assignment.end_date)
            if start_date is None:
                raise ValidationError("start_date is required")
            _validate_interval(start_date, end_date)
            hours = _validate_hours(changes.get("hours_per_day", assignment.hours_per_day))
            quantity = _validate_quantity(changes.get("quantity", assignment.quantity))
            if "start_date" in changes:
                _validate_lock_horizon(start_date, lock_horizon_days, today)

            lock_assignee(db, assignment.assignee_type, assignment.assignee_id)
            if strict:
                candidate = Candidate(
                    assignment.assignee_type, assignment.assignee_id, start_date, end_date, id=assignment.id
                )
                conflicts = find_conflicts(db, candidate)
                if conflicts:
                    _raise_conflicts(candidate, conflicts)

            before = _snapshot(assignment)
            assignment.start_date = start_date
            assignment.end_date = end_date
            assignment.hours_per_day = hours
            assignment.quantity = quantity
            if "notes" in changes:
                assignment.notes = changes["notes"]

            diff = compute_diff(before, _snapshot(assignment))
            if diff:
                assignment.updated_at = datetime.now(timezone.utc)
                db.flush()
                append_history(db, assignment, "updated", previous_status="active", changed_by=changed_by, metadata=diff)
    except ConflictDetected:
        report_conflicts(db, candidate, conflicts)
        raise

    db.refresh(assignment)
    logger.info("assignment.updated", assignment_id=str(assignment.id), fields=sorted(diff))
    return assignment


def complete(db: Session, assignment_id: uuid.UUID, changed_by: Optional[uuid.UUID] = None) -> Assignment:
    with atomic(db):
        assignment = get_assignment(db, assignment_id, for_update=True)
        _require_active(assignment, "complete")
        assignment.status = "completed"
        assignment.completed_at = datetime.now(timezone.utc)
        db.flush()
        append_history(db, assignment, "completed", previous_status="active", changed_by=changed_by)

    db.refresh(assignment)
    logger.info("assignment.completed", assignment_id=str(assignment.id))
    return assignment


def cancel(
    db: Session,
    assignment_id: uuid.UUID,
    reason: Optional[str],
    changed_by: Optional[uuid.UUID] = None,
) -> Assignment:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A cancellation reason is required")

    with atomic(db):
        assignment = get_assignment(db, assignment_id, for_update=True)
        _require_active(assignment, "cancel")
        assignment.status = "cancelled"
        assignment.cancelled_at = datetime.now(timezone.utc)
        db.flush()
        append_history(db, assignment, "cancelled", previous_status="active", reason=reason, changed_by=changed_by)

    db.refresh(assignment)
    logger.info("assignment.cancelled", assignment_id=str(assignment.id), reason=reason)
    return assignment


def reassign(
    db: Session,
    assignment_id: uuid.UUID,
    new_assignee_id: uuid.UUID,
    reason: Optional[str] = None,
    changed_by: Optional[uuid.UUID] = None,
    strict: Optional[bool] = None,
) -> Assignment:
    """
    Supersede an active assignment with a copy for another assignee.

    In one transaction: the old record becomes `reassigned`, a new active
    record is created with the same entity, dates and hours, and a single
    `reassigned` history entry on the old record links both assignees.

    Returns:
        The new assignment
    """
    if strict is None:
        strict = settings.strict_conflict_mode
    reason = (reason or "").strip() or None

    conflicts = []
    candidate = None
    try:
        with atomic(db):
            old = get_assignment(db, assignment_id, for_update=True)
            _require_active(old, "reassign")
            if old.assignee_id == new_assignee_id:
                raise ValidationError("new_assignee_id must differ from the current assignee")

            lock_assignee(db, old.assignee_type, new_assignee_id)
            candidate = Candidate(old.assignee_type, new_assignee_id, old.start_date, old.end_date)
            if strict:
                conflicts = find_conflicts(db, candidate)
                if conflicts:
                    _raise_conflicts(candidate, conflicts)

            old.status = "reassigned"
            old.updated_at = datetime.now(timezone.utc)

            new = Assignment(
                assignee_type=old.assignee_type,
                assignee_id=new_assignee_id,
                entity_type=old.entity_type,
                entity_id=old.entity_id,
                start_date=old.start_date,
                end_date=old.end_date,
                hours_per_day=old.hours_per_day,
                quantity=old.quantity,
                notes=f"Reassigned from assignment {old.id}" + (f". Reason: {reason}" if reason else ""),
                status="active",
                assigned_by=changed_by,
                reassigned_from_id=old.id,
            )
            db.add(new)
            db.flush()

            append_history(
                db,
                old,
                "reassigned",
                previous_status="active",
                previous_assignee_id=old.assignee_id,
                new_assignee_id=new_assignee_id,
                reason=reason,
                changed_by=changed_by,
                metadata={"new_assignment_id": str(new.id)},
            )
    except ConflictDetected:
        report_conflicts(db, candidate, conflicts)
        raise

    db.refresh(new)
    logger.info(
        "assignment.reassigned",
        assignment_id=str(assignment_id),
        new_assignment_id=str(new.id),
        new_assignee_id=str(new_assignee_id),
    )
    return new


def cover_absence(
    db: Session,
    worker_id: uuid.UUID,
    absent_date: date,
    candidate_worker_ids: Iterable[uuid.UUID],
    reason: Optional[str] = None,
    changed_by: Optional[uuid.UUID] = None,
) -> List[Assignment]:
    """
    Reassign an absent worker's active assignments covering `absent_date`.

    Each assignment goes to the first candidate with no conflicting active
    assignment over the whole interval; assignments with no free candidate
    are left untouched.

    Returns:
        The new assignments
    """
    candidates = [c for c in candidate_worker_ids if c != worker_id]
    reason = reason or f"Covering absence of worker {worker_id} on {absent_date.isoformat()}"

    covered = []
    for assignment in active_for_assignee(db, "worker", worker_id, absent_date, absent_date):
        for candidate_id in candidates:
            cover = Candidate("worker", candidate_id, assignment.start_date, assignment.end_date)
            if find_conflicts(db, cover):
                continue
            try:
                covered.append(reassign(db, assignment.id, candidate_id, reason=reason, changed_by=changed_by, strict=True))
            except ConflictDetected:
                # Candidate booked since the free check
                continue
            except InvalidStateError as e:
                # Assignment completed, cancelled or reassigned meanwhile
                logger.info("assignment.absence_skipped", assignment_id=str(assignment.id), detail=e.message)
            break
        else:
            logger.warning("assignment.absence_uncovered", assignment_id=str(assignment.id), absent_date=absent_date.isoformat())
    return covered
