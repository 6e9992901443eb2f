"""
Assignment conflict detection service.
Reports overlapping active assignments for the same assignee; never resolves them.
"""
import uuid
from dataclasses import dataclass
from datetime import date
from typing import List, Optional
import structlog
from sqlalchemy.orm import Session

from ..models.models import Assignment
from .assignment_store import active_for_assignee
from .notifications import fire
from .time_rules import overlap_window


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Candidate:
    """The interval a caller wants to book for an assignee."""
    assignee_type: str
    assignee_id: uuid.UUID
    start_date: date
    end_date: Optional[date] = None
    id: Optional[uuid.UUID] = None  # Set for edit-in-place checks


@dataclass(frozen=True)
class ConflictDescriptor:
    conflicting_assignment_id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    overlap_start: date
    overlap_end: Optional[date]
    message: str

    def to_dict(self) -> dict:
        return {
            "conflicting_assignment_id": str(self.conflicting_assignment_id),
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id),
            "overlap_start": self.overlap_start.isoformat(),
            "overlap_end": self.overlap_end.isoformat() if self.overlap_end else None,
            "message": self.message,
        }


def _describe(candidate: Candidate, existing: Assignment, start: date, end: Optional[date]) -> str:
    until = end.isoformat() if end else "open-ended"
    return (
        f"{candidate.assignee_type.capitalize()} is already assigned to "
        f"{existing.entity_type} {existing.entity_id} from {start.isoformat()} to {until}"
    )


def find_conflicts(db: Session, candidate: Candidate) -> List[ConflictDescriptor]:
    """
    Get overlapping active assignments for the candidate's assignee.

    Args:
        db: Database session
        candidate: Assignee and interval to check; its own id is excluded

    Returns:
        One ConflictDescriptor per overlapping assignment, empty when safe to create
    """
    existing = active_for_assignee(
        db,
        candidate.assignee_type,
        candidate.assignee_id,
        start_date=candidate.start_date,
        end_date=candidate.end_date,
        exclude_id=candidate.id,
    )

    conflicts = []
    for assignment in existing:
        window = overlap_window(candidate.start_date, candidate.end_date, assignment.start_date, assignment.end_date)
        if window is None:
            continue
        start, end = window
        conflicts.append(ConflictDescriptor(
            conflicting_assignment_id=assignment.id,
            entity_type=assignment.entity_type,
            entity_id=assignment.entity_id,
            overlap_start=start,
            overlap_end=end,
            message=_describe(candidate, assignment, start, end),
        ))
    return conflicts


def has_conflicts(db: Session, candidate: Candidate) -> bool:
    return len(find_conflicts(db, candidate)) > 0


def report_conflicts(db: Session, candidate: Candidate, conflicts: List[ConflictDescriptor]) -> None:
    """Log and notify about detected conflicts."""
    if not conflicts:
        return
    logger.warning(
        "assignment.conflict",
        assignee_type=candidate.assignee_type,
        assignee_id=str(candidate.assignee_id),
        start_date=candidate.start_date.isoformat(),
        end_date=candidate.end_date.isoformat() if candidate.end_date else None,
        conflict_count=len(conflicts),
    )
    fire(
        db,
        "assignment.conflict",
        "assignment",
        candidate.id or candidate.assignee_id,
        {
            "assignee_type": candidate.assignee_type,
            "assignee_id": str(candidate.assignee_id),
            "conflicts": [c.to_dict() for c in conflicts],
        },
    )


def check_conflicts(db: Session, candidate: Candidate) -> List[ConflictDescriptor]:
    """Preview step of the check-then-create flow: find, report, return."""
    conflicts = find_conflicts(db, candidate)
    report_conflicts(db, candidate, conflicts)
    return conflicts
