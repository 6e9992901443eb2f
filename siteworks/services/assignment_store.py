"""
Assignment store.
Queries over assignment records plus the per-assignee write lock.
"""
import uuid
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session
from sqlalchemy.dialects import postgresql, sqlite

from ..errors import NotFoundError
from ..models.models import Assignment, AssigneeLock


def get_assignment(db: Session, assignment_id: uuid.UUID, for_update: bool = False) -> Assignment:
    query = db.query(Assignment).filter(Assignment.id == assignment_id)
    if for_update:
        query = query.with_for_update()
    assignment = query.first()
    if not assignment:
        raise NotFoundError(f"Assignment {assignment_id} not found")
    return assignment


def lock_assignee(db: Session, assignee_type: str, assignee_id: uuid.UUID) -> None:
    """
    Serialize writes for one assignee until the current transaction ends.

    Ensures the lock row exists (insert-or-ignore) and then selects it
    FOR UPDATE. Other assignees are not blocked.
    """
    dialect = db.get_bind().dialect.name
    values = {"assignee_type": assignee_type, "assignee_id": assignee_id}
    if dialect == "postgresql":
        stmt = postgresql.insert(AssigneeLock).values(**values).on_conflict_do_nothing()
        db.execute(stmt)
    elif dialect == "sqlite":
        stmt = sqlite.insert(AssigneeLock).values(**values).on_conflict_do_nothing()
        db.execute(stmt)
    elif db.get(AssigneeLock, (assignee_type, assignee_id)) is None:
        db.add(AssigneeLock(**values))
        db.flush()

    db.query(AssigneeLock).filter(
        AssigneeLock.assignee_type == assignee_type,
        AssigneeLock.assignee_id == assignee_id,
    ).with_for_update().one()


def _overlapping(start_date: date, end_date: Optional[date]):
    """Filter clause: assignment interval overlaps [start_date, end_date] (end None = unbounded)."""
    clauses = [or_(Assignment.end_date.is_(None), Assignment.end_date >= start_date)]
    if end_date is not None:
        clauses.append(Assignment.start_date <= end_date)
    return and_(*clauses)


def active_for_assignee(
    db: Session,
    assignee_type: str,
    assignee_id: uuid.UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    exclude_id: Optional[uuid.UUID] = None,
) -> List[Assignment]:
    """Active assignments of one assignee, optionally restricted to those overlapping a window."""
    query = db.query(Assignment).filter(
        Assignment.assignee_type == assignee_type,
        Assignment.assignee_id == assignee_id,
        Assignment.status == "active",
    )
    if start_date is not None:
        query = query.filter(_overlapping(start_date, end_date))
    if exclude_id:
        query = query.filter(Assignment.id != exclude_id)
    return query.order_by(Assignment.start_date.asc()).all()


def list_assignments(
    db: Session,
    assignee_type: Optional[str] = None,
    entity_type: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: int = 10,
) -> Dict:
    query = db.query(Assignment)
    if assignee_type:
        query = query.filter(Assignment.assignee_type == assignee_type)
    if entity_type:
        query = query.filter(Assignment.entity_type == entity_type)
    if status:
        query = query.filter(Assignment.status == status)
    if start_date and end_date:
        query = query.filter(_overlapping(start_date, end_date))

    total = query.count()
    items = (
        query.order_by(Assignment.start_date.desc(), Assignment.created_at.desc())
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


def worker_assignments(db: Session, worker_id: uuid.UUID) -> List[Assignment]:
    return (
        db.query(Assignment)
        .filter(Assignment.assignee_type == "worker", Assignment.assignee_id == worker_id)
        .order_by(Assignment.start_date.desc())
        .all()
    )


def site_assignments(db: Session, site_id: uuid.UUID) -> List[Assignment]:
    return (
        db.query(Assignment)
        .filter(
            Assignment.entity_type == "site",
            Assignment.entity_id == site_id,
            Assignment.status == "active",
        )
        .order_by(Assignment.start_date.asc())
        .all()
    )


def worker_timeline(db: Session, worker_id: uuid.UUID, start_date: date, end_date: date) -> List[Assignment]:
    """Assignments of a worker in any status that overlap the window, by start date."""
    return (
        db.query(Assignment)
        .filter(
            Assignment.assignee_type == "worker",
            Assignment.assignee_id == worker_id,
            _overlapping(start_date, end_date),
        )
        .order_by(Assignment.start_date.asc())
        .all()
    )


def site_worker_ids(db: Session, site_id: uuid.UUID, start_date: date, end_date: date) -> List[uuid.UUID]:
    """Distinct workers with an active assignment to the site overlapping the window."""
    rows = (
        db.query(Assignment.assignee_id)
        .filter(
            Assignment.assignee_type == "worker",
            Assignment.entity_type == "site",
            Assignment.entity_id == site_id,
            Assignment.status == "active",
            _overlapping(start_date, end_date),
        )
        .distinct()
        .all()
    )
    return sorted((row[0] for row in rows), key=str)
