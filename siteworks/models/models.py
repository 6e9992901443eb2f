import uuid
from datetime import datetime, date, time, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Time,
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    JSON,
    UniqueConstraint,
    Text,
    Index,
    event,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# External collaborators (read-only mirrors)

class Worker(Base):
    """Worker record owned by the workforce CRUD; read for hourly rates"""
    __tablename__ = "workers"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class AttendanceRecord(Base):
    """Daily check-in/check-out record owned by the attendance module"""
    __tablename__ = "attendance_records"

    id: Mapped[uuid.UUID] = uuid_pk()
    worker_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    site_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_in: Mapped[Optional[time]] = mapped_column(Time(timezone=False))  # Local time
    check_out: Mapped[Optional[time]] = mapped_column(Time(timezone=False))  # Local time

    __table_args__ = (
        Index('idx_attendance_worker_site_date', 'worker_id', 'site_id', 'work_date'),
    )


# Scheduling

class Assignment(Base):
    """Worker or material scheduled against a site or task over a date range"""
    __tablename__ = "assignments"

    id: Mapped[uuid.UUID] = uuid_pk()
    assignee_type: Mapped[str] = mapped_column(String(20), nullable=False)  # worker|material
    assignee_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)  # site|task
    entity_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)  # Inclusive
    end_date: Mapped[Optional[date]] = mapped_column(Date)  # Inclusive, NULL = ongoing
    hours_per_day: Mapped[Decimal] = mapped_column(Numeric(4, 2), default=Decimal("8"))
    quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))  # Material assignments only
    status: Mapped[str] = mapped_column(String(20), default="active")  # active|completed|cancelled|reassigned
    notes: Mapped[Optional[str]] = mapped_column(Text)
    assigned_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    reassigned_from_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("assignments.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Indexes for conflict checking
    __table_args__ = (
        Index('idx_assignments_assignee_status', 'assignee_type', 'assignee_id', 'status'),
        Index('idx_assignments_entity', 'entity_type', 'entity_id'),
    )


class AssignmentHistory(Base):
    """Append-only trail of assignment lifecycle transitions"""
    __tablename__ = "assignment_history"

    # Integer key so insertion order is recoverable even when timestamps tie
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assignment_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("assignments.id", ondelete="RESTRICT"), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(20), nullable=False)  # created|updated|reassigned|completed|cancelled
    previous_assignee_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    new_assignee_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    previous_status: Mapped[Optional[str]] = mapped_column(String(20))
    new_status: Mapped[Optional[str]] = mapped_column(String(20))
    reason: Mapped[Optional[str]] = mapped_column(Text)
    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    metadata_json: Mapped[Optional[dict]] = mapped_column(JSON)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))  # SHA256 over canonical entry
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


@event.listens_for(AssignmentHistory, "before_update")
def _history_is_insert_only(mapper, connection, target):
    raise RuntimeError(f"assignment_history rows are append-only (id={target.id})")


@event.listens_for(AssignmentHistory, "before_delete")
def _history_is_undeletable(mapper, connection, target):
    raise RuntimeError(f"assignment_history rows cannot be deleted (id={target.id})")


class AssigneeLock(Base):
    """One row per assignee; locked FOR UPDATE to serialize writes per assignee"""
    __tablename__ = "assignee_locks"

    assignee_type: Mapped[str] = mapped_column(String(20), primary_key=True)
    assignee_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)


# Timesheets & Payroll

class Timesheet(Base):
    """Weekly payroll record for one worker on one site"""
    __tablename__ = "timesheets"

    id: Mapped[uuid.UUID] = uuid_pk()
    worker_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    site_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    week_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    daily_breakdown: Mapped[list] = mapped_column(JSON, default=list)  # [{date, check_in, check_out, total_hours, regular_hours, overtime_hours}]
    regular_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"))
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"))
    total_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("0"))
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))  # Snapshot at generation
    regular_pay: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    overtime_pay: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    total_pay: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), default="draft")  # draft|submitted|approved|rejected
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint('worker_id', 'site_id', 'week_start_date', name='uq_timesheet_worker_site_week'),
        Index('idx_timesheets_site_week', 'site_id', 'week_start_date'),
    )


class Notification(Base):
    """Notification records produced by the scheduling engine"""
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = uuid_pk()
    event_key: Mapped[str] = mapped_column(String(100), nullable=False)  # assignment.conflict|timesheet.approved|timesheet.rejected
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)  # assignment|timesheet
    entity_id: Mapped[Optional[str]] = mapped_column(String(64))
    payload_json: Mapped[Optional[dict]] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending|sent|failed
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index('idx_notifications_event_created', 'event_key', 'created_at'),
    )
