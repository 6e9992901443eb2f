"""
Read-only collaborators consumed by the timesheet service:
worker rates, attendance records and the site roster.
"""
import uuid
from datetime import date
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from ..errors import NotFoundError
from ..models.models import AttendanceRecord, Worker
from .assignment_store import site_worker_ids
from .attendance_aggregator import AttendanceEntry


class WorkerDirectory:
    def hourly_rate(self, db: Session, worker_id: uuid.UUID) -> Decimal:
        worker = db.query(Worker).filter(Worker.id == worker_id).first()
        if not worker:
            raise NotFoundError(f"Worker {worker_id} not found")
        return Decimal(worker.hourly_rate or 0)


class AttendanceSource:
    def fetch(
        self,
        db: Session,
        worker_id: uuid.UUID,
        site_id: uuid.UUID,
        start_date: date,
        end_date: date,
    ) -> List[AttendanceEntry]:
        rows = (
            db.query(AttendanceRecord)
            .filter(
                AttendanceRecord.worker_id == worker_id,
                AttendanceRecord.site_id == site_id,
                AttendanceRecord.work_date >= start_date,
                AttendanceRecord.work_date <= end_date,
            )
            .order_by(AttendanceRecord.work_date.asc())
            .all()
        )
        return [AttendanceEntry(date=r.work_date, check_in=r.check_in, check_out=r.check_out) for r in rows]


class SiteRoster:
    """Workers with an active site assignment overlapping the requested window."""

    def active_worker_ids(self, db: Session, site_id: uuid.UUID, start_date: date, end_date: date) -> List[uuid.UUID]:
        return site_worker_ids(db, site_id, start_date, end_date)
