"""
Pytest fixtures for the scheduling engine test suite.

Provides:
- An in-memory SQLite database per test (StaticPool, tables created fresh)
- A recording notification hook
- A FastAPI TestClient bound to the test session
- Builders for worker, attendance and assignment rows
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("RATE_LIMIT", "100000/minute")

import uuid
from datetime import date, time
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from siteworks.db import Base, get_db
from siteworks.models.models import AttendanceRecord, Worker
from siteworks.services import assignments
from siteworks.services.notifications import set_notification_hook


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def notifications():
    """Record every fired notification instead of storing it."""
    sent = []
    set_notification_hook(
        lambda event_key, entity_type, entity_id, payload: sent.append(
            {"event_key": event_key, "entity_type": entity_type, "entity_id": entity_id, "payload": payload}
        )
    )
    yield sent
    set_notification_hook(None)


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from siteworks.main import app

    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_worker(db):
    def _make(rate="20.00", name="Test Worker"):
        worker = Worker(name=name, hourly_rate=Decimal(rate), is_active=True)
        db.add(worker)
        db.commit()
        db.refresh(worker)
        return worker
    return _make


@pytest.fixture
def add_attendance(db):
    def _add(worker_id, site_id, work_date: date, check_in: time, check_out: time = None):
        record = AttendanceRecord(
            worker_id=worker_id,
            site_id=site_id,
            work_date=work_date,
            check_in=check_in,
            check_out=check_out,
        )
        db.add(record)
        db.commit()
        return record
    return _add


@pytest.fixture
def assign(db):
    """Create an assignment with sensible defaults."""
    def _assign(assignee_id=None, entity_id=None, start_date=date(2025, 1, 1), end_date=None, **kwargs):
        kwargs.setdefault("assignee_type", "worker")
        kwargs.setdefault("entity_type", "site")
        return assignments.create(
            db,
            assignee_id=assignee_id or uuid.uuid4(),
            entity_id=entity_id or uuid.uuid4(),
            start_date=start_date,
            end_date=end_date,
            **kwargs,
        )
    return _assign


@pytest.fixture
def site_id():
    return uuid.uuid4()
