"""
Notification hook for scheduling events.
Fired after the triggering transaction commits; failures are logged, never raised.
"""
from typing import Any, Callable, Dict, Optional
import structlog
from sqlalchemy.orm import Session

from ..db import SessionLocal
from ..models.models import Notification
from ..config import settings


logger = structlog.get_logger(__name__)

NotificationHook = Callable[[str, str, str, Dict[str, Any]], None]

_hook: Optional[NotificationHook] = None


def set_notification_hook(hook: Optional[NotificationHook]) -> None:
    """Replace the delivery hook (None restores the database-backed default)."""
    global _hook
    _hook = hook


def create_notification(
    db: Session,
    event_key: str,
    entity_type: str,
    entity_id: str,
    payload_json: Optional[Dict] = None,
) -> Optional[Notification]:
    """
    Create a notification record.
    Only creates if notifications are enabled.

    Args:
        db: Database session
        event_key: Event identifier (assignment.conflict|timesheet.approved|timesheet.rejected)
        entity_type: Type of entity (assignment|timesheet)
        entity_id: Entity ID
        payload_json: Notification payload

    Returns:
        Notification object if created, None if skipped
    """
    if not settings.enable_notifications:
        return None

    notification = Notification(
        event_key=event_key,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id else None,
        payload_json=payload_json,
        status="pending",
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def fire(
    db: Session,
    event_key: str,
    entity_type: str,
    entity_id: Any,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Deliver a notification without letting delivery affect the caller.

    Uses the registered hook when one is set, otherwise stores a
    notification row through a separate session on the same engine.
    """
    if not settings.enable_notifications:
        return
    payload = payload or {}
    try:
        if _hook is not None:
            _hook(event_key, entity_type, str(entity_id), payload)
            return
        own_db = SessionLocal(bind=db.get_bind())
        try:
            create_notification(own_db, event_key, entity_type, str(entity_id), payload)
        finally:
            own_db.close()
    except Exception:
        logger.exception("notification.failed", event_key=event_key, entity_type=entity_type, entity_id=str(entity_id))
