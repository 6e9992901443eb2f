"""
Assignment history service.
Append-only trail of lifecycle transitions with integrity hashing.
"""
import hashlib
import json
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, List
from sqlalchemy.orm import Session

from ..models.models import Assignment, AssignmentHistory
from ..config import settings


def _canonical_hash(data: Dict, secret: str) -> str:
    # Remove None values and sort keys for consistency
    canonical_data = {k: v for k, v in data.items() if v is not None}
    canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
    hash_input = f"{canonical_json}:{secret}"
    return hashlib.sha256(hash_input.encode()).hexdigest()


def _entry_payload(entry: AssignmentHistory) -> Dict:
    created_at = entry.created_at
    if created_at is not None and created_at.tzinfo is not None:
        created_at = created_at.astimezone(timezone.utc).replace(tzinfo=None)
    return {
        "assignment_id": str(entry.assignment_id),
        "action": entry.action,
        "previous_assignee_id": str(entry.previous_assignee_id) if entry.previous_assignee_id else None,
        "new_assignee_id": str(entry.new_assignee_id) if entry.new_assignee_id else None,
        "previous_status": entry.previous_status,
        "new_status": entry.new_status,
        "reason": entry.reason,
        "changed_by": str(entry.changed_by) if entry.changed_by else None,
        "metadata": entry.metadata_json,
        "created_at": created_at.isoformat() if created_at else None,
    }


def append_history(
    db: Session,
    assignment: Assignment,
    action: str,
    previous_status: Optional[str] = None,
    previous_assignee_id: Optional[uuid.UUID] = None,
    new_assignee_id: Optional[uuid.UUID] = None,
    reason: Optional[str] = None,
    changed_by: Optional[uuid.UUID] = None,
    metadata: Optional[Dict] = None,
    integrity_secret: Optional[str] = None,
) -> AssignmentHistory:
    """
    Append a history entry for an assignment transition.

    The entry is flushed, not committed: it belongs to the caller's unit of
    work and disappears with it on rollback.

    Args:
        db: Database session
        assignment: Assignment the transition applies to
        action: created|updated|reassigned|completed|cancelled
        previous_status: Status before the transition
        previous_assignee_id: Assignee before a reassignment
        new_assignee_id: Assignee after a reassignment
        reason: Free-text justification
        changed_by: Actor ID
        metadata: Extra context (changed fields, origin ids)
        integrity_secret: Secret for integrity hash (defaults to settings)

    Returns:
        Created AssignmentHistory object
    """
    if integrity_secret is None:
        integrity_secret = settings.history_integrity_secret

    entry = AssignmentHistory(
        assignment_id=assignment.id,
        action=action,
        previous_assignee_id=previous_assignee_id,
        new_assignee_id=new_assignee_id,
        previous_status=previous_status,
        new_status=assignment.status,
        reason=reason,
        changed_by=changed_by,
        metadata_json=metadata,
        created_at=datetime.now(timezone.utc),
    )
    entry.integrity_hash = _canonical_hash(_entry_payload(entry), integrity_secret)

    db.add(entry)
    db.flush()
    return entry


def get_history(db: Session, assignment_id: uuid.UUID) -> List[AssignmentHistory]:
    """All history entries of an assignment, oldest first."""
    return (
        db.query(AssignmentHistory)
        .filter(AssignmentHistory.assignment_id == assignment_id)
        .order_by(AssignmentHistory.created_at.asc(), AssignmentHistory.id.asc())
        .all()
    )


def verify_entry(entry: AssignmentHistory, integrity_secret: Optional[str] = None) -> bool:
    """Recompute an entry's integrity hash and compare it with the stored one."""
    if integrity_secret is None:
        integrity_secret = settings.history_integrity_secret
    return entry.integrity_hash == _canonical_hash(_entry_payload(entry), integrity_secret)


def compute_diff(before: Dict, after: Dict) -> Dict:
    """
    Compute a diff between two dictionaries.

    Returns:
        Dict with before/after values for changed fields
    """
    diff = {}
    all_keys = set(before.keys()) | set(after.keys())

    for key in all_keys:
        before_val = before.get(key)
        after_val = after.get(key)

        if before_val != after_val:
            diff[key] = {
                "before": before_val,
                "after": after_val,
            }

    return diff
