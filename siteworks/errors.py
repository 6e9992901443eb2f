"""
Error kinds raised by the scheduling and timesheet services.
Each error carries a machine-readable kind plus a human-readable message.
"""
from typing import Any, Dict, Optional


class SchedulingError(Exception):
    kind = "scheduling_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "detail": self.message, **self.details}


class ValidationError(SchedulingError):
    """Malformed input: bad date ranges, out-of-bounds hours, wrong week start."""
    kind = "validation_error"
    status_code = 400


class InvalidStateError(SchedulingError):
    """Operation attempted against a record in the wrong lifecycle state."""
    kind = "invalid_state"
    status_code = 409


class NotFoundError(SchedulingError):
    kind = "not_found"
    status_code = 404


class ConflictDetected(SchedulingError):
    """Raised only in strict mode, when a write would double-book an assignee."""
    kind = "conflict_detected"
    status_code = 409

    def __init__(self, message: str, conflicts: list):
        super().__init__(message, details={"conflicts": conflicts})
        self.conflicts = conflicts
