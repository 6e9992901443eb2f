from .models import (  # noqa: F401
    Assignment,
    AssignmentHistory,
    AssigneeLock,
    AttendanceRecord,
    Notification,
    Timesheet,
    Worker,
)
