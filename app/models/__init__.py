from app.models.activity import (
    Activity,
    ActivitySchedule,
    ActivityStatus,
    Venue,
    Weekday,
)
from app.models.attendance import Attendance, AttendanceStatus
from app.models.audit import AuditLog
from app.models.badge import SkillBadge, StudentBadge
from app.models.conflict import ConflictType, EnrollmentConflict
from app.models.enrollment import (
    ALLOWED_TRANSITIONS,
    OPEN_STATUSES,
    PROMOTING_STATUSES,
    Enrollment,
    EnrollmentStatus,
)
from app.models.evaluation import Evaluation, EvaluationStatus
from app.models.student import Student
from app.models.user import Role, User
from app.models.waitlist import WaitlistEntry, WaitlistStatus

__all__ = [
    # User
    "User",
    "Role",
    # Student
    "Student",
    # Activity
    "Activity",
    "ActivitySchedule",
    "ActivityStatus",
    "Venue",
    "Weekday",
    # Enrollment
    "Enrollment",
    "EnrollmentStatus",
    "ALLOWED_TRANSITIONS",
    "OPEN_STATUSES",
    "PROMOTING_STATUSES",
    # Waitlist
    "WaitlistEntry",
    "WaitlistStatus",
    # Conflict / audit
    "EnrollmentConflict",
    "ConflictType",
    "AuditLog",
    # Attendance
    "Attendance",
    "AttendanceStatus",
    # Evaluations / badges
    "Evaluation",
    "EvaluationStatus",
    "SkillBadge",
    "StudentBadge",
]
