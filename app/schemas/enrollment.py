"""Enrollment-related schemas."""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import Field

from app.models.conflict import ConflictType
from app.models.enrollment import EnrollmentStatus
from app.schemas.base import BaseSchema


class EnrollmentRegister(BaseSchema):
    """Register a student for an activity."""

    student_id: str
    activity_id: str
    grade_level: Optional[int] = Field(None, ge=0, le=12)
    notes: Optional[str] = Field(None, max_length=1000)


class EnrollmentOverride(EnrollmentRegister):
    """Admin registration that may bypass the registration window and capacity."""

    override_quota: bool = True


class EnrollmentResponse(BaseSchema):
    """Enrollment response."""

    id: str
    student_id: str
    activity_id: str
    enrolled_by: Optional[str] = None
    status: EnrollmentStatus
    grade_level: Optional[int] = None
    enrolled_at: datetime
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    notes: Optional[str] = None
    performance_remark: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    # Related data
    student_name: Optional[str] = None
    activity_name: Optional[str] = None


class EnrollmentListResponse(BaseSchema):
    """List of enrollments."""

    items: list[EnrollmentResponse]
    total: int


class RegistrationResponse(BaseSchema):
    """Outcome of a registration: a seat or a waitlist spot."""

    result: Literal["enrolled", "waitlisted"]
    message: str
    enrollment: Optional[EnrollmentResponse] = None
    waitlist_entry_id: Optional[str] = None
    position: Optional[int] = None
    warnings: List[str] = []


class EnrollmentCancel(BaseSchema):
    """Cancel enrollment request."""

    student_id: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=1000)


class CancellationResponse(BaseSchema):
    enrollment: EnrollmentResponse
    promoted_student_id: Optional[str] = None


class EnrollmentStatusUpdate(BaseSchema):
    """Coach or admin status change. Validated against the transition table in the service."""

    status: str


class StatusUpdateResponse(BaseSchema):
    enrollment: EnrollmentResponse
    changed: bool
    promoted_student_id: Optional[str] = None


class PerformanceRemarkUpdate(BaseSchema):
    performance_remark: str = Field(..., min_length=1, max_length=2000)


class EnrollmentStatsResponse(BaseSchema):
    """Enrollment counts across the system."""

    total_enrollments: int
    by_status: Dict[str, int]
    waiting_entries: int
    unresolved_conflicts: int
    activities_full: int


class ConflictResponse(BaseSchema):
    """Diagnostic conflict record."""

    id: str
    student_id: str
    attempted_activity_id: str
    conflicting_activity_id: Optional[str] = None
    conflicting_schedule_id: Optional[str] = None
    conflict_type: ConflictType
    attempted_at: datetime
    resolved: bool
    resolution_notes: Optional[str] = None


class ConflictResolve(BaseSchema):
    resolution_notes: Optional[str] = Field(None, max_length=1000)
