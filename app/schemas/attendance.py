"""Attendance schemas for request/response validation."""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import Field

from app.models.attendance import AttendanceStatus
from app.schemas.base import BaseSchema


class AttendanceMarkRecord(BaseSchema):
    """Schema for marking a single attendance record."""

    enrollment_id: str
    date: date
    status: AttendanceStatus
    remarks: Optional[str] = None


class AttendanceMarkBulk(BaseSchema):
    """Schema for bulk marking attendance."""

    activity_id: str
    records: List[AttendanceMarkRecord] = Field(..., min_length=1)


class AttendanceResponse(BaseSchema):
    """Schema for attendance response."""

    id: str
    enrollment_id: str
    activity_id: str
    date: date
    status: AttendanceStatus
    marked_by: str
    remarks: Optional[str]
    created_at: datetime


class AttendanceHistoryResponse(BaseSchema):
    """Attendance history of one enrollment with a per-status summary."""

    enrollment_id: str
    items: List[AttendanceResponse]
    total: int
    summary: Dict[str, int]
    attendance_rate: float  # 0-100
    current_streak: int


class ActivityAttendanceResponse(BaseSchema):
    activity_id: str
    records: List[AttendanceResponse]
