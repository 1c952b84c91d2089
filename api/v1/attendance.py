"""Attendance API endpoints for tracking student attendance."""

from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_staff, get_current_user
from app.models.activity import Activity
from app.models.attendance import Attendance, AttendanceStatus
from app.models.enrollment import Enrollment
from app.models.student import Student
from app.models.user import Role, User
from app.schemas.attendance import (
    ActivityAttendanceResponse,
    AttendanceHistoryResponse,
    AttendanceMarkBulk,
    AttendanceResponse,
)
from app.services.enrollment_service import EnrollmentService
from core.db import get_db
from core.exceptions.base import BadRequestException, ForbiddenException, NotFoundException
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/attendance", tags=["Attendance"])


@router.post("/mark", status_code=status.HTTP_201_CREATED)
async def mark_attendance(
    data: AttendanceMarkBulk,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_staff),
) -> dict:
    """Mark attendance for multiple students. Coach of the activity or admin."""
    activity = await Activity.get_by_id(db_session, data.activity_id)
    if not activity:
        raise NotFoundException(message="Activity not found")
    EnrollmentService.ensure_can_manage_activity(current_user, activity)

    for record in data.records:
        enrollment = await Enrollment.get_by_id(db_session, record.enrollment_id)
        if not enrollment or enrollment.activity_id != data.activity_id:
            raise BadRequestException(
                message=f"Enrollment {record.enrollment_id} does not belong to this activity"
            )

    logger.info(
        f"Marking attendance for {len(data.records)} students "
        f"in activity {data.activity_id}"
    )

    await Attendance.mark_bulk(
        db_session,
        activity_id=data.activity_id,
        attendance_data=[item.model_dump() for item in data.records],
        marked_by=current_user.id,
    )

    return {"message": "Attendance marked successfully", "count": len(data.records)}


@router.get(
    "/enrollment/{enrollment_id}/history", response_model=AttendanceHistoryResponse
)
async def get_attendance_history(
    enrollment_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> AttendanceHistoryResponse:
    """Get attendance history for enrollment with rate and current streak."""
    enrollment = await Enrollment.get_by_id(db_session, enrollment_id)
    if not enrollment:
        raise NotFoundException(message="Enrollment not found")

    # Check access
    if current_user.role not in [Role.COACH, Role.ADMIN]:
        student = await Student.get_by_id(db_session, enrollment.student_id)
        if not student or student.user_id != current_user.id:
            raise ForbiddenException(message="Not authorized")

    attendances = await Attendance.get_by_enrollment(db_session, enrollment_id, skip, limit)
    total = await Attendance.count_by_enrollment(db_session, enrollment_id)
    summary = await Attendance.summarize(db_session, enrollment_id)

    attended = summary[AttendanceStatus.PRESENT.value] + summary[AttendanceStatus.LATE.value]
    attendance_rate = (attended / total) * 100 if total else 0.0

    return AttendanceHistoryResponse(
        enrollment_id=enrollment_id,
        items=[AttendanceResponse.model_validate(a) for a in attendances],
        total=total,
        summary=summary,
        attendance_rate=round(attendance_rate, 2),
        current_streak=await Attendance.get_streak(db_session, enrollment_id),
    )


@router.get("/activity/{activity_id}", response_model=ActivityAttendanceResponse)
async def get_activity_attendance(
    activity_id: str,
    date: Optional[date_type] = Query(None),
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_staff),
) -> ActivityAttendanceResponse:
    """Get attendance for an activity, optionally filtered by date. Coach only."""
    if not await Activity.get_by_id(db_session, activity_id):
        raise NotFoundException(message="Activity not found")

    attendances = await Attendance.get_by_activity(db_session, activity_id, date)
    return ActivityAttendanceResponse(
        activity_id=activity_id,
        records=[AttendanceResponse.model_validate(a) for a in attendances],
    )
