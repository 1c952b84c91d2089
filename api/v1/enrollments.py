"""Enrollment API endpoints: registration, withdrawal, status changes and waitlist."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_client_info, get_current_admin, get_current_staff, get_current_user
from app.models.activity import Activity
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.student import Student
from app.models.user import Role, User
from app.models.waitlist import WaitlistEntry
from app.schemas.enrollment import (
    CancellationResponse,
    ConflictResolve,
    ConflictResponse,
    EnrollmentCancel,
    EnrollmentListResponse,
    EnrollmentOverride,
    EnrollmentRegister,
    EnrollmentResponse,
    EnrollmentStatsResponse,
    EnrollmentStatusUpdate,
    PerformanceRemarkUpdate,
    RegistrationResponse,
    StatusUpdateResponse,
)
from app.schemas.waitlist import (
    PromotionResponse,
    WaitlistEntryResponse,
    WaitlistListResponse,
    WaitlistPriorityUpdate,
)
from app.services.audit_service import AuditService
from app.services.enrollment_service import EnrollmentService, RegistrationResult
from app.services.waitlist_service import WaitlistService
from core.db import get_db
from core.exceptions.base import ForbiddenException, NotFoundException
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/enrollments", tags=["Enrollments"])


async def enrollment_to_response(
    enrollment: Enrollment,
    db_session: AsyncSession,
) -> EnrollmentResponse:
    """Convert Enrollment model to response with student and activity names."""
    student = await Student.get_by_id(db_session, enrollment.student_id)
    activity = await Activity.get_by_id(db_session, enrollment.activity_id)

    response = EnrollmentResponse.model_validate(enrollment)
    response.student_name = student.full_name if student else None
    response.activity_name = activity.name if activity else None
    return response


async def waitlist_entry_to_response(
    entry: WaitlistEntry,
    db_session: AsyncSession,
    rank: Optional[int] = None,
) -> WaitlistEntryResponse:
    student = await Student.get_by_id(db_session, entry.student_id)
    response = WaitlistEntryResponse.model_validate(entry)
    response.rank = rank
    response.student_name = student.full_name if student else None
    return response


async def registration_to_response(
    result: RegistrationResult, db_session: AsyncSession
) -> RegistrationResponse:
    if result.enrolled:
        return RegistrationResponse(
            result="enrolled",
            message="Successfully enrolled",
            enrollment=await enrollment_to_response(result.enrollment, db_session),
            warnings=result.warnings,
        )
    return RegistrationResponse(
        result="waitlisted",
        message=f"Activity is full. Added to waitlist at position {result.position}",
        waitlist_entry_id=result.waitlist_entry.id,
        position=result.position,
        warnings=result.warnings,
    )


def _service(db_session: AsyncSession, request: Request) -> EnrollmentService:
    return EnrollmentService(db_session, **get_client_info(request))


# ============== Registration ==============


@router.post("/register", response_model=RegistrationResponse, status_code=201)
async def register(
    data: EnrollmentRegister,
    request: Request,
    current_user: User = Depends(get_current_user),
    db_session: AsyncSession = Depends(get_db),
) -> RegistrationResponse:
    """
    Register a student for an activity.

    Returns ``enrolled`` with the new enrollment, or ``waitlisted`` with the
    queue position when the activity is full.
    """
    logger.info(
        f"Registration request by {current_user.id}: student {data.student_id} -> activity {data.activity_id}"
    )
    result = await _service(db_session, request).register_student(
        student_id=data.student_id,
        activity_id=data.activity_id,
        actor=current_user,
        grade_level=data.grade_level,
        notes=data.notes,
    )
    return await registration_to_response(result, db_session)


@router.post("/override", response_model=RegistrationResponse, status_code=201)
async def register_with_override(
    data: EnrollmentOverride,
    request: Request,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> RegistrationResponse:
    """Admin registration that can bypass the registration window and capacity."""
    logger.info(
        f"Override registration by admin {current_user.id}: "
        f"student {data.student_id} -> activity {data.activity_id} (override={data.override_quota})"
    )
    result = await _service(db_session, request).register_student(
        student_id=data.student_id,
        activity_id=data.activity_id,
        actor=current_user,
        grade_level=data.grade_level,
        notes=data.notes,
        override_quota=data.override_quota,
    )
    return await registration_to_response(result, db_session)


# ============== Admin Endpoints ==============


@router.get("/", response_model=EnrollmentListResponse)
async def list_enrollments(
    activity_id: Optional[str] = None,
    student_id: Optional[str] = None,
    status: Optional[EnrollmentStatus] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> EnrollmentListResponse:
    """List enrollments with filters (admin only)."""
    enrollments, total = await Enrollment.get_filtered(
        db_session,
        activity_id=activity_id,
        student_id=student_id,
        status=status,
        skip=skip,
        limit=limit,
    )
    return EnrollmentListResponse(
        items=[await enrollment_to_response(e, db_session) for e in enrollments],
        total=total,
    )


@router.get("/stats", response_model=EnrollmentStatsResponse)
async def enrollment_stats(
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> EnrollmentStatsResponse:
    """System-wide enrollment statistics (admin only)."""
    stats = await EnrollmentService(db_session).get_enrollment_stats()
    return EnrollmentStatsResponse(**stats)


# ============== Waitlist Endpoints ==============


@router.get("/waitlist/activity/{activity_id}", response_model=WaitlistListResponse)
async def get_activity_waitlist(
    activity_id: str,
    current_user: User = Depends(get_current_staff),
    db_session: AsyncSession = Depends(get_db),
) -> WaitlistListResponse:
    """Waiting entries in promotion order (coach/admin)."""
    activity, ranked = await WaitlistService(db_session).list_waiting(activity_id)
    return WaitlistListResponse(
        activity_id=activity.id,
        activity_name=activity.name,
        total_waiting=len(ranked),
        entries=[
            await waitlist_entry_to_response(entry, db_session, rank) for entry, rank in ranked
        ],
    )


@router.post("/waitlist/activity/{activity_id}/promote", response_model=PromotionResponse)
async def promote_from_waitlist(
    activity_id: str,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> PromotionResponse:
    """Promote the next eligible waiting student into a free seat (admin only)."""
    logger.info(f"Manual waitlist promotion for activity {activity_id} by {current_user.id}")
    outcome = await WaitlistService(db_session).promote_now(activity_id, current_user)
    return PromotionResponse(
        activity_id=activity_id,
        promoted=outcome.promoted,
        promoted_student_id=outcome.student_id,
        enrollment_id=outcome.enrollment_id,
    )


@router.post("/waitlist/{entry_id}/cancel", response_model=WaitlistEntryResponse)
async def cancel_waitlist_entry(
    entry_id: str,
    current_user: User = Depends(get_current_user),
    db_session: AsyncSession = Depends(get_db),
) -> WaitlistEntryResponse:
    """Leave the waitlist."""
    entry = await WaitlistService(db_session).cancel_entry(entry_id, current_user)
    logger.info(f"Waitlist entry {entry_id} cancelled by {current_user.id}")
    return await waitlist_entry_to_response(entry, db_session)


@router.patch("/waitlist/{entry_id}/priority", response_model=WaitlistEntryResponse)
async def set_waitlist_priority(
    entry_id: str,
    data: WaitlistPriorityUpdate,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> WaitlistEntryResponse:
    """Change a waiting entry's priority (admin only). Higher is promoted first."""
    service = WaitlistService(db_session)
    entry = await service.set_priority(entry_id, data.priority, current_user)
    return await waitlist_entry_to_response(entry, db_session, await service.get_rank(entry))


# ============== Conflict Endpoints ==============


@router.post("/conflicts/{conflict_id}/resolve", response_model=ConflictResponse)
async def resolve_conflict(
    conflict_id: str,
    data: ConflictResolve,
    request: Request,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> ConflictResponse:
    """Mark a conflict diagnostic as reviewed (admin only)."""
    conflict = await AuditService(db_session, **get_client_info(request)).resolve_conflict(
        conflict_id, data.resolution_notes, current_user.id
    )
    return ConflictResponse.model_validate(conflict)


# ============== Single Enrollment Endpoints ==============


@router.get("/{enrollment_id}", response_model=EnrollmentResponse)
async def get_enrollment(
    enrollment_id: str,
    current_user: User = Depends(get_current_user),
    db_session: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    """Get enrollment by ID (student's account, the activity's coach or admin)."""
    enrollment = await Enrollment.get_by_id(db_session, enrollment_id)
    if not enrollment:
        raise NotFoundException(message="Enrollment not found")

    if current_user.role == Role.COACH:
        activity = await Activity.get_by_id(db_session, enrollment.activity_id)
        EnrollmentService.ensure_can_manage_activity(current_user, activity)
    elif current_user.role != Role.ADMIN:
        student = await Student.get_by_id(db_session, enrollment.student_id)
        if not student or student.user_id != current_user.id:
            raise ForbiddenException(message="You don't have access to this enrollment")

    return await enrollment_to_response(enrollment, db_session)


@router.post("/{enrollment_id}/cancel", response_model=CancellationResponse)
async def cancel_enrollment(
    enrollment_id: str,
    request: Request,
    data: Optional[EnrollmentCancel] = None,
    current_user: User = Depends(get_current_user),
    db_session: AsyncSession = Depends(get_db),
) -> CancellationResponse:
    """
    Withdraw from an activity.

    Frees the seat and promotes the next eligible waiting student in the
    same transaction.
    """
    logger.info(f"Cancel enrollment request: {enrollment_id} by user: {current_user.id}")
    result = await _service(db_session, request).cancel_enrollment(
        enrollment_id=enrollment_id,
        actor=current_user,
        student_id=data.student_id if data else None,
        reason=data.reason if data else None,
    )
    return CancellationResponse(
        enrollment=await enrollment_to_response(result.enrollment, db_session),
        promoted_student_id=result.promoted_student_id,
    )


@router.patch("/{enrollment_id}/status", response_model=StatusUpdateResponse)
async def update_enrollment_status(
    enrollment_id: str,
    data: EnrollmentStatusUpdate,
    request: Request,
    current_user: User = Depends(get_current_staff),
    db_session: AsyncSession = Depends(get_db),
) -> StatusUpdateResponse:
    """Approve, reject, withdraw or complete an enrollment (activity coach or admin)."""
    logger.info(
        f"Status update request: {enrollment_id} -> {data.status} by user: {current_user.id}"
    )
    result = await _service(db_session, request).update_enrollment_status(
        enrollment_id, data.status, current_user
    )
    return StatusUpdateResponse(
        enrollment=await enrollment_to_response(result.enrollment, db_session),
        changed=result.changed,
        promoted_student_id=result.promoted_student_id,
    )


@router.patch("/{enrollment_id}/remark", response_model=EnrollmentResponse)
async def add_performance_remark(
    enrollment_id: str,
    data: PerformanceRemarkUpdate,
    request: Request,
    current_user: User = Depends(get_current_staff),
    db_session: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    """Record a coach's performance remark."""
    enrollment = await _service(db_session, request).add_performance_remark(
        enrollment_id, data.performance_remark, current_user
    )
    return await enrollment_to_response(enrollment, db_session)


@router.delete("/{enrollment_id}")
async def delete_enrollment(
    enrollment_id: str,
    request: Request,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> dict:
    """Permanently delete an enrollment (admin only)."""
    logger.info(f"Delete enrollment request: {enrollment_id} by admin: {current_user.id}")
    promoted_student_id = await _service(db_session, request).delete_enrollment(
        enrollment_id, current_user
    )
    return {
        "message": "Enrollment deleted successfully",
        "promoted_student_id": promoted_student_id,
    }
