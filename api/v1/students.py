from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_admin, get_current_user
from api.v1.enrollments import enrollment_to_response, waitlist_entry_to_response
from app.models.conflict import EnrollmentConflict
from app.models.student import Student
from app.models.user import Role, User
from app.models.waitlist import WaitlistEntry, WaitlistStatus
from app.schemas.enrollment import ConflictResponse, EnrollmentListResponse
from app.schemas.student import StudentCreate, StudentResponse
from app.schemas.waitlist import WaitlistEntryResponse
from app.services.enrollment_service import EnrollmentService
from app.services.waitlist_service import WaitlistService
from core.db import get_db
from core.exceptions.base import BadRequestException, ForbiddenException, NotFoundException
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/students", tags=["Students"])


async def get_visible_student(
    student_id: str, current_user: User, db_session: AsyncSession
) -> Student:
    """Load a student the current user may see: staff, or the owning account."""
    student = await Student.get_by_id(db_session, student_id)
    if not student:
        raise NotFoundException(message="Student not found")

    if current_user.role not in [Role.ADMIN, Role.COACH] and student.user_id != current_user.id:
        raise ForbiddenException(message="You don't have access to this student")
    return student


@router.post("/", response_model=StudentResponse, status_code=201)
async def create_student(
    data: StudentCreate,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> StudentResponse:
    """Create a student record (admin only)."""
    if data.user_id and not await User.get_by_id(db_session, data.user_id):
        raise BadRequestException(message="Linked user account does not exist")

    student = Student(**data.model_dump())
    db_session.add(student)
    await db_session.commit()
    await db_session.refresh(student)

    logger.info(f"Student created: {student.id} by admin {current_user.id}")
    return StudentResponse.model_validate(student)


@router.get("/me", response_model=List[StudentResponse])
async def get_my_students(
    current_user: User = Depends(get_current_user),
    db_session: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    """Students the current account can register."""
    students = await Student.get_by_user_id(db_session, current_user.id)
    return [StudentResponse.model_validate(s) for s in students]


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db_session: AsyncSession = Depends(get_db),
) -> StudentResponse:
    student = await get_visible_student(student_id, current_user, db_session)
    return StudentResponse.model_validate(student)


@router.get("/{student_id}/enrollments", response_model=EnrollmentListResponse)
async def get_student_enrollments(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db_session: AsyncSession = Depends(get_db),
) -> EnrollmentListResponse:
    """Full enrollment history of a student, newest first."""
    await get_visible_student(student_id, current_user, db_session)
    enrollments = await EnrollmentService(db_session).get_student_enrollments(student_id)
    return EnrollmentListResponse(
        items=[await enrollment_to_response(e, db_session) for e in enrollments],
        total=len(enrollments),
    )


@router.get("/{student_id}/conflicts", response_model=List[ConflictResponse])
async def get_student_conflicts(
    student_id: str,
    unresolved_only: bool = False,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> List[ConflictResponse]:
    """Conflict diagnostics recorded for a student (admin only)."""
    if not await Student.get_by_id(db_session, student_id):
        raise NotFoundException(message="Student not found")

    conflicts = await EnrollmentConflict.get_by_student_id(
        db_session, student_id, unresolved_only=unresolved_only
    )
    return [ConflictResponse.model_validate(c) for c in conflicts]


@router.get("/{student_id}/waitlist", response_model=List[WaitlistEntryResponse])
async def get_student_waitlist(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db_session: AsyncSession = Depends(get_db),
) -> List[WaitlistEntryResponse]:
    """Waitlist entries of a student; waiting entries carry their current rank."""
    await get_visible_student(student_id, current_user, db_session)

    service = WaitlistService(db_session)
    entries = await WaitlistEntry.get_by_student_id(db_session, student_id)
    response = []
    for entry in entries:
        rank = await service.get_rank(entry) if entry.status == WaitlistStatus.WAITING else None
        response.append(await waitlist_entry_to_response(entry, db_session, rank))
    return response
