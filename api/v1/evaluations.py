from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_client_info, get_current_admin, get_current_staff, get_current_user
from app.models.activity import Activity
from app.models.badge import SkillBadge
from app.models.evaluation import Evaluation
from app.models.user import User
from app.schemas.evaluation import (
    BadgeAward,
    EvaluationCreate,
    EvaluationListResponse,
    EvaluationResponse,
    EvaluationUpdate,
    SkillBadgeCreate,
    SkillBadgeResponse,
    StudentBadgeListResponse,
    StudentBadgeResponse,
)
from app.services.evaluation_service import EvaluationService
from core.db import get_db
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/evaluations", tags=["Evaluations"])
badge_router = APIRouter(prefix="/badges", tags=["Badges"])


def _service(db_session: AsyncSession, request: Request) -> EvaluationService:
    return EvaluationService(db_session, **get_client_info(request))


def evaluation_to_response(
    evaluation: Evaluation, activity: Optional[Activity] = None
) -> EvaluationResponse:
    response = EvaluationResponse.model_validate(evaluation)
    response.activity_name = activity.name if activity else None
    return response


@router.post("/", response_model=EvaluationResponse, status_code=201)
async def create_evaluation(
    data: EvaluationCreate,
    request: Request,
    current_user: User = Depends(get_current_staff),
    db_session: AsyncSession = Depends(get_db),
) -> EvaluationResponse:
    """
    Draft an evaluation for an enrollment.

    Coach of the activity or admin. The draft stays hidden from the
    student's account until it is published.
    """
    evaluation = await _service(db_session, request).create_evaluation(
        data.model_dump(), current_user
    )
    return evaluation_to_response(evaluation)


@router.get("/student/{student_id}", response_model=EvaluationListResponse)
async def get_student_evaluations(
    student_id: str,
    activity_id: Optional[str] = None,
    term: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db_session: AsyncSession = Depends(get_db),
) -> EvaluationListResponse:
    """A student's evaluations, newest first, filtered by what the caller may see."""
    rows = await EvaluationService(db_session).list_student_evaluations(
        student_id, current_user, activity_id=activity_id, term=term
    )
    return EvaluationListResponse(
        items=[evaluation_to_response(e, a) for e, a in rows],
        total=len(rows),
    )


@router.get("/{evaluation_id}", response_model=EvaluationResponse)
async def get_evaluation(
    evaluation_id: str,
    current_user: User = Depends(get_current_user),
    db_session: AsyncSession = Depends(get_db),
) -> EvaluationResponse:
    evaluation = await EvaluationService(db_session).get_evaluation(evaluation_id, current_user)
    activity = await Activity.get_by_id(db_session, evaluation.activity_id)
    return evaluation_to_response(evaluation, activity)


@router.patch("/{evaluation_id}", response_model=EvaluationResponse)
async def update_evaluation(
    evaluation_id: str,
    data: EvaluationUpdate,
    request: Request,
    current_user: User = Depends(get_current_staff),
    db_session: AsyncSession = Depends(get_db),
) -> EvaluationResponse:
    """Edit a draft evaluation."""
    evaluation = await _service(db_session, request).update_evaluation(
        evaluation_id, data.model_dump(exclude_unset=True), current_user
    )
    return evaluation_to_response(evaluation)


@router.put("/{evaluation_id}/publish", response_model=EvaluationResponse)
async def publish_evaluation(
    evaluation_id: str,
    request: Request,
    current_user: User = Depends(get_current_staff),
    db_session: AsyncSession = Depends(get_db),
) -> EvaluationResponse:
    """Publish an evaluation so the student's account can read it."""
    evaluation = await _service(db_session, request).publish_evaluation(
        evaluation_id, current_user
    )
    return evaluation_to_response(evaluation)


@router.put("/{evaluation_id}/archive", response_model=EvaluationResponse)
async def archive_evaluation(
    evaluation_id: str,
    request: Request,
    current_user: User = Depends(get_current_staff),
    db_session: AsyncSession = Depends(get_db),
) -> EvaluationResponse:
    evaluation = await _service(db_session, request).archive_evaluation(
        evaluation_id, current_user
    )
    return evaluation_to_response(evaluation)


# ============== Badges ==============


@badge_router.get("/", response_model=List[SkillBadgeResponse])
async def list_badges(
    category: Optional[str] = None,
    db_session: AsyncSession = Depends(get_db),
) -> List[SkillBadgeResponse]:
    """List all available badges (public)."""
    badges = await SkillBadge.get_all_active(db_session, category=category)
    return [SkillBadgeResponse.model_validate(b) for b in badges]


@badge_router.post("/", response_model=SkillBadgeResponse, status_code=201)
async def create_badge(
    data: SkillBadgeCreate,
    request: Request,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> SkillBadgeResponse:
    """Define a new badge (admin only)."""
    badge = await _service(db_session, request).create_badge(data.model_dump(), current_user)
    return SkillBadgeResponse.model_validate(badge)


@badge_router.post("/award", response_model=StudentBadgeResponse, status_code=201)
async def award_badge(
    data: BadgeAward,
    request: Request,
    current_user: User = Depends(get_current_staff),
    db_session: AsyncSession = Depends(get_db),
) -> StudentBadgeResponse:
    """Award a badge to a student. Coach of the enrollment's activity, or admin."""
    award = await _service(db_session, request).award_badge(
        student_id=data.student_id,
        badge_id=data.badge_id,
        actor=current_user,
        enrollment_id=data.enrollment_id,
        notes=data.notes,
    )
    return StudentBadgeResponse.model_validate(award)


@badge_router.get("/student/{student_id}", response_model=StudentBadgeListResponse)
async def get_student_badges(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db_session: AsyncSession = Depends(get_db),
) -> StudentBadgeListResponse:
    """Badges a student has earned, with their total points."""
    awards, total_points = await EvaluationService(db_session).get_student_badges(
        student_id, current_user
    )
    return StudentBadgeListResponse(
        student_id=student_id,
        items=[StudentBadgeResponse.model_validate(a) for a in awards],
        count=len(awards),
        total_points=total_points,
    )
