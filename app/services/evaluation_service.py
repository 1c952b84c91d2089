"""Coach evaluations and skill badges."""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity import Activity
from app.models.badge import SkillBadge, StudentBadge
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.evaluation import Evaluation, EvaluationStatus
from app.models.student import Student
from app.models.user import Role, User
from app.services.audit_service import AuditService
from app.services.enrollment_service import EnrollmentService
from app.services.notification_service import NotificationService
from core.exceptions.base import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    InvalidStatusTransitionException,
    NotFoundException,
)
from core.logging import get_logger

logger = get_logger(__name__)

# Enrollments a coach can still write an evaluation for
EVALUABLE_STATUSES = [
    EnrollmentStatus.ACTIVE,
    EnrollmentStatus.APPROVED,
    EnrollmentStatus.COMPLETED,
]


class EvaluationService:
    """Evaluations move draft -> published -> archived. Only the coach of the
    activity (or an admin) writes, publishes or archives them; the student's
    account sees published evaluations only.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self.db_session = db_session
        self.audit = AuditService(db_session, ip_address=ip_address, user_agent=user_agent)

    async def _managed_evaluation(self, evaluation_id: str, actor: User) -> Evaluation:
        evaluation = await Evaluation.get_by_id(self.db_session, evaluation_id)
        if not evaluation:
            raise NotFoundException(message="Evaluation not found")
        activity = await Activity.get_by_id(self.db_session, evaluation.activity_id)
        EnrollmentService.ensure_can_manage_activity(actor, activity)
        return evaluation

    async def create_evaluation(self, data: Dict[str, Any], actor: User) -> Evaluation:
        """Save a draft evaluation for an enrollment.

        Raises:
            NotFoundException: Enrollment not found
            ForbiddenException: Actor does not coach the activity
            BadRequestException: Enrollment was withdrawn or rejected
        """
        enrollment = await Enrollment.get_by_id(self.db_session, data["enrollment_id"])
        if not enrollment:
            raise NotFoundException(message="Enrollment not found")

        activity = await Activity.get_by_id(self.db_session, enrollment.activity_id)
        EnrollmentService.ensure_can_manage_activity(actor, activity)

        if enrollment.status not in EVALUABLE_STATUSES:
            raise BadRequestException(
                message=f"Cannot evaluate a {enrollment.status.value} enrollment"
            )

        values = {k: v for k, v in data.items() if k != "enrollment_id"}
        if values.get("evaluation_date") is None:
            values["evaluation_date"] = date.today()

        evaluation = Evaluation(
            enrollment_id=enrollment.id,
            student_id=enrollment.student_id,
            activity_id=enrollment.activity_id,
            evaluator_id=actor.id,
            status=EvaluationStatus.DRAFT,
            **values,
        )
        self.db_session.add(evaluation)
        await self.db_session.commit()
        await self.db_session.refresh(evaluation)

        logger.info(
            f"Evaluation {evaluation.id} drafted for student {enrollment.student_id} "
            f"in activity {enrollment.activity_id} by {actor.id}"
        )
        await self.audit.record(
            action="evaluation.created",
            entity_type="evaluation",
            entity_id=evaluation.id,
            user_id=actor.id,
            new_value={"enrollment_id": enrollment.id, "status": EvaluationStatus.DRAFT.value},
        )
        return evaluation

    async def update_evaluation(
        self, evaluation_id: str, changes: Dict[str, Any], actor: User
    ) -> Evaluation:
        """Edit a draft. Published and archived evaluations are read-only."""
        evaluation = await self._managed_evaluation(evaluation_id, actor)
        if evaluation.status != EvaluationStatus.DRAFT:
            raise InvalidStatusTransitionException(
                message=f"Only draft evaluations can be edited (evaluation is {evaluation.status.value})"
            )

        for field, value in changes.items():
            setattr(evaluation, field, value)
        await self.db_session.commit()
        await self.db_session.refresh(evaluation)
        return evaluation

    async def publish_evaluation(self, evaluation_id: str, actor: User) -> Evaluation:
        """Make a draft visible to the student's account. Publishing twice is a no-op."""
        evaluation = await self._managed_evaluation(evaluation_id, actor)
        if evaluation.status == EvaluationStatus.PUBLISHED:
            return evaluation
        if evaluation.status != EvaluationStatus.DRAFT:
            raise InvalidStatusTransitionException(
                message=f"Cannot publish an {evaluation.status.value} evaluation",
                data={"from": evaluation.status.value, "to": EvaluationStatus.PUBLISHED.value},
            )

        evaluation.status = EvaluationStatus.PUBLISHED
        evaluation.published_at = datetime.now(timezone.utc)
        await self.db_session.commit()
        await self.db_session.refresh(evaluation)

        logger.info(f"Evaluation {evaluation_id} published by {actor.id}")
        await self.audit.record(
            action="evaluation.published",
            entity_type="evaluation",
            entity_id=evaluation_id,
            user_id=actor.id,
            old_value={"status": EvaluationStatus.DRAFT.value},
            new_value={"status": EvaluationStatus.PUBLISHED.value},
        )
        await NotificationService(self.db_session).evaluation_published(
            evaluation.student_id, evaluation.activity_id, evaluation.term
        )
        return evaluation

    async def archive_evaluation(self, evaluation_id: str, actor: User) -> Evaluation:
        evaluation = await self._managed_evaluation(evaluation_id, actor)
        if evaluation.status == EvaluationStatus.ARCHIVED:
            return evaluation

        previous = evaluation.status
        evaluation.status = EvaluationStatus.ARCHIVED
        await self.db_session.commit()
        await self.db_session.refresh(evaluation)

        await self.audit.record(
            action="evaluation.archived",
            entity_type="evaluation",
            entity_id=evaluation_id,
            user_id=actor.id,
            old_value={"status": previous.value},
            new_value={"status": EvaluationStatus.ARCHIVED.value},
        )
        return evaluation

    async def get_evaluation(self, evaluation_id: str, actor: User) -> Evaluation:
        evaluation = await Evaluation.get_by_id(self.db_session, evaluation_id)
        if not evaluation:
            raise NotFoundException(message="Evaluation not found")

        activity = await Activity.get_by_id(self.db_session, evaluation.activity_id)
        if not await self._can_see(actor, evaluation, activity):
            raise NotFoundException(message="Evaluation not found")
        return evaluation

    async def list_student_evaluations(
        self,
        student_id: str,
        actor: User,
        activity_id: Optional[str] = None,
        term: Optional[str] = None,
    ) -> List[Tuple[Evaluation, Activity]]:
        """A student's evaluations as the actor may see them, newest first.

        Admins see every status. A coach sees drafts and archived evaluations
        of the activities they coach, published ones otherwise. The student's
        own account sees published evaluations only.
        """
        student = await Student.get_by_id(self.db_session, student_id)
        if not student:
            raise NotFoundException(message="Student not found")
        if actor.role not in [Role.ADMIN, Role.COACH] and student.user_id != actor.id:
            raise ForbiddenException(message="You don't have access to this student")

        evaluations = await Evaluation.get_for_student(
            self.db_session, student_id, activity_id=activity_id, term=term
        )
        activities: Dict[str, Activity] = {}
        visible = []
        for evaluation in evaluations:
            if evaluation.activity_id not in activities:
                activities[evaluation.activity_id] = await Activity.get_by_id(
                    self.db_session, evaluation.activity_id
                )
            activity = activities[evaluation.activity_id]
            if await self._can_see(actor, evaluation, activity):
                visible.append((evaluation, activity))
        return visible

    async def _can_see(self, actor: User, evaluation: Evaluation, activity: Activity) -> bool:
        if actor.role == Role.ADMIN:
            return True
        if actor.role == Role.COACH and activity.coach_id == actor.id:
            return True
        if evaluation.status != EvaluationStatus.PUBLISHED:
            return False
        if actor.role == Role.COACH:
            return True
        student = await Student.get_by_id(self.db_session, evaluation.student_id)
        return bool(student and student.user_id == actor.id)

    # ============== Badges ==============

    async def create_badge(self, data: Dict[str, Any], actor: User) -> SkillBadge:
        if await SkillBadge.get_by_name(self.db_session, data["name"]):
            raise ConflictException(message=f"Badge '{data['name']}' already exists")

        badge = SkillBadge(**data)
        self.db_session.add(badge)
        await self.db_session.commit()
        await self.db_session.refresh(badge)
        logger.info(f"Badge created: {badge.name} by {actor.id}")
        return badge

    async def award_badge(
        self,
        student_id: str,
        badge_id: str,
        actor: User,
        enrollment_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> StudentBadge:
        """Award a badge to a student (coach of one of the student's activities, or admin).

        A coach must name the enrollment the badge is for. Awarding a badge
        the student already holds refreshes ``awarded_at`` and the notes.
        """
        student = await Student.get_by_id(self.db_session, student_id)
        if not student:
            raise NotFoundException(message="Student not found")

        badge = await SkillBadge.get_by_id(self.db_session, badge_id)
        if not badge or not badge.is_active:
            raise NotFoundException(message="Badge not found")

        if enrollment_id:
            enrollment = await Enrollment.get_by_id(self.db_session, enrollment_id)
            if not enrollment or enrollment.student_id != student_id:
                raise BadRequestException(message="Enrollment does not belong to this student")
            activity = await Activity.get_by_id(self.db_session, enrollment.activity_id)
            EnrollmentService.ensure_can_manage_activity(actor, activity)
        elif actor.role != Role.ADMIN:
            raise ForbiddenException(message="Coaches award badges through an enrollment they coach")

        now = datetime.now(timezone.utc)
        award = await StudentBadge.get_award(self.db_session, student_id, badge_id)
        if award:
            award.awarded_at = now
            award.awarded_by = actor.id
            award.notes = notes
            if enrollment_id:
                award.enrollment_id = enrollment_id
        else:
            award = StudentBadge(
                student_id=student_id,
                badge_id=badge_id,
                enrollment_id=enrollment_id,
                awarded_by=actor.id,
                awarded_at=now,
                notes=notes,
            )
            self.db_session.add(award)

        try:
            await self.db_session.commit()
        except IntegrityError:
            # Unique (student, badge): a concurrent award landed first
            await self.db_session.rollback()
            raise ConflictException(message="Badge was just awarded to this student")

        award = await StudentBadge.get_award(self.db_session, student_id, badge_id)
        logger.info(f"Badge {badge.name} awarded to student {student_id} by {actor.id}")
        await self.audit.record(
            action="badge.awarded",
            entity_type="student_badge",
            entity_id=award.id,
            user_id=actor.id,
            new_value={"student_id": student_id, "badge_id": badge_id, "enrollment_id": enrollment_id},
        )
        return award

    async def get_student_badges(
        self, student_id: str, actor: User
    ) -> Tuple[Sequence[StudentBadge], int]:
        """Earned badges, most recent first, with the total of their points."""
        student = await Student.get_by_id(self.db_session, student_id)
        if not student:
            raise NotFoundException(message="Student not found")
        if actor.role not in [Role.ADMIN, Role.COACH] and student.user_id != actor.id:
            raise ForbiddenException(message="You don't have access to this student")

        awards = await StudentBadge.get_by_student_id(self.db_session, student_id)
        return awards, sum(award.badge.points or 0 for award in awards)
