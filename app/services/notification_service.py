"""Queues notification emails once an enrollment change is committed."""

from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity import Activity
from app.models.student import Student
from app.models.user import User
from app.tasks.email_tasks import (
    send_cancellation_confirmation_email,
    send_enrollment_confirmation_email,
    send_evaluation_published_email,
    send_waitlist_confirmation_email,
    send_waitlist_promotion_email,
)
from core.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Looks up the account behind a student and queues the matching email.

    Queuing failures (e.g. Redis down) are logged and never raised.
    """

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def _recipient(
        self, student_id: str, activity_id: str
    ) -> Optional[Tuple[User, Student, Activity]]:
        student = await Student.get_by_id(self.db_session, student_id)
        activity = await Activity.get_by_id(self.db_session, activity_id)
        if not student or not activity or not student.user_id:
            return None
        user = await User.get_by_id(self.db_session, student.user_id)
        if not user:
            return None
        return user, student, activity

    async def enrollment_confirmed(self, student_id: str, activity_id: str) -> None:
        found = await self._recipient(student_id, activity_id)
        if not found:
            return
        user, student, activity = found
        try:
            send_enrollment_confirmation_email.delay(
                user_email=user.email,
                user_name=user.full_name,
                student_name=student.full_name,
                activity_name=activity.name,
                schedule=activity.schedule,
                venue=activity.venue,
            )
        except Exception as email_error:
            logger.warning(f"Failed to queue enrollment confirmation email: {email_error}")

    async def waitlisted(self, student_id: str, activity_id: str, position: int) -> None:
        found = await self._recipient(student_id, activity_id)
        if not found:
            return
        user, student, activity = found
        try:
            send_waitlist_confirmation_email.delay(
                user_email=user.email,
                user_name=user.full_name,
                student_name=student.full_name,
                activity_name=activity.name,
                position=position,
            )
        except Exception as email_error:
            logger.warning(f"Failed to queue waitlist confirmation email: {email_error}")

    async def promoted(self, student_id: str, activity_id: str) -> None:
        found = await self._recipient(student_id, activity_id)
        if not found:
            return
        user, student, activity = found
        try:
            send_waitlist_promotion_email.delay(
                user_email=user.email,
                user_name=user.full_name,
                student_name=student.full_name,
                activity_name=activity.name,
                schedule=activity.schedule,
            )
        except Exception as email_error:
            logger.warning(f"Failed to queue waitlist promotion email: {email_error}")

    async def withdrawn(
        self, student_id: str, activity_id: str, reason: Optional[str] = None
    ) -> None:
        found = await self._recipient(student_id, activity_id)
        if not found:
            return
        user, student, activity = found
        try:
            send_cancellation_confirmation_email.delay(
                user_email=user.email,
                user_name=user.full_name,
                student_name=student.full_name,
                activity_name=activity.name,
                cancellation_date=datetime.now(timezone.utc).date().isoformat(),
                reason=reason,
            )
        except Exception as email_error:
            logger.warning(f"Failed to queue cancellation confirmation email: {email_error}")

    async def evaluation_published(
        self, student_id: str, activity_id: str, term: Optional[str] = None
    ) -> None:
        found = await self._recipient(student_id, activity_id)
        if not found:
            return
        user, student, activity = found
        try:
            send_evaluation_published_email.delay(
                user_email=user.email,
                user_name=user.full_name,
                student_name=student.full_name,
                activity_name=activity.name,
                term=term,
            )
        except Exception as email_error:
            logger.warning(f"Failed to queue evaluation published email: {email_error}")
