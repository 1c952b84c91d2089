"""Celery tasks for enrollment notification emails."""

import logging
from datetime import datetime
from typing import Optional

from app.services.email_service import email_service
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="send_enrollment_confirmation_email")
def send_enrollment_confirmation_email(
    self,
    user_email: str,
    user_name: str,
    student_name: str,
    activity_name: str,
    schedule: Optional[str] = None,
    venue: Optional[str] = None,
) -> bool:
    """Send enrollment confirmation email.

    Args:
        user_email: Recipient email
        user_name: Account holder's name
        student_name: Student's name
        activity_name: Activity name
        schedule: Human readable schedule
        venue: Venue name
    """
    try:
        success = email_service.send_enrollment_confirmation(
            to_email=user_email,
            user_name=user_name,
            student_name=student_name,
            activity_name=activity_name,
            schedule=schedule,
            venue=venue,
        )

        if success:
            logger.info(f"Enrollment confirmation email sent to {user_email}")
        else:
            logger.warning(f"Failed to send enrollment confirmation email to {user_email}")

        return success

    except Exception as e:
        logger.error(f"Error sending enrollment confirmation email: {str(e)}")
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries), max_retries=3)


@celery_app.task(bind=True, name="send_waitlist_confirmation_email")
def send_waitlist_confirmation_email(
    self,
    user_email: str,
    user_name: str,
    student_name: str,
    activity_name: str,
    position: int,
) -> bool:
    """Send waitlist confirmation with the student's queue position."""
    try:
        success = email_service.send_waitlist_confirmation(
            to_email=user_email,
            user_name=user_name,
            student_name=student_name,
            activity_name=activity_name,
            position=position,
        )

        if success:
            logger.info(f"Waitlist confirmation email sent to {user_email} (position {position})")
        else:
            logger.warning(f"Failed to send waitlist confirmation email to {user_email}")

        return success

    except Exception as e:
        logger.error(f"Error sending waitlist confirmation email: {str(e)}")
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries), max_retries=3)


@celery_app.task(bind=True, name="send_waitlist_promotion_email")
def send_waitlist_promotion_email(
    self,
    user_email: str,
    user_name: str,
    student_name: str,
    activity_name: str,
    schedule: Optional[str] = None,
) -> bool:
    """Notify the account holder that a waitlisted student was enrolled."""
    try:
        success = email_service.send_waitlist_promotion(
            to_email=user_email,
            user_name=user_name,
            student_name=student_name,
            activity_name=activity_name,
            schedule=schedule,
        )

        if success:
            logger.info(f"Waitlist promotion email sent to {user_email}")
        else:
            logger.warning(f"Failed to send waitlist promotion email to {user_email}")

        return success

    except Exception as e:
        logger.error(f"Error sending waitlist promotion email: {str(e)}")
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries), max_retries=3)


@celery_app.task(bind=True, name="send_cancellation_confirmation_email")
def send_cancellation_confirmation_email(
    self,
    user_email: str,
    user_name: str,
    student_name: str,
    activity_name: str,
    cancellation_date: str,
    reason: Optional[str] = None,
) -> bool:
    """Send withdrawal confirmation.

    Args:
        cancellation_date: Withdrawal date (ISO format)
    """
    try:
        success = email_service.send_cancellation_confirmation(
            to_email=user_email,
            user_name=user_name,
            student_name=student_name,
            activity_name=activity_name,
            cancellation_date=datetime.fromisoformat(cancellation_date).date(),
            reason=reason,
        )

        if success:
            logger.info(f"Cancellation confirmation email sent to {user_email}")
        else:
            logger.warning(f"Failed to send cancellation confirmation email to {user_email}")

        return success

    except Exception as e:
        logger.error(f"Error sending cancellation confirmation email: {str(e)}")
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries), max_retries=3)


@celery_app.task(bind=True, name="send_evaluation_published_email")
def send_evaluation_published_email(
    self,
    user_email: str,
    user_name: str,
    student_name: str,
    activity_name: str,
    term: Optional[str] = None,
) -> bool:
    try:
        success = email_service.send_evaluation_published(
            to_email=user_email,
            user_name=user_name,
            student_name=student_name,
            activity_name=activity_name,
            term=term,
        )

        if success:
            logger.info(f"Evaluation published email sent to {user_email}")
        else:
            logger.warning(f"Failed to send evaluation published email to {user_email}")

        return success

    except Exception as e:
        logger.error(f"Error sending evaluation published email: {str(e)}")
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries), max_retries=3)
