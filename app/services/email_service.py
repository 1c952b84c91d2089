"""Email service for enrollment notifications."""

import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from core.config import config

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

template_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


class EmailService:
    """Service for sending transactional emails using SendGrid."""

    def __init__(self):
        self.client = SendGridAPIClient(config.SENDGRID_API_KEY) if config.SENDGRID_API_KEY else None
        self.from_email = config.SENDGRID_FROM_EMAIL

    def _render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """Render email template with context."""
        template = template_env.get_template(template_name)
        return template.render(frontend_url=config.FRONTEND_URL, **context)

    def _send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        """Send email using SendGrid."""
        if not self.client:
            logger.warning(
                f"SendGrid not configured. Would send email to {to_email} with subject: {subject}"
            )
            return False

        try:
            message = Mail(
                from_email=self.from_email,
                to_emails=to_email,
                subject=subject,
                html_content=html_content,
            )
            response = self.client.send(message)
            logger.info(f"Email sent to {to_email}: {subject} (Status: {response.status_code})")
            return response.status_code in [200, 201, 202]

        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {str(e)}")
            return False

    def send_enrollment_confirmation(
        self,
        to_email: str,
        user_name: str,
        student_name: str,
        activity_name: str,
        schedule: Optional[str],
        venue: Optional[str],
    ) -> bool:
        """Send enrollment confirmation email.

        Args:
            to_email: Recipient email address
            user_name: Account holder's name
            student_name: Enrolled student's name
            activity_name: Activity name
            schedule: Human readable schedule
            venue: Venue name
        """
        context = {
            "user_name": user_name,
            "student_name": student_name,
            "activity_name": activity_name,
            "schedule": schedule or "To be announced",
            "venue": venue or "To be announced",
        }
        html_content = self._render_template("enrollment_confirmation.html", context)
        return self._send_email(
            to_email=to_email,
            subject=f"Enrollment Confirmed: {student_name} - {activity_name}",
            html_content=html_content,
        )

    def send_waitlist_confirmation(
        self,
        to_email: str,
        user_name: str,
        student_name: str,
        activity_name: str,
        position: int,
    ) -> bool:
        context = {
            "user_name": user_name,
            "student_name": student_name,
            "activity_name": activity_name,
            "position": position,
        }
        html_content = self._render_template("waitlist_confirmation.html", context)
        return self._send_email(
            to_email=to_email,
            subject=f"Waitlist: {student_name} - {activity_name} (#{position})",
            html_content=html_content,
        )

    def send_waitlist_promotion(
        self,
        to_email: str,
        user_name: str,
        student_name: str,
        activity_name: str,
        schedule: Optional[str],
    ) -> bool:
        """Tell the account holder a waitlisted student got a seat."""
        context = {
            "user_name": user_name,
            "student_name": student_name,
            "activity_name": activity_name,
            "schedule": schedule or "To be announced",
        }
        html_content = self._render_template("waitlist_promotion.html", context)
        return self._send_email(
            to_email=to_email,
            subject=f"A spot opened up: {student_name} - {activity_name}",
            html_content=html_content,
        )

    def send_cancellation_confirmation(
        self,
        to_email: str,
        user_name: str,
        student_name: str,
        activity_name: str,
        cancellation_date: date,
        reason: Optional[str] = None,
    ) -> bool:
        context = {
            "user_name": user_name,
            "student_name": student_name,
            "activity_name": activity_name,
            "cancellation_date": cancellation_date.strftime("%B %d, %Y"),
            "reason": reason,
        }
        html_content = self._render_template("cancellation_confirmation.html", context)
        return self._send_email(
            to_email=to_email,
            subject=f"Withdrawal Confirmed: {student_name} - {activity_name}",
            html_content=html_content,
        )


    def send_evaluation_published(
        self,
        to_email: str,
        user_name: str,
        student_name: str,
        activity_name: str,
        term: Optional[str] = None,
    ) -> bool:
        context = {
            "user_name": user_name,
            "student_name": student_name,
            "activity_name": activity_name,
            "term": term,
        }
        html_content = self._render_template("evaluation_published.html", context)
        return self._send_email(
            to_email=to_email,
            subject=f"New Evaluation: {student_name} - {activity_name}",
            html_content=html_content,
        )

# Singleton instance
email_service = EmailService()
