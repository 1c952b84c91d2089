"""Coach evaluations of a student's progress in an activity."""

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Sequence
from uuid import uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Text,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, TimestampMixin


class EvaluationStatus(str, enum.Enum):
    """Drafts are visible to staff only; published ones to the student's account too."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Evaluation(Base, TimestampMixin):
    """Term evaluation written by a coach for one enrollment."""

    __tablename__ = "evaluations"
    __table_args__ = (
        CheckConstraint(
            "overall_rating IS NULL OR (overall_rating >= 0 AND overall_rating <= 5)",
            name="ck_evaluations_overall_rating",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    enrollment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id"), nullable=False, index=True
    )
    activity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("activities.id"), nullable=False, index=True
    )
    evaluator_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )

    evaluation_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    term: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    overall_rating: Mapped[Optional[Decimal]] = mapped_column(Numeric(3, 2), nullable=True)
    skill_ratings: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    strengths: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    areas_for_improvement: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    coach_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[EvaluationStatus] = mapped_column(
        Enum(EvaluationStatus, name="evaluation_status", native_enum=False, values_callable=lambda x: [e.value for e in x]),
        default=EvaluationStatus.DRAFT,
        nullable=False,
        index=True,
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["Evaluation"]:
        result = await db_session.execute(select(cls).where(cls.id == id))
        return result.scalars().first()

    @classmethod
    async def get_for_student(
        cls,
        db_session: AsyncSession,
        student_id: str,
        activity_id: Optional[str] = None,
        term: Optional[str] = None,
    ) -> Sequence["Evaluation"]:
        """All of a student's evaluations, newest first."""
        stmt = select(cls).where(cls.student_id == student_id)
        if activity_id:
            stmt = stmt.where(cls.activity_id == activity_id)
        if term:
            stmt = stmt.where(cls.term == term)
        result = await db_session.execute(
            stmt.order_by(cls.evaluation_date.desc(), cls.created_at.desc())
        )
        return result.scalars().all()
