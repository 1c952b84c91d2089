import enum
from datetime import datetime, timezone
from typing import Optional, Sequence
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class ConflictType(str, enum.Enum):
    """Reason a registration attempt was blocked or flagged."""

    TIME_OVERLAP = "time_overlap"
    VENUE_CONFLICT = "venue_conflict"
    AGE_RESTRICTION = "age_restriction"
    GRADE_RESTRICTION = "grade_restriction"
    QUOTA_FULL = "quota_full"


class EnrollmentConflict(Base):
    """Diagnostic record of a failed or flagged registration attempt.

    Written for admins to review; never read when deciding a registration.
    """

    __tablename__ = "enrollment_conflicts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id"), nullable=False, index=True
    )
    attempted_activity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("activities.id"), nullable=False
    )
    conflicting_activity_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("activities.id"), nullable=True
    )
    conflicting_schedule_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("activity_schedules.id"), nullable=True
    )
    conflict_type: Mapped[ConflictType] = mapped_column(
        Enum(ConflictType, name="conflict_type", native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["EnrollmentConflict"]:
        result = await db_session.execute(select(cls).where(cls.id == id))
        return result.scalars().first()

    @classmethod
    async def get_by_student_id(
        cls, db_session: AsyncSession, student_id: str, unresolved_only: bool = False
    ) -> Sequence["EnrollmentConflict"]:
        stmt = select(cls).where(cls.student_id == student_id)
        if unresolved_only:
            stmt = stmt.where(cls.resolved == False)
        result = await db_session.execute(stmt.order_by(cls.attempted_at.desc()))
        return result.scalars().all()
