"""Enrollment model for student-to-activity registration."""

import enum
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional, Sequence
from uuid import uuid4

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    select,
    text,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, TimestampMixin


class EnrollmentStatus(str, enum.Enum):
    """Status of an enrollment."""

    ACTIVE = "active"  # Registered, holds a seat
    APPROVED = "approved"  # Confirmed by coach or admin
    REJECTED = "rejected"  # Declined by coach or admin
    WITHDRAWN = "withdrawn"  # Cancelled by student, parent or admin
    COMPLETED = "completed"  # Activity term finished

    @classmethod
    def parse(cls, value: str) -> Optional["EnrollmentStatus"]:
        try:
            return cls(value)
        except ValueError:
            return None

    def can_transition(self, target: "EnrollmentStatus") -> bool:
        """Check whether moving from this status to ``target`` is allowed."""
        return target in ALLOWED_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: Dict[EnrollmentStatus, FrozenSet[EnrollmentStatus]] = {
    EnrollmentStatus.ACTIVE: frozenset({
        EnrollmentStatus.APPROVED,
        EnrollmentStatus.REJECTED,
        EnrollmentStatus.WITHDRAWN,
        EnrollmentStatus.COMPLETED,
    }),
    EnrollmentStatus.APPROVED: frozenset({
        EnrollmentStatus.WITHDRAWN,
        EnrollmentStatus.COMPLETED,
    }),
    EnrollmentStatus.REJECTED: frozenset(),
    EnrollmentStatus.WITHDRAWN: frozenset(),
    EnrollmentStatus.COMPLETED: frozenset(),
}

# Statuses that hold a seat
OPEN_STATUSES = (EnrollmentStatus.ACTIVE, EnrollmentStatus.APPROVED)

# Statuses whose entry frees a seat for the waitlist
PROMOTING_STATUSES = (EnrollmentStatus.WITHDRAWN, EnrollmentStatus.REJECTED)


class Enrollment(Base, TimestampMixin):
    """Enrollment record linking a student to an activity."""

    __tablename__ = "enrollments"
    __table_args__ = (
        Index(
            "uq_enrollment_open_student_activity",
            "student_id",
            "activity_id",
            unique=True,
            sqlite_where=text("status IN ('active', 'approved')"),
            postgresql_where=text("status IN ('active', 'approved')"),
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )

    # Foreign keys
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id"), nullable=False, index=True
    )
    activity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("activities.id"), nullable=False, index=True
    )
    enrolled_by: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )

    status: Mapped[EnrollmentStatus] = mapped_column(
        Enum(EnrollmentStatus, name="enrollment_status", native_enum=False, values_callable=lambda x: [e.value for e in x]),
        default=EnrollmentStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    grade_level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Dates
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    performance_remark: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["Enrollment"]:
        """Get enrollment by ID."""
        result = await db_session.execute(select(cls).where(cls.id == id))
        return result.scalars().first()

    @classmethod
    async def get_open(
        cls, db_session: AsyncSession, student_id: str, activity_id: str
    ) -> Optional["Enrollment"]:
        """Get the active or approved enrollment of a student in an activity."""
        result = await db_session.execute(
            select(cls).where(
                cls.student_id == student_id,
                cls.activity_id == activity_id,
                cls.status.in_(OPEN_STATUSES),
            )
        )
        return result.scalars().first()

    @classmethod
    async def get_open_activity_ids(
        cls,
        db_session: AsyncSession,
        student_id: str,
        exclude_activity_id: Optional[str] = None,
    ) -> Sequence[str]:
        """Activity IDs the student currently holds a seat in."""
        stmt = select(cls.activity_id).where(
            cls.student_id == student_id,
            cls.status.in_(OPEN_STATUSES),
        )
        if exclude_activity_id:
            stmt = stmt.where(cls.activity_id != exclude_activity_id)
        result = await db_session.execute(stmt)
        return result.scalars().all()

    @classmethod
    async def get_by_student_id(
        cls, db_session: AsyncSession, student_id: str
    ) -> Sequence["Enrollment"]:
        """Get all enrollments for a student, newest first."""
        result = await db_session.execute(
            select(cls)
            .where(cls.student_id == student_id)
            .order_by(cls.enrolled_at.desc(), cls.created_at.desc())
        )
        return result.scalars().all()

    @classmethod
    async def get_open_by_activity_id(
        cls, db_session: AsyncSession, activity_id: str
    ) -> Sequence["Enrollment"]:
        """Get active and approved enrollments for an activity, oldest first."""
        result = await db_session.execute(
            select(cls)
            .where(cls.activity_id == activity_id, cls.status.in_(OPEN_STATUSES))
            .order_by(cls.enrolled_at.asc(), cls.created_at.asc())
        )
        return result.scalars().all()

    @classmethod
    async def count_open(cls, db_session: AsyncSession, activity_id: str) -> int:
        result = await db_session.execute(
            select(func.count(cls.id)).where(
                cls.activity_id == activity_id, cls.status.in_(OPEN_STATUSES)
            )
        )
        return result.scalar() or 0

    @classmethod
    async def transition(
        cls,
        db_session: AsyncSession,
        id: str,
        from_statuses: Sequence[EnrollmentStatus],
        **values,
    ) -> bool:
        """Conditionally update an enrollment still in one of ``from_statuses``.

        Returns False when another transaction moved the row first.
        Does not commit.
        """
        result = await db_session.execute(
            update(cls)
            .where(cls.id == id, cls.status.in_(from_statuses))
            .values(**values)
        )
        return result.rowcount > 0

    @classmethod
    async def get_filtered(
        cls,
        db_session: AsyncSession,
        activity_id: Optional[str] = None,
        student_id: Optional[str] = None,
        status: Optional[EnrollmentStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence["Enrollment"], int]:
        """Get enrollments with optional filters and pagination."""
        conditions = []
        if activity_id:
            conditions.append(cls.activity_id == activity_id)
        if student_id:
            conditions.append(cls.student_id == student_id)
        if status:
            conditions.append(cls.status == status)

        count_result = await db_session.execute(
            select(func.count(cls.id)).where(*conditions)
        )
        total = count_result.scalar() or 0

        result = await db_session.execute(
            select(cls)
            .where(*conditions)
            .order_by(cls.enrolled_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return result.scalars().all(), total
