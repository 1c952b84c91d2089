"""Skill badges and the badges students have earned."""

from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship, selectinload

from core.db import Base, TimestampMixin


class SkillBadge(Base, TimestampMixin):
    """Badge definition."""

    __tablename__ = "skill_badges"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    icon_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requirements: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    student_badges: Mapped[List["StudentBadge"]] = relationship(
        "StudentBadge", back_populates="badge"
    )

    @classmethod
    async def get_by_id(cls, db_session: AsyncSession, id: str) -> Optional["SkillBadge"]:
        """Get badge by ID."""
        result = await db_session.execute(select(cls).where(cls.id == id))
        return result.scalars().first()

    @classmethod
    async def get_by_name(cls, db_session: AsyncSession, name: str) -> Optional["SkillBadge"]:
        result = await db_session.execute(select(cls).where(cls.name == name))
        return result.scalars().first()

    @classmethod
    async def get_all_active(
        cls, db_session: AsyncSession, category: Optional[str] = None
    ) -> Sequence["SkillBadge"]:
        """Get all active badges."""
        stmt = select(cls).where(cls.is_active == True)
        if category:
            stmt = stmt.where(cls.category == category)
        result = await db_session.execute(stmt.order_by(cls.category, cls.name))
        return result.scalars().all()


class StudentBadge(Base, TimestampMixin):
    """A badge a student has earned. One row per (student, badge)."""

    __tablename__ = "student_badges"
    __table_args__ = (
        UniqueConstraint("student_id", "badge_id", name="uq_student_badges_student_badge"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id"), nullable=False, index=True
    )
    badge_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("skill_badges.id", ondelete="CASCADE"), nullable=False, index=True
    )
    enrollment_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("enrollments.id", ondelete="SET NULL"), nullable=True
    )
    awarded_by: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    awarded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    badge: Mapped["SkillBadge"] = relationship("SkillBadge", back_populates="student_badges")

    @classmethod
    async def get_award(
        cls, db_session: AsyncSession, student_id: str, badge_id: str
    ) -> Optional["StudentBadge"]:
        result = await db_session.execute(
            select(cls)
            .where(cls.student_id == student_id, cls.badge_id == badge_id)
            .options(selectinload(cls.badge))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @classmethod
    async def get_by_student_id(
        cls, db_session: AsyncSession, student_id: str
    ) -> Sequence["StudentBadge"]:
        """Badges earned by a student, most recent first."""
        result = await db_session.execute(
            select(cls)
            .where(cls.student_id == student_id)
            .options(selectinload(cls.badge))
            .order_by(cls.awarded_at.desc())
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()
