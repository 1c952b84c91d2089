"""Waitlist entries queued when an activity is full."""

import enum
from datetime import datetime, timezone
from typing import Optional, Sequence
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


class WaitlistStatus(str, enum.Enum):
    """Status of a waitlist entry."""

    WAITING = "waiting"
    NOTIFIED = "notified"
    PROMOTED = "promoted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class WaitlistEntry(Base, TimestampMixin):
    """Queued request for a seat in a full activity.

    Ordered by ``priority`` (higher first) then ``position`` (lower first).
    """

    __tablename__ = "waitlist_entries"
    __table_args__ = (
        Index(
            "uq_waitlist_waiting_student_activity",
            "student_id",
            "activity_id",
            unique=True,
            sqlite_where=text("status = 'waiting'"),
            postgresql_where=text("status = 'waiting'"),
        ),
        Index("ix_waitlist_activity_order", "activity_id", "status", "priority", "position"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id"), nullable=False, index=True
    )
    activity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("activities.id"), nullable=False, index=True
    )
    grade_level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[WaitlistStatus] = mapped_column(
        Enum(WaitlistStatus, name="waitlist_status", native_enum=False, values_callable=lambda x: [e.value for e in x]),
        default=WaitlistStatus.WAITING,
        nullable=False,
    )

    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    notified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    promoted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["WaitlistEntry"]:
        result = await db_session.execute(select(cls).where(cls.id == id))
        return result.scalars().first()

    @classmethod
    async def get_waiting(
        cls, db_session: AsyncSession, student_id: str, activity_id: str
    ) -> Optional["WaitlistEntry"]:
        result = await db_session.execute(
            select(cls).where(
                cls.student_id == student_id,
                cls.activity_id == activity_id,
                cls.status == WaitlistStatus.WAITING,
            )
        )
        return result.scalars().first()

    @classmethod
    async def next_position(cls, db_session: AsyncSession, activity_id: str) -> int:
        """Position after the last waiting entry of an activity."""
        result = await db_session.execute(
            select(func.max(cls.position)).where(
                cls.activity_id == activity_id,
                cls.status == WaitlistStatus.WAITING,
            )
        )
        return (result.scalar() or 0) + 1

    @classmethod
    async def get_queue(
        cls, db_session: AsyncSession, activity_id: str
    ) -> Sequence["WaitlistEntry"]:
        """Waiting entries in promotion order."""
        result = await db_session.execute(
            select(cls)
            .where(
                cls.activity_id == activity_id,
                cls.status == WaitlistStatus.WAITING,
            )
            .order_by(cls.priority.desc(), cls.position.asc())
        )
        return result.scalars().all()

    @classmethod
    async def get_by_student_id(
        cls, db_session: AsyncSession, student_id: str
    ) -> Sequence["WaitlistEntry"]:
        result = await db_session.execute(
            select(cls)
            .where(cls.student_id == student_id)
            .order_by(cls.added_at.desc())
        )
        return result.scalars().all()

    @classmethod
    async def close_waiting(
        cls,
        db_session: AsyncSession,
        student_id: str,
        activity_id: str,
        status: WaitlistStatus,
    ) -> int:
        """Move the pair's waiting entry, if any, out of the queue.

        Does not commit. Returns the number of entries closed.
        """
        values = {"status": status}
        if status == WaitlistStatus.PROMOTED:
            values["promoted_at"] = datetime.now(timezone.utc)
        result = await db_session.execute(
            update(cls)
            .where(
                cls.student_id == student_id,
                cls.activity_id == activity_id,
                cls.status == WaitlistStatus.WAITING,
            )
            .values(**values)
        )
        return result.rowcount
