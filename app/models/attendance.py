"""Attendance tracking for activity sessions."""

import enum
from datetime import date
from typing import Dict, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import (
    Date,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, TimestampMixin


class AttendanceStatus(str, enum.Enum):
    """Status of attendance."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class Attendance(Base, TimestampMixin):
    """Attendance record for an activity session."""

    __tablename__ = "attendances"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    enrollment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    activity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("activities.id"), nullable=False, index=True
    )
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[AttendanceStatus] = mapped_column(
        Enum(AttendanceStatus, name="attendance_status", native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    marked_by: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "enrollment_id",
            "date",
            name="unique_enrollment_date_attendance",
        ),
        Index("idx_attendance_date_enrollment", "enrollment_id", "date"),
    )

    @classmethod
    async def get_streak(cls, db_session: AsyncSession, enrollment_id: str) -> int:
        """
        Calculate current attendance streak for an enrollment.

        Counts consecutive PRESENT or LATE sessions from the most recent date backwards.
        """
        stmt = (
            select(cls.date, cls.status)
            .where(cls.enrollment_id == enrollment_id)
            .order_by(cls.date.desc())
        )
        result = await db_session.execute(stmt)
        records = result.all()

        streak = 0
        for record in records:
            if record.status in (AttendanceStatus.PRESENT, AttendanceStatus.LATE):
                streak += 1
            else:
                break

        return streak

    @classmethod
    async def get_by_enrollment(
        cls,
        db_session: AsyncSession,
        enrollment_id: str,
        skip: int = 0,
        limit: int = 50,
    ) -> Sequence["Attendance"]:
        """Get attendance history for an enrollment."""
        stmt = (
            select(cls)
            .where(cls.enrollment_id == enrollment_id)
            .order_by(cls.date.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await db_session.execute(stmt)
        return result.scalars().all()

    @classmethod
    async def count_by_enrollment(
        cls, db_session: AsyncSession, enrollment_id: str
    ) -> int:
        """Count attendance records for an enrollment."""
        stmt = select(func.count(cls.id)).where(cls.enrollment_id == enrollment_id)
        result = await db_session.execute(stmt)
        return result.scalar() or 0

    @classmethod
    async def summarize(
        cls, db_session: AsyncSession, enrollment_id: str
    ) -> Dict[str, int]:
        """Count sessions per status for an enrollment."""
        stmt = (
            select(cls.status, func.count(cls.id))
            .where(cls.enrollment_id == enrollment_id)
            .group_by(cls.status)
        )
        result = await db_session.execute(stmt)
        summary = {status.value: 0 for status in AttendanceStatus}
        for status, count in result.all():
            summary[status.value] = count
        return summary

    @classmethod
    async def mark_bulk(
        cls,
        db_session: AsyncSession,
        activity_id: str,
        attendance_data: List[dict],
        marked_by: str,
    ) -> None:
        """Bulk mark attendance for an activity session."""
        for data in attendance_data:
            stmt = select(cls).where(
                cls.enrollment_id == data["enrollment_id"],
                cls.date == data["date"],
            )
            result = await db_session.execute(stmt)
            existing = result.scalar_one_or_none()

            if existing:
                existing.status = data["status"]
                existing.remarks = data.get("remarks")
                existing.marked_by = marked_by
            else:
                attendance = cls(
                    enrollment_id=data["enrollment_id"],
                    activity_id=activity_id,
                    date=data["date"],
                    status=data["status"],
                    marked_by=marked_by,
                    remarks=data.get("remarks"),
                )
                db_session.add(attendance)

        await db_session.commit()

    @classmethod
    async def get_by_activity(
        cls, db_session: AsyncSession, activity_id: str, attendance_date: Optional[date] = None
    ) -> Sequence["Attendance"]:
        """Get all attendance for an activity, optionally filtered by date."""
        conditions = [cls.activity_id == activity_id]
        if attendance_date:
            conditions.append(cls.date == attendance_date)

        stmt = (
            select(cls)
            .where(*conditions)
            .order_by(cls.date.desc(), cls.created_at)
        )
        result = await db_session.execute(stmt)
        return result.scalars().all()
