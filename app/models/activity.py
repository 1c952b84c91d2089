import enum
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship, selectinload

from core.db import Base, TimestampMixin


class ActivityStatus(str, enum.Enum):
    """Lifecycle status of an activity."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"


class Weekday(str, enum.Enum):
    """Days of the week."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class Venue(Base, TimestampMixin):
    """Physical place where activity sessions happen."""

    __tablename__ = "venues"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    venue_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["Venue"]:
        result = await db_session.execute(select(cls).where(cls.id == id))
        return result.scalars().first()

    @classmethod
    async def get_all(cls, db_session: AsyncSession) -> Sequence["Venue"]:
        result = await db_session.execute(
            select(cls).where(cls.is_active == True).order_by(cls.name)
        )
        return result.scalars().all()


class Activity(Base, TimestampMixin):
    """Extra-curricular activity students can enroll in."""

    __tablename__ = "activities"
    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_activity_capacity_non_negative"),
        CheckConstraint(
            "current_enrollment >= 0", name="ck_activity_enrollment_non_negative"
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    coach_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True, index=True
    )
    venue: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    schedule: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True
    )  # Human readable, e.g. "Mon/Wed 4-6 PM"

    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    current_enrollment: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    fee: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )

    # Restrictions
    min_grade: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_grade: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    min_age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Dates
    registration_start: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    registration_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    term_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    term_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    status: Mapped[ActivityStatus] = mapped_column(
        Enum(ActivityStatus, name="activity_status", native_enum=False, values_callable=lambda x: [e.value for e in x]),
        default=ActivityStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    schedules: Mapped[List["ActivitySchedule"]] = relationship(
        "ActivitySchedule",
        back_populates="activity",
        cascade="all, delete-orphan",
        order_by="ActivitySchedule.start_time",
        lazy="selectin",
    )

    @property
    def has_capacity(self) -> bool:
        """Check if activity has available seats."""
        return self.current_enrollment < self.capacity

    @property
    def available_spots(self) -> int:
        """Get number of available seats."""
        return max(0, self.capacity - self.current_enrollment)

    def registration_open(self, now: datetime) -> bool:
        """Check the optional registration window against ``now``."""
        start = _as_aware(self.registration_start)
        end = _as_aware(self.registration_end)
        if start and now < start:
            return False
        if end and now > end:
            return False
        return True

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["Activity"]:
        """Get activity by ID."""
        result = await db_session.execute(
            select(cls).options(selectinload(cls.schedules)).where(cls.id == id)
        )
        return result.scalars().first()

    @classmethod
    async def get_for_update(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["Activity"]:
        """Get activity by ID, locking its row for the rest of the transaction.

        SQLite ignores FOR UPDATE; the conditional counter update in
        ``reserve_seat`` still keeps the seat count consistent there.
        """
        result = await db_session.execute(
            select(cls)
            .where(cls.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @classmethod
    async def get_filtered(
        cls,
        db_session: AsyncSession,
        category: Optional[str] = None,
        status: Optional[ActivityStatus] = None,
        has_capacity: Optional[bool] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[Sequence["Activity"], int]:
        """Get activities with optional filters and pagination."""
        conditions = []

        if category:
            conditions.append(cls.category == category)
        if status:
            conditions.append(cls.status == status)
        if has_capacity is True:
            conditions.append(cls.current_enrollment < cls.capacity)
        if search:
            search_pattern = f"%{search}%"
            conditions.append(
                or_(
                    cls.name.ilike(search_pattern),
                    cls.description.ilike(search_pattern)
                )
            )

        count_result = await db_session.execute(
            select(func.count(cls.id)).where(*conditions)
        )
        total = count_result.scalar() or 0

        result = await db_session.execute(
            select(cls)
            .options(selectinload(cls.schedules))
            .where(*conditions)
            .order_by(cls.category, cls.name)
            .offset(skip)
            .limit(limit)
        )

        return result.scalars().all(), total

    @classmethod
    async def create_activity(cls, db_session: AsyncSession, **kwargs) -> "Activity":
        """Create a new activity."""
        activity = cls(**kwargs)
        db_session.add(activity)
        await db_session.commit()
        return await cls.get_by_id(db_session, activity.id)

    @classmethod
    async def reserve_seat(cls, db_session: AsyncSession, activity_id: str) -> bool:
        """Take one seat if the counter is below capacity.

        Does not commit; the caller's transaction owns the change.
        """
        stmt = (
            update(cls)
            .where(
                cls.id == activity_id,
                cls.current_enrollment < cls.capacity,
            )
            .values(current_enrollment=cls.current_enrollment + 1)
        )
        result = await db_session.execute(stmt)
        return result.rowcount > 0

    @classmethod
    async def force_reserve_seat(cls, db_session: AsyncSession, activity_id: str) -> None:
        """Take one seat regardless of capacity (admin override)."""
        await db_session.execute(
            update(cls)
            .where(cls.id == activity_id)
            .values(current_enrollment=cls.current_enrollment + 1)
        )

    @classmethod
    async def release_seat(cls, db_session: AsyncSession, activity_id: str) -> bool:
        """Give back one seat without going below zero. Does not commit."""
        stmt = (
            update(cls)
            .where(cls.id == activity_id, cls.current_enrollment > 0)
            .values(current_enrollment=cls.current_enrollment - 1)
        )
        result = await db_session.execute(stmt)
        return result.rowcount > 0

    async def sync_enrollment_count(self, db_session: AsyncSession) -> int:
        """Recalculate and sync current_enrollment with actual open enrollments."""
        from app.models.enrollment import Enrollment, OPEN_STATUSES

        count_result = await db_session.execute(
            select(func.count(Enrollment.id)).where(
                Enrollment.activity_id == self.id,
                Enrollment.status.in_(OPEN_STATUSES),
            )
        )
        actual_count = count_result.scalar() or 0

        if self.current_enrollment != actual_count:
            self.current_enrollment = actual_count
            await db_session.commit()
            await db_session.refresh(self)

        return actual_count


class ActivitySchedule(Base, TimestampMixin):
    """Recurring weekly time slot of an activity."""

    __tablename__ = "activity_schedules"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_schedule_time_order"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    activity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    venue_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("venues.id"), nullable=True, index=True
    )
    day_of_week: Mapped[Weekday] = mapped_column(
        Enum(Weekday, name="weekday", native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    effective_from: Mapped[date] = mapped_column(
        Date, nullable=False, default=date.today
    )
    effective_until: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    activity: Mapped["Activity"] = relationship("Activity", back_populates="schedules")

    @classmethod
    async def get_active_for_activity(
        cls, db_session: AsyncSession, activity_id: str
    ) -> Sequence["ActivitySchedule"]:
        result = await db_session.execute(
            select(cls).where(cls.activity_id == activity_id, cls.is_active == True)
        )
        return result.scalars().all()

    @classmethod
    async def get_active_for_activities(
        cls, db_session: AsyncSession, activity_ids: Sequence[str]
    ) -> Sequence["ActivitySchedule"]:
        if not activity_ids:
            return []
        result = await db_session.execute(
            select(cls).where(cls.activity_id.in_(activity_ids), cls.is_active == True)
        )
        return result.scalars().all()


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; stored values are UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
