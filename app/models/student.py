from datetime import date
from typing import Optional, Sequence
from uuid import uuid4

from sqlalchemy import Date, ForeignKey, Integer, String, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, TimestampMixin


class Student(Base, TimestampMixin):
    """Student who can join activities.

    ``user_id`` is the account allowed to act for the student: the student's
    own login or a parent's.
    """

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True, index=True
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    grade_level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def age_on(self, on_date: date) -> Optional[int]:
        """Age in whole years on a given date, or None when unknown."""
        if not self.date_of_birth:
            return None
        dob = self.date_of_birth
        return on_date.year - dob.year - ((on_date.month, on_date.day) < (dob.month, dob.day))

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["Student"]:
        """Get student by ID."""
        result = await db_session.execute(select(cls).where(cls.id == id))
        return result.scalars().first()

    @classmethod
    async def lock(cls, db_session: AsyncSession, id: str) -> bool:
        """Hold a write lock on the student's row until commit or rollback.

        Taken with an UPDATE rather than FOR UPDATE so SQLite serializes on
        it too. Returns False when the student does not exist.
        """
        result = await db_session.execute(
            update(cls)
            .where(cls.id == id)
            .values(updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @classmethod
    async def get_by_user_id(
        cls, db_session: AsyncSession, user_id: str
    ) -> Sequence["Student"]:
        """Get students managed by an account."""
        result = await db_session.execute(
            select(cls).where(cls.user_id == user_id).order_by(cls.first_name)
        )
        return result.scalars().all()
