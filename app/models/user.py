import enum
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Enum, String, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base, TimestampMixin


class Role(str, enum.Enum):
    """User roles in the system."""
    ADMIN = "admin"
    COACH = "coach"
    STUDENT = "student"
    PARENT = "parent"


class User(Base, TimestampMixin):
    """User account (admin, coach, student or parent)."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    email: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    hashed_password: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="role", native_enum=False, values_callable=lambda x: [e.value for e in x]),
        default=Role.STUDENT,
        nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def full_name(self) -> str:
        """Get user's full name."""
        return f"{self.first_name} {self.last_name}".strip()

    @staticmethod
    def normalize_email(email: str) -> str:
        """Normalize emails so uniqueness checks are case-insensitive."""
        return email.strip().lower()

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["User"]:
        """Get user by ID."""
        result = await db_session.execute(select(cls).where(cls.id == id))
        return result.scalars().first()

    @classmethod
    async def get_by_email(
        cls, db_session: AsyncSession, email: str
    ) -> Optional["User"]:
        """Get user by email."""
        normalized_email = cls.normalize_email(email)
        result = await db_session.execute(
            select(cls).where(cls.email == normalized_email)
        )
        return result.scalars().first()

    @classmethod
    async def create_user(
        cls,
        db_session: AsyncSession,
        email: str,
        first_name: str,
        last_name: str,
        hashed_password: Optional[str] = None,
        role: Role = Role.STUDENT,
        phone: Optional[str] = None,
    ) -> "User":
        """Create a new user."""
        user = cls(
            email=cls.normalize_email(email),
            first_name=first_name,
            last_name=last_name,
            hashed_password=hashed_password,
            role=role,
            phone=phone,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
