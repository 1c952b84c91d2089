import os
from datetime import date, time, timedelta
from typing import AsyncGenerator, List, Optional, Tuple

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

# Ensure critical settings exist before the app/config modules import.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-change-me-please-0123456789")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("SENDGRID_API_KEY", "")

from app.models.activity import Activity, ActivitySchedule, Weekday
from app.models.student import Student
from app.models.user import Role, User
from app.utils.security import create_tokens, hash_password
from core.db import async_session_factory, engine, get_db
from core.db.base import Base
from main import app

# Tests share the application's engine: SQLite file database, NullPool
TestSessionLocal = async_session_factory


@pytest.fixture(autouse=True)
async def setup_db():
    """Create and drop all tables for each test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for testing."""
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    """Open independent sessions, e.g. one per concurrent request."""
    return TestSessionLocal


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing."""

    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============== Users ==============


async def _make_user(
    db_session: AsyncSession, email: str, role: Role, first_name: str, last_name: str = "User"
) -> User:
    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        hashed_password=hash_password("TestPass123"),
        role=role,
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def _headers(user: User) -> dict:
    access_token, _ = create_tokens(user.id, user.role.value)
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create an admin test user."""
    return await _make_user(db_session, "admin@example.com", Role.ADMIN, "Admin")


@pytest.fixture
async def coach_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "coach@example.com", Role.COACH, "Coach")


@pytest.fixture
async def other_coach(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "coach2@example.com", Role.COACH, "Other", "Coach")


@pytest.fixture
async def parent_user(db_session: AsyncSession) -> User:
    """Create a parent test user; owns ``test_student``."""
    return await _make_user(db_session, "parent@example.com", Role.PARENT, "Parent")


@pytest.fixture
async def other_parent(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "parent2@example.com", Role.PARENT, "Other", "Parent")


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    """Create authentication headers for admin user."""
    return _headers(admin_user)


@pytest.fixture
def coach_headers(coach_user: User) -> dict:
    return _headers(coach_user)


@pytest.fixture
def other_coach_headers(other_coach: User) -> dict:
    return _headers(other_coach)


@pytest.fixture
def parent_headers(parent_user: User) -> dict:
    """Create authentication headers for parent user."""
    return _headers(parent_user)


@pytest.fixture
def other_parent_headers(other_parent: User) -> dict:
    return _headers(other_parent)


# ============== Students & activities ==============


@pytest.fixture
async def create_student(db_session: AsyncSession):
    """Factory fixture to create students."""

    async def _create_student(
        first_name: str = "Test",
        last_name: str = "Student",
        grade_level: Optional[int] = 7,
        age: Optional[int] = 12,
        user: Optional[User] = None,
    ) -> Student:
        student = Student(
            first_name=first_name,
            last_name=last_name,
            grade_level=grade_level,
            date_of_birth=(date.today() - timedelta(days=365 * age + 30)) if age else None,
            user_id=user.id if user else None,
        )
        db_session.add(student)
        await db_session.commit()
        await db_session.refresh(student)
        return student

    return _create_student


@pytest.fixture
async def test_student(create_student, parent_user: User) -> Student:
    """Grade 7 student, 12 years old, managed by ``parent_user``."""
    return await create_student("Alex", "Kumar", user=parent_user)


Slot = Tuple[Weekday, time, time]


@pytest.fixture
async def create_activity(db_session: AsyncSession):
    """Factory fixture to create activities with weekly schedules."""

    async def _create_activity(
        name: str = "Football Training",
        capacity: int = 2,
        slots: Optional[List[Slot]] = None,
        coach: Optional[User] = None,
        **kwargs,
    ) -> Activity:
        if slots is None:
            slots = [(Weekday.MONDAY, time(16, 0), time(17, 0))]
        return await Activity.create_activity(
            db_session,
            name=name,
            category=kwargs.pop("category", "sports"),
            capacity=capacity,
            coach_id=coach.id if coach else None,
            schedules=[
                ActivitySchedule(
                    day_of_week=day,
                    start_time=start,
                    end_time=end,
                    effective_from=date.today() - timedelta(days=1),
                    venue_id=kwargs.get("venue_id"),
                )
                for day, start, end in slots
            ],
            **{k: v for k, v in kwargs.items() if k != "venue_id"},
        )

    return _create_activity


@pytest.fixture
async def test_activity(create_activity, coach_user: User) -> Activity:
    """Monday 16:00-17:00, two seats, coached by ``coach_user``."""
    return await create_activity(coach=coach_user)
