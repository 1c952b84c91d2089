from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_admin, get_current_user
from app.models.user import Role, User
from app.schemas.user import AdminUserCreate, UserListResponse, UserResponse
from app.services.auth_service import AuthService
from core.db import get_db
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_profile(
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Get current user's profile."""
    return UserResponse.model_validate(current_user)


# ============== Admin User Management Endpoints ==============


@router.get("/", response_model=UserListResponse)
async def list_users(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Number of records to return"),
    search: Optional[str] = Query(None, description="Search by name or email"),
    role: Optional[Role] = Query(None, description="Filter by role"),
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> UserListResponse:
    """List users with optional filtering. Admin only."""
    query = select(User)

    if search:
        search_term = f"%{search.lower()}%"
        query = query.where(
            or_(
                func.lower(User.email).like(search_term),
                func.lower(User.first_name).like(search_term),
                func.lower(User.last_name).like(search_term),
            )
        )
    if role:
        query = query.where(User.role == role)

    total_result = await db_session.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar() or 0

    result = await db_session.execute(
        query.order_by(User.created_at.desc()).offset(skip).limit(limit)
    )
    users = result.scalars().all()

    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
    )


@router.post("/", response_model=UserResponse, status_code=201)
async def create_user(
    data: AdminUserCreate,
    current_user: User = Depends(get_current_admin),
    db_session: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Create an account (coach, student, parent or admin). Admin only."""
    logger.info(f"Create user request by admin: {current_user.id}, email: {data.email}")
    user = await AuthService(db_session).create_user(data)
    logger.info(f"User created: {user.id} ({user.role.value})")
    return UserResponse.model_validate(user)
