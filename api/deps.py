from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import Role, User
from app.utils.security import ACCESS_TOKEN_TYPE, decode_token
from core.db import get_db
from core.exceptions.base import ForbiddenException, UnauthorizedException

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db_session: AsyncSession = Depends(get_db),
) -> User:
    """Get the current authenticated user from JWT token."""
    if not token:
        raise UnauthorizedException(message="Not authenticated")

    payload = decode_token(token, expected_type=ACCESS_TOKEN_TYPE)

    user = await User.get_by_id(db_session, payload["sub"])
    if not user:
        raise UnauthorizedException(message="User not found")

    if not user.is_active:
        raise UnauthorizedException(message="User is inactive")

    return user


async def get_current_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """Get the current user if they have the admin role."""
    if current_user.role != Role.ADMIN:
        raise ForbiddenException(message="Admin access required")
    return current_user


async def get_current_staff(
    current_user: User = Depends(get_current_user),
) -> User:
    """Get the current user if they are a coach or admin."""
    if current_user.role not in [Role.COACH, Role.ADMIN]:
        raise ForbiddenException(message="Coach/staff access required")
    return current_user


def get_client_info(request: Request) -> dict:
    """Caller IP and user agent for the audit trail."""
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }
