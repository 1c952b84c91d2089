from datetime import datetime, timezone
from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.schemas.user import AdminUserCreate, TokenResponse
from app.utils.security import (
    REFRESH_TOKEN_TYPE,
    create_tokens,
    decode_token,
    hash_password,
    verify_password,
)
from core.exceptions.base import BadRequestException, UnauthorizedException
from core.logging import get_logger

logger = get_logger(__name__)


class AuthService:
    """Service for authentication operations."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def login(self, email: str, password: str) -> Tuple[User, TokenResponse]:
        """Authenticate user with email and password."""
        user = await User.get_by_email(self.db_session, email)

        if not user or not user.hashed_password:
            raise UnauthorizedException(message="Invalid email or password")

        if not verify_password(password, user.hashed_password):
            logger.info(f"Failed login attempt for {User.normalize_email(email)}")
            raise UnauthorizedException(message="Invalid email or password")

        if not user.is_active:
            raise UnauthorizedException(message="Account is deactivated")

        user.last_login = datetime.now(timezone.utc)
        await self.db_session.commit()

        access_token, refresh_token = create_tokens(user.id, user.role.value)

        return user, TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
        )

    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        """Issue a new token pair from a valid refresh token."""
        payload = decode_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)

        user = await User.get_by_id(self.db_session, payload["sub"])
        if not user or not user.is_active:
            raise UnauthorizedException(message="User not found or inactive")

        access_token, new_refresh_token = create_tokens(user.id, user.role.value)

        return TokenResponse(
            access_token=access_token,
            refresh_token=new_refresh_token,
        )

    async def create_user(self, data: AdminUserCreate) -> User:
        """Create an account with a password (admin operation)."""
        existing_user = await User.get_by_email(self.db_session, data.email)
        if existing_user:
            raise BadRequestException(message="Email already registered")

        return await User.create_user(
            db_session=self.db_session,
            email=data.email,
            first_name=data.first_name,
            last_name=data.last_name,
            hashed_password=hash_password(data.password),
            role=data.role,
            phone=data.phone,
        )
