from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from app.models.user import Role
from app.schemas.base import BaseSchema


def _check_password_strength(v: str) -> str:
    if not any(c.isupper() for c in v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in v):
        raise ValueError("Password must contain at least one digit")
    return v


class UserLogin(BaseSchema):
    """Schema for user login."""

    email: EmailStr
    password: str


class UserResponse(BaseSchema):
    """Schema for user response."""

    id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str]
    role: Role
    is_active: bool
    created_at: datetime


class TokenResponse(BaseSchema):
    """Schema for authentication token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshTokenRequest(BaseSchema):
    """Schema for refresh token request."""

    refresh_token: str


class AdminUserCreate(BaseSchema):
    """Schema for admin to create a new user."""

    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    role: Role = Role.STUDENT
    password: str = Field(..., min_length=8, max_length=100)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


class UserListResponse(BaseSchema):
    """Schema for paginated user list response."""

    items: list[UserResponse]
    total: int
