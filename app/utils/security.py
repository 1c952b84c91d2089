from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import bcrypt
from jose import JWTError, jwt

from core.config import config
from core.exceptions.base import UnauthorizedException

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(
        plain_password.encode("utf-8"), hashed_password.encode("utf-8")
    )


def _encode(claims: dict, expires_in: timedelta) -> str:
    payload = {
        **claims,
        "iss": config.APP_NAME,
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, config.SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def create_access_token(user_id: str, role: str) -> str:
    """Create a short-lived access token carrying the user's role."""
    return _encode(
        {"sub": user_id, "role": role, "type": ACCESS_TOKEN_TYPE},
        timedelta(minutes=config.JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user_id: str) -> str:
    """Create a long-lived refresh token."""
    return _encode(
        {"sub": user_id, "type": REFRESH_TOKEN_TYPE},
        timedelta(days=config.JWT_REFRESH_TOKEN_EXPIRE_DAYS),
    )


def decode_token(token: str, expected_type: Optional[str] = None) -> dict:
    """Decode and verify a JWT, optionally checking its ``type`` claim."""
    try:
        payload = jwt.decode(
            token,
            config.SECRET_KEY,
            algorithms=[config.JWT_ALGORITHM],
            issuer=config.APP_NAME,
        )
    except JWTError:
        raise UnauthorizedException(message="Invalid or expired token")

    if expected_type and payload.get("type") != expected_type:
        raise UnauthorizedException(message="Invalid token type")
    if not payload.get("sub"):
        raise UnauthorizedException(message="Invalid token payload")
    return payload


def create_tokens(user_id: str, role: str) -> Tuple[str, str]:
    """Create both access and refresh tokens."""
    return create_access_token(user_id, role), create_refresh_token(user_id)
