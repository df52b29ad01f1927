from datetime import datetime, timedelta, timezone

import jwt

from ..core.config import settings
from ..core.exceptions import InvalidTokenException

def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Dictionary of claims, must include "user_id"
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT string
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.jwt_expiry_hours)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)

def verify_token(token: str) -> dict:
    """
    Verify and decode a JWT token.

    Raises:
        InvalidTokenException: If the token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        raise InvalidTokenException(detail="Invalid authentication credentials")

def user_id_from_token(token: str) -> str:
    """Returns the "user_id" claim of a verified token."""
    if not token:
        raise InvalidTokenException(detail="Token not provided")
    user_id = verify_token(token).get("user_id")
    if not user_id:
        raise InvalidTokenException()
    return str(user_id)
