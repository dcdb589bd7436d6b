"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with JWT authentication.
The token is read from the `Authorization: Bearer` header, falling back to the
`jwt` cookie set at login.
"""

from datetime import timezone
from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.core.jwt import decode_access_token
from backend.app.core.timeutils import as_naive_utc
from backend.app.core.token_revocation import is_token_revoked
from backend.app.db.session import get_db
from backend.app.models.user import User

# HTTP Bearer security scheme; missing header falls through to the cookie
security = HTTPBearer(auto_error=False)

JWT_COOKIE_NAME = "jwt"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Extract the raw JWT from the header or the cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    token = request.cookies.get(JWT_COOKIE_NAME)
    if not token:
        raise _unauthorized("You are not logged in. Please log in to get access.")
    return token


def issued_before_password_change(payload: dict, user: User) -> bool:
    if not user.password_changed_at:
        return False
    issued_at = payload.get("iat")
    if issued_at is None:
        return True
    changed = as_naive_utc(user.password_changed_at).replace(tzinfo=timezone.utc)
    return int(issued_at) < int(changed.timestamp())


async def get_current_user(
    token: str = Depends(get_token),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Security checks:
    1. Validates JWT token signature and expiry
    2. Checks if token has been revoked (logout)
    3. Verifies the user still exists and is active
    4. Rejects tokens issued before the last password change

    Returns:
        Decoded token payload containing user_id, role and sub

    Raises:
        HTTPException: 401 if authentication fails for any reason
    """
    # 1. Decode and validate JWT
    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    user_id = payload.get("user_id")
    if not user_id:
        raise _unauthorized("Invalid token payload")

    # 2. Check if this specific token has been revoked
    if await is_token_revoked(token):
        raise _unauthorized("Token has been revoked")

    # 3. Real-time database check
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise _unauthorized("The user belonging to this token no longer exists")

    if not user.is_active:
        raise _unauthorized("User account is deactivated")

    # 4. Password changed after the token was issued
    if issued_before_password_change(payload, user):
        raise _unauthorized("Password was changed recently. Please log in again.")

    # Role in the database wins over a stale claim
    payload["role"] = user.role.value
    return payload
