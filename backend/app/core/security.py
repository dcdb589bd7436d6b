"""
Password hashing and one-time token helpers.
"""

import hashlib
import secrets
from typing import Tuple
from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    """Hash a plain password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plain password against its bcrypt hash."""
    return pwd_context.verify(plain_password, hashed_password)


def hash_token(raw_token: str) -> str:
    """Hash a one-time token for storage (sha256 hex)."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_one_time_token() -> Tuple[str, str]:
    """
    Create a random token for password reset or email verification.

    Returns:
        (raw_token, hashed_token). The raw token goes to the user by email,
        only the hash is persisted.
    """
    raw_token = secrets.token_hex(32)
    return raw_token, hash_token(raw_token)
