"""
Token Revocation System using Redis.

Implements token blacklisting so a logged-out JWT stops working
before it expires.
"""

import logging
from backend.app.core.redis_client import get_client
from backend.app.core.config import settings

logger = logging.getLogger(__name__)

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


async def revoke_token(token: str, user_id: int) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        token: The JWT token string to revoke
        user_id: User ID who owns the token

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        # Tokens expire on their own, the blacklist entry only has to outlive them
        ttl_seconds = settings.access_token_expire_minutes * 60
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        await get_client().set(key, str(user_id), ex=ttl_seconds)
        return True
    except Exception as e:
        logger.warning("Error revoking token for user %s: %s", user_id, e)
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.

    Args:
        token: JWT token string to check

    Returns:
        True if token is revoked, False otherwise
    """
    try:
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        exists = await get_client().exists(key)
        return exists > 0
    except Exception as e:
        # Redis down: allow the request, signature and expiry are still enforced
        logger.warning("Error checking token revocation: %s", e)
        return False
