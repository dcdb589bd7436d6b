"""
Redis client initialization and connection management.

Redis backs the token blacklist and the request rate limiter.
"""

import redis.asyncio as redis
from backend.app.core.config import settings


# Create async Redis client (connects lazily on first command)
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


def get_client():
    """
    Return the active Redis client.

    Looked up on every call so tests can swap the module-level client.
    """
    return redis_client


async def get_redis():
    """
    Get Redis client instance.

    This can be used as a FastAPI dependency if needed.
    """
    return get_client()


async def ping_redis() -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await get_client().ping()
    except Exception:
        return False
