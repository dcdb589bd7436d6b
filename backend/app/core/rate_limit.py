"""
Fixed-window request rate limiting backed by Redis.

Each client IP gets `rate_limit_max_requests` calls per
`rate_limit_window_seconds` on the API prefix.
"""

import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from backend.app.core.config import settings
from backend.app.core.redis_client import get_client

logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "ratelimit:"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_requests: int = None, window_seconds: int = None, path_prefix: str = None):
        super().__init__(app)
        self.max_requests = max_requests or settings.rate_limit_max_requests
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds
        self.path_prefix = path_prefix or f"/{settings.api_version}"

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        key = f"{RATE_LIMIT_PREFIX}{client_ip}"

        try:
            client = get_client()
            hits = await client.incr(key)
            if hits == 1:
                await client.expire(key, self.window_seconds)
        except Exception as e:
            # Limiter unavailable, serve the request
            logger.warning("Rate limiter unavailable: %s", e)
            return await call_next(request)

        if hits > self.max_requests:
            return JSONResponse(
                status_code=429,
                content={
                    "error_code": "ERR_RATE_LIMIT",
                    "message": "Too many requests from this IP, please try again later",
                    "details": {"window_seconds": self.window_seconds}
                }
            )

        return await call_next(request)
