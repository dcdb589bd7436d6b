"""
Observability middleware and logging setup.

Every request gets a correlation ID (taken from X-Correlation-ID or freshly
generated). It is echoed back on the response and stamped on every log
record emitted while the request is being handled, so a trip booking and
the mails and activity rows it triggers can be read together.
"""

import time
import uuid
import logging
from contextvars import ContextVar
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from backend.app.core.config import settings

logger = logging.getLogger("fleet.requests")

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(correlation_id)s] %(message)s"


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id_var.get()
        return True


def configure_logging(level: str = None) -> None:
    """Configure root logging once at startup."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(CorrelationIdFilter())

    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    if not any(isinstance(f, CorrelationIdFilter) for h in root.handlers for f in h.filters):
        root.addHandler(handler)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            correlation_id_var.reset(token)

        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time"] = str(duration_ms)

        log_data = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
            "ip": request.client.host if request.client else "unknown",
        }
        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level, "%s %s -> %s in %sms from %s",
            log_data["method"], log_data["path"], log_data["status_code"], duration_ms, log_data["ip"],
            extra=log_data,
        )
        return response
