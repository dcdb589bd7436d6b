"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class TokenRevokedError(AppException):
    """Raised when token has been revoked."""

    def __init__(self):
        super().__init__(
            message="Token has been revoked",
            error_code="ERR_AUTH_002",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class BusinessRuleError(AppException):
    """Raised when a request breaks a domain precondition."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_RULE_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class InvalidTransitionError(AppException):
    """Raised when the requested trip status is not reachable from the current one."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            message=f"Cannot change trip status from {current} to {requested}",
            error_code="ERR_TRIP_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"current_status": current, "requested_status": requested}
        )


class TransitionNotAllowedError(AppException):
    """Raised when the acting role may not request the target status."""

    def __init__(self, role: str, requested: str):
        super().__init__(
            message=f"Role {role} is not allowed to set trip status to {requested}",
            error_code="ERR_TRIP_002",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"role": role, "requested_status": requested}
        )


class PodMissingError(AppException):
    """Raised when an operation needs a proof of delivery that was never uploaded."""

    def __init__(self, message: str = "Proof of delivery must be uploaded first"):
        super().__init__(
            message=message,
            error_code="ERR_POD_002",
            status_code=status.HTTP_400_BAD_REQUEST
        )


class PodNotVerifiedError(AppException):
    """Raised when completion is requested while the proof of delivery is unverified."""

    def __init__(self, pod_status: str):
        super().__init__(
            message="Proof of delivery must be verified before the trip can be completed",
            error_code="ERR_POD_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"pod_status": pod_status}
        )


class LedgerLimitError(AppException):
    """Raised when a payment would push the paid amount past the billable total."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_LEDGER_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class SequenceGenerationError(AppException):
    """Raised when the counter store cannot hand out a number."""

    def __init__(self, counter_name: str):
        super().__init__(
            message="Failed to generate sequence number",
            error_code="ERR_COUNTER_001",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"counter": counter_name}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        413: "ERR_PAYLOAD_TOO_LARGE",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Strip non-serialisable context (e.g. raised ValueErrors) from validation errors."""
    errors = []
    for error in exc.errors():
        cleaned = {key: value for key, value in error.items() if key != "ctx"}
        if "ctx" in error:
            cleaned["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(cleaned)
    return errors


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        type(exc).__name__,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
