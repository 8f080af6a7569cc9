"""
Error Handling
==============

Standardized error codes and exception handlers.
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """Standardized error codes."""

    # Authentication (AUTH_001 - AUTH_010)
    AUTH_INVALID_CREDENTIALS = "AUTH_001"
    AUTH_INVALID_TOKEN = "AUTH_005"

    # Webhooks
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    WEBHOOK_HANDLER_FAILED = "WEBHOOK_HANDLER_FAILED"

    # Rate Limit
    RATE_LIMITED = "RATE_LIMITED"

    # General
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"


# =============================================================================
# Custom Exceptions
# =============================================================================

class AppException(HTTPException):
    """Base application exception with structured error response."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        field: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        **extra,
    ):
        self.code = code
        self.message = message
        self.field = field
        self.extra = extra

        detail = {
            "code": code,
            "message": message,
        }

        if field:
            detail["field"] = field

        detail.update(extra)

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def __str__(self) -> str:
        return self.message


class AuthenticationError(AppException):
    """Authentication-related errors."""

    def __init__(
        self,
        code: str = ErrorCodes.AUTH_INVALID_CREDENTIALS,
        message: str = "Authentication failed",
        **extra,
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code=code,
            message=message,
            **extra,
        )


class NotFoundError(AppException):
    """Resource not found errors."""

    def __init__(
        self,
        code: str = ErrorCodes.NOT_FOUND,
        message: str = "Resource not found",
        **extra,
    ):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code=code,
            message=message,
            **extra,
        )


class InvalidArgumentError(AppException):
    """Malformed webhook input; nothing has been written."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **extra,
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            code=ErrorCodes.INVALID_ARGUMENT,
            message=message,
            field=field,
            **extra,
        )


class RateLimitedError(AppException):
    """
    Sliding window for the key is saturated.

    ``retry_after`` is whole seconds until the oldest counted request
    leaves the window (never less than 1).
    """

    def __init__(
        self,
        reset_at_ms: int,
        retry_after: int,
        remaining: int = 0,
        message: str = "Rate limit exceeded",
    ):
        self.reset_at_ms = reset_at_ms
        self.remaining = remaining
        self.retry_after = retry_after

        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            code=ErrorCodes.RATE_LIMITED,
            message=message,
            headers={"Retry-After": str(retry_after)},
            rate_limited=True,
            reset_at=reset_at_ms,
            remaining=remaining,
        )


class HandlerFailureError(AppException):
    """A type handler raised; the event was logged with status ``failed``."""

    def __init__(
        self,
        event_id: str,
        event_type: str,
        message: str,
    ):
        self.event_id = event_id
        self.event_type = event_type

        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code=ErrorCodes.WEBHOOK_HANDLER_FAILED,
            message=message,
            event_id=event_id,
            event_type=event_type,
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def app_exception_handler(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    """Handler for AppException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
        },
        headers=exc.headers,
    )


async def http_exception_handler(
    request: Request,
    exc: HTTPException,
) -> JSONResponse:
    """Handler for standard HTTPException."""
    # Check if detail is already structured
    if isinstance(exc.detail, dict) and "code" in exc.detail:
        error = exc.detail
    else:
        error = {
            "code": "HTTP_ERROR",
            "message": str(exc.detail),
        }

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": error,
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handler for request validation errors."""
    errors = exc.errors() if hasattr(exc, "errors") else []
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", []))
        message = first_error.get("msg", "Validation error")
    else:
        field = None
        message = str(exc) or "Validation error"

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": {
                "code": ErrorCodes.VALIDATION_ERROR,
                "message": message,
                "field": field,
            },
        },
    )


async def global_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": {
                "code": ErrorCodes.INTERNAL_ERROR,
                "message": "An unexpected error occurred",
            },
        },
    )


def setup_exception_handlers(app):
    """
    Register exception handlers with FastAPI app.

    Usage:
        from revenuecat_mirror.core.errors import setup_exception_handlers
        setup_exception_handlers(app)
    """
    from fastapi.exceptions import RequestValidationError

    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
