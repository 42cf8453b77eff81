"""
Application error types and their FastAPI handlers.

Every failure the API reports is an AppError carrying a machine-readable
code and an HTTP status. The handlers registered here turn them into the
standard error envelope so nothing reaches the transport layer uncaught.
"""

import enum
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.responses import error_response

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto the API error envelope."""

    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "An unexpected server error occurred"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class InvalidInputError(AppError):
    """Missing or malformed request input."""
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class EmailAlreadyExistsError(AppError):
    """A store account is already registered with this email."""
    code = "EMAIL_ALREADY_EXISTS"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "This email is already registered"


class VerificationFailure(str, enum.Enum):
    """Reason a submitted verification code was rejected."""
    NOT_FOUND = "CODE_NOT_FOUND"
    ALREADY_USED = "CODE_ALREADY_USED"
    ATTEMPTS_EXCEEDED = "ATTEMPTS_EXCEEDED"
    EXPIRED = "CODE_EXPIRED"
    MISMATCH = "CODE_MISMATCH"


_FAILURE_MESSAGES = {
    VerificationFailure.NOT_FOUND: "Verification code not found",
    VerificationFailure.ALREADY_USED: "This code has already been used",
    VerificationFailure.ATTEMPTS_EXCEEDED: "Maximum attempts exceeded. Please request a new verification code",
    VerificationFailure.EXPIRED: "Verification code has expired. Please request a new code",
    VerificationFailure.MISMATCH: "Verification code does not match",
}


class VerificationFailedError(AppError):
    """
    A verification code was rejected.

    The HTTP code is always VERIFICATION_FAILED; `reason` tells the five
    rejection causes apart and is exposed as details.reason.
    """
    code = "VERIFICATION_FAILED"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, reason: VerificationFailure, email: Optional[str] = None):
        self.reason = reason
        details: Dict[str, Any] = {"reason": reason.value}
        if email is not None:
            details["email"] = email
        super().__init__(_FAILURE_MESSAGES[reason], details)


class RateLimitExceededError(AppError):
    """Too many requests for the same key inside one window."""
    code = "RATE_LIMIT_EXCEEDED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(
            message or f"Too many requests. Please try again in {retry_after} seconds.",
            {"retryAfter": retry_after, "windowMs": retry_after * 1000},
        )


class StorageError(AppError):
    """The persistence layer failed."""
    code = "DATABASE_ERROR"
    default_message = "Failed to access verification storage"


class EmailSendError(AppError):
    """The email collaborator could not deliver the message."""
    code = "EMAIL_SEND_ERROR"
    default_message = "Failed to send verification email"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")

    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.retry_after)}

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.details),
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    logger.warning(f"Validation error: {errors} - Path: {request.url.path}")

    field = None
    if errors:
        loc = [str(part) for part in errors[0].get("loc", ()) if part != "body"]
        field = ".".join(loc) or None

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response(
            InvalidInputError.code,
            "Invalid request body",
            {"field": field} if field else None,
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response(AppError.code, AppError.default_message),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-producing handlers to the application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
