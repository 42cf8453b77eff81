"""
Email verification endpoints.

Handles sending and verifying numeric email verification codes for store
sign-up.
"""

import logging
from fastapi import APIRouter, Depends, Query, Request

from app.core.config import settings
from app.core.deps import get_rate_limit_store, get_verification_service
from app.core.exceptions import EmailAlreadyExistsError, InvalidInputError
from app.core.rate_limiter import RateLimitStore, check_rate_limit, get_client_ip, rate_limit_key
from app.core.responses import success_response
from app.schemas.verification import (
    SendVerificationRequest,
    SendVerificationResponse,
    VerificationStatusResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from app.services.verification_service import EmailVerificationService

router = APIRouter(prefix="/auth/email", tags=["Email Verification"])
logger = logging.getLogger(__name__)


@router.post("/send-verification", response_model=SendVerificationResponse)
def send_verification_code(
    payload: SendVerificationRequest,
    request: Request,
    service: EmailVerificationService = Depends(get_verification_service),
    rate_limit_store: RateLimitStore = Depends(get_rate_limit_store)
):
    """
    Generate a verification code and email it.

    Rate limit: EMAIL_VERIFICATION_RATE_LIMIT_MAX requests per
    EMAIL_VERIFICATION_RATE_LIMIT_WINDOW seconds, keyed by email
    (falls back to the client IP).

    Raises:
        400 VALIDATION_ERROR / EMAIL_ALREADY_EXISTS
        429 RATE_LIMIT_EXCEEDED
        500 DATABASE_ERROR / EMAIL_SEND_ERROR
    """
    key = rate_limit_key(payload.email, get_client_ip(request))
    rate_limited = not settings.DISABLE_RATE_LIMIT

    if rate_limited:
        check_rate_limit(rate_limit_store, key, settings.EMAIL_VERIFICATION_RATE_LIMIT_MAX)

    try:
        data = service.request_code(payload.email)
    except (InvalidInputError, EmailAlreadyExistsError):
        # Nothing was sent, so this request does not count against the limit
        if rate_limited:
            rate_limit_store.decrement(key)
        raise

    return success_response(data, "Verification code sent to your email")


@router.post("/verify-code", response_model=VerifyCodeResponse)
def verify_code(
    payload: VerifyCodeRequest,
    service: EmailVerificationService = Depends(get_verification_service)
):
    """
    Verify an email with the code that was sent to it.

    No rate limit; the per-code attempt budget stops brute force.

    Raises:
        400 VALIDATION_ERROR / VERIFICATION_FAILED (details.reason tells why)
        500 DATABASE_ERROR (storage failure; the attempt is not counted)
    """
    data = service.confirm_code(payload.email, payload.code)
    return success_response(data, "Email verification completed")


@router.get("/verification-status", response_model=VerificationStatusResponse)
def get_verification_status(
    email: str = Query(default=""),
    service: EmailVerificationService = Depends(get_verification_service)
):
    """
    Whether an email has completed verification.

    Used by the registration flow before creating a store.
    """
    return success_response(service.verification_status(email))
