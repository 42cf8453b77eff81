"""
FastAPI dependencies for the email verification flow.

Tests override these with app.dependency_overrides to swap in fakes.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.rate_limiter import RateLimitStore, email_verification_store
from app.core.verification import VerificationStore
from app.crud import store as store_crud
from app.crud.email_verification import EmailVerificationRepository
from app.services.email_service import get_email_service
from app.services.verification_service import EmailSender, EmailVerificationService


def get_rate_limit_store() -> RateLimitStore:
    """Process-wide send-verification rate limit store."""
    return email_verification_store


def get_email_sender() -> EmailSender:
    return get_email_service()


def get_verification_store(db: Session = Depends(get_db)) -> VerificationStore:
    """Verification store bound to the request's database session."""
    return VerificationStore(EmailVerificationRepository(db))


def get_verification_service(
    store: VerificationStore = Depends(get_verification_store),
    email_sender: EmailSender = Depends(get_email_sender),
    db: Session = Depends(get_db)
) -> EmailVerificationService:
    return EmailVerificationService(
        store=store,
        email_sender=email_sender,
        account_exists=lambda email: store_crud.email_exists(db, email),
    )
