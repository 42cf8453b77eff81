"""
CRUD operations package.

Provides database access functions following the Repository pattern.
"""

from app.crud import store
from app.crud.email_verification import EmailVerificationRepository

__all__ = ["store", "EmailVerificationRepository"]
