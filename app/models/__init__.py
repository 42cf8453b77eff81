"""
Database models package.
"""

from app.models.store import Store
from app.models.email_verification import EmailVerification

__all__ = ["Store", "EmailVerification"]
