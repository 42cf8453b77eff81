"""
Email verification model for numeric sign-up verification codes.

Each code is single-use, time-limited (3 minutes by default) and carries
an attempt counter to stop brute force guessing.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Index
from app.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmailVerification(Base):
    """
    Verification codes sent to prospective store owners.

    - One unverified row per email (new codes replace old ones)
    - Verified rows are kept as history
    - Attempt tracking for brute force protection
    """
    __tablename__ = "email_verifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, index=True)

    code = Column(String(10), nullable=False)

    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    attempt_count = Column(Integer, nullable=False, default=0)
    is_verified = Column(Boolean, nullable=False, default=False)  # Single-use enforcement

    __table_args__ = (
        Index('ix_email_verifications_email_verified', 'email', 'is_verified'),
        Index('ix_email_verifications_created_at', 'created_at'),
    )

    def __repr__(self):
        return f"<EmailVerification(email={self.email}, expires_at={self.expires_at}, is_verified={self.is_verified})>"
