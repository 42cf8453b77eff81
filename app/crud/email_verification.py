"""
Database operations for EmailVerification records.

Implements the VerificationBackend interface on top of a SQLAlchemy
session, so VerificationStore can run against PostgreSQL in production
and SQLite in tests.
"""

from typing import Optional
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StorageError
from app.core.verification import VerificationBackend, VerificationRecord, as_utc
from app.models.email_verification import EmailVerification


def _to_record(row: EmailVerification) -> VerificationRecord:
    return VerificationRecord(
        id=row.id,
        email=row.email,
        code=row.code,
        expires_at=as_utc(row.expires_at),
        is_verified=bool(row.is_verified),
        attempt_count=row.attempt_count or 0,
        created_at=as_utc(row.created_at),
    )


class EmailVerificationRepository(VerificationBackend):
    """
    SQLAlchemy-backed verification storage.

    Every method commits its own unit of work; SQLAlchemy errors are rolled
    back and re-raised as StorageError.
    """

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, action: str, error: SQLAlchemyError) -> StorageError:
        self.db.rollback()
        return StorageError(f"Failed to {action}: {error}")

    def latest(self, email: str) -> Optional[VerificationRecord]:
        try:
            row = self.db.query(EmailVerification).filter(
                EmailVerification.email == email
            ).order_by(
                EmailVerification.created_at.desc(),
                EmailVerification.id.desc()
            ).first()
        except SQLAlchemyError as e:
            raise self._fail("load verification code", e)

        return _to_record(row) if row else None

    def insert(self, record: VerificationRecord) -> VerificationRecord:
        row = EmailVerification(
            email=record.email,
            code=record.code,
            expires_at=record.expires_at,
            created_at=record.created_at,
            attempt_count=record.attempt_count,
            is_verified=record.is_verified
        )
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as e:
            raise self._fail("save verification code", e)

        return _to_record(row)

    def delete_unverified(self, email: str) -> int:
        try:
            deleted = self.db.query(EmailVerification).filter(
                EmailVerification.email == email,
                EmailVerification.is_verified == False  # noqa: E712
            ).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("delete previous verification codes", e)
        return deleted

    def delete_all(self, email: str) -> int:
        try:
            deleted = self.db.query(EmailVerification).filter(
                EmailVerification.email == email
            ).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("delete verification codes", e)
        return deleted

    def increment_attempts(self, record_id: int) -> None:
        # Single UPDATE so concurrent mismatches never lose an increment
        try:
            self.db.execute(
                update(EmailVerification)
                .where(EmailVerification.id == record_id)
                .values(attempt_count=EmailVerification.attempt_count + 1)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("update verification attempts", e)

    def mark_verified(self, record_id: int) -> None:
        try:
            self.db.execute(
                update(EmailVerification)
                .where(EmailVerification.id == record_id)
                .values(is_verified=True)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("mark verification code as used", e)

    def has_verified(self, email: str) -> bool:
        try:
            row = self.db.query(EmailVerification.id).filter(
                EmailVerification.email == email,
                EmailVerification.is_verified == True  # noqa: E712
            ).first()
        except SQLAlchemyError as e:
            raise self._fail("check verification status", e)
        return row is not None

    def reset_all(self) -> None:
        try:
            self.db.query(EmailVerification).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("clear verification codes", e)
