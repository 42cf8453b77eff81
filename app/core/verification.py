"""
Core email verification logic.

Handles generation, storage, and single-use validation of numeric
verification codes. The rules live in VerificationStore; persistence goes
through a VerificationBackend so the same rules run against the database
in production (app.crud.email_verification) and an in-memory backend in
tests.
"""

import hmac
import logging
import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from app.core.config import settings
from app.core.exceptions import (
    InvalidInputError,
    StorageError,
    VerificationFailedError,
    VerificationFailure,
)
from app.core.validation import is_blank

logger = logging.getLogger(__name__)


CODE_LENGTH = settings.EMAIL_VERIFICATION_CODE_LENGTH
CODE_EXPIRES_IN = settings.EMAIL_VERIFICATION_CODE_EXPIRES_IN
MAX_VERIFICATION_ATTEMPTS = settings.EMAIL_VERIFICATION_MAX_ATTEMPTS


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_verification_code(length: int = CODE_LENGTH) -> str:
    """
    Generate a numeric verification code of exactly `length` digits.

    The value is drawn uniformly from [10^(length-1), 10^length - 1], so
    the first digit is never zero.

    Returns:
        str: numeric code (e.g., "482913")
    """
    low = 10 ** (length - 1)
    high = 10 ** length - 1
    return str(low + secrets.randbelow(high - low + 1))


@dataclass
class VerificationRecord:
    """A stored (email, code, expiry, attempt count, verified flag) tuple."""
    email: str
    code: str
    expires_at: datetime
    is_verified: bool = False
    attempt_count: int = 0
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None


class VerificationBackend(ABC):
    """
    Persistence interface for verification records.

    Implementations raise StorageError when the underlying storage fails.
    """

    @abstractmethod
    def latest(self, email: str) -> Optional[VerificationRecord]:
        """Most recently created record for email, verified or not."""

    @abstractmethod
    def insert(self, record: VerificationRecord) -> VerificationRecord:
        """Store a new record and return it with its id assigned."""

    @abstractmethod
    def delete_unverified(self, email: str) -> int:
        """Delete every unverified record for email."""

    @abstractmethod
    def delete_all(self, email: str) -> int:
        """Delete every record for email."""

    @abstractmethod
    def increment_attempts(self, record_id: int) -> None:
        """Add one to attempt_count."""

    @abstractmethod
    def mark_verified(self, record_id: int) -> None:
        """Set is_verified on the record."""

    @abstractmethod
    def has_verified(self, email: str) -> bool:
        """True if any record for email is verified."""

    @abstractmethod
    def reset_all(self) -> None:
        """Remove every record."""


class InMemoryVerificationBackend(VerificationBackend):
    """Process-local backend, used by tests and local development."""

    def __init__(self):
        self._records: Dict[str, List[VerificationRecord]] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def _find(self, record_id: int) -> VerificationRecord:
        for records in self._records.values():
            for record in records:
                if record.id == record_id:
                    return record
        raise StorageError(f"Verification record {record_id} not found")

    def latest(self, email: str) -> Optional[VerificationRecord]:
        with self._lock:
            records = self._records.get(email)
            if not records:
                return None
            newest = max(records, key=lambda r: (r.created_at, r.id))
            return replace(newest)

    def insert(self, record: VerificationRecord) -> VerificationRecord:
        with self._lock:
            stored = replace(record, id=self._next_id)
            self._next_id += 1
            self._records.setdefault(stored.email, []).append(stored)
            return replace(stored)

    def delete_unverified(self, email: str) -> int:
        with self._lock:
            records = self._records.get(email, [])
            kept = [r for r in records if r.is_verified]
            self._records[email] = kept
            return len(records) - len(kept)

    def delete_all(self, email: str) -> int:
        with self._lock:
            return len(self._records.pop(email, []))

    def increment_attempts(self, record_id: int) -> None:
        with self._lock:
            self._find(record_id).attempt_count += 1

    def mark_verified(self, record_id: int) -> None:
        with self._lock:
            self._find(record_id).is_verified = True

    def has_verified(self, email: str) -> bool:
        with self._lock:
            return any(r.is_verified for r in self._records.get(email, []))

    def all_records(self, email: str) -> List[VerificationRecord]:
        """Copies of every record for email (inspection helper)."""
        with self._lock:
            return [replace(r) for r in self._records.get(email, [])]

    def reset_all(self) -> None:
        with self._lock:
            self._records.clear()
            self._next_id = 1


class VerificationStore:
    """
    Verification code lifecycle for one backend.

    State per email: Issued -> Verified (terminal) on a match, back to
    Issued with attempt_count + 1 on a mismatch, and rejected for good once
    attempts are exhausted or the code expired. save_code always starts a
    fresh Issued record.

    Not atomic across requests: two concurrent save_code calls may leave
    two unverified rows for a moment (the newest wins on read), and two
    concurrent mismatches may both pass the attempts check before either
    increment lands.
    """

    def __init__(
        self,
        backend: VerificationBackend,
        code_expires_in: int = CODE_EXPIRES_IN,
        max_attempts: int = MAX_VERIFICATION_ATTEMPTS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.backend = backend
        self.code_expires_in = code_expires_in
        self.max_attempts = max_attempts
        self.clock = clock

    def save_code(self, email: str, code: str) -> str:
        """
        Store a new code for email, replacing any unverified one.

        Verified records are kept for history.

        Args:
            email: Address the code was issued for
            code: Numeric verification code

        Returns:
            str: The stored code

        Raises:
            InvalidInputError: email or code is blank
            StorageError: persistence failed
        """
        if is_blank(email):
            raise InvalidInputError("Email is required", {"field": "email"})
        if is_blank(code):
            raise InvalidInputError("Verification code is required", {"field": "code"})

        now = self.clock()
        record = VerificationRecord(
            email=email,
            code=code,
            expires_at=now + timedelta(seconds=self.code_expires_in),
            created_at=now,
        )

        self.backend.delete_unverified(email)
        self.backend.insert(record)
        return code

    def verify_code(self, email: str, code: str) -> VerificationRecord:
        """
        Check a submitted code against the latest record for email.

        Used, exhausted and expired records are rejected before the code is
        compared, so they never consume an attempt.

        Returns:
            VerificationRecord: the record, now marked verified

        Raises:
            VerificationFailedError: with the rejection reason
            StorageError: persistence failed
        """
        record = self.backend.latest(email)

        if record is None:
            raise VerificationFailedError(VerificationFailure.NOT_FOUND, email)

        if record.is_verified:
            raise VerificationFailedError(VerificationFailure.ALREADY_USED, email)

        if record.attempt_count >= self.max_attempts:
            raise VerificationFailedError(VerificationFailure.ATTEMPTS_EXCEEDED, email)

        if self.clock() >= as_utc(record.expires_at):
            raise VerificationFailedError(VerificationFailure.EXPIRED, email)

        if not hmac.compare_digest(record.code.encode(), str(code).encode()):
            self.backend.increment_attempts(record.id)
            logger.info(f"Verification code mismatch for {email} (attempt {record.attempt_count + 1})")
            raise VerificationFailedError(VerificationFailure.MISMATCH, email)

        self.backend.mark_verified(record.id)
        record.is_verified = True
        return record

    def is_email_verified(self, email: str) -> bool:
        """
        Whether email has ever completed verification.

        Storage errors count as "not verified".
        """
        try:
            return self.backend.has_verified(email)
        except StorageError as e:
            logger.error(f"Failed to check verification status for {email}: {e.message}")
            return False

    def delete_codes(self, email: str) -> int:
        """Remove every record for email. Returns the number removed."""
        if is_blank(email):
            raise InvalidInputError("Email is required", {"field": "email"})
        return self.backend.delete_all(email)

    def reset_all(self) -> None:
        """Clear all records (test isolation)."""
        self.backend.reset_all()
