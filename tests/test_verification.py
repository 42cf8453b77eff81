"""
Unit tests for verification code generation and the verification store.

Store tests run against both the in-memory backend and the SQLAlchemy
repository (SQLite).

Tests:
- Code format and spread
- Supersession of unverified codes
- Single-use, attempt budget and expiry rules
- Verified-email lookup
"""

import re
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import InvalidInputError, StorageError, VerificationFailedError, VerificationFailure
from app.core.verification import (
    InMemoryVerificationBackend,
    VerificationStore,
    as_utc,
    generate_verification_code,
)
from app.crud.email_verification import EmailVerificationRepository
from app.models.email_verification import EmailVerification


EMAIL = "owner@example.com"


def unverified_codes(store: VerificationStore, email: str):
    """Codes of every unverified record for email, whatever the backend."""
    backend = store.backend
    if isinstance(backend, InMemoryVerificationBackend):
        return [r.code for r in backend.all_records(email) if not r.is_verified]
    rows = backend.db.query(EmailVerification).filter(
        EmailVerification.email == email,
        EmailVerification.is_verified == False  # noqa: E712
    ).all()
    return [row.code for row in rows]


def assert_rejected(store, email, code, reason):
    with pytest.raises(VerificationFailedError) as exc_info:
        store.verify_code(email, code)
    assert exc_info.value.reason == reason
    return exc_info.value


class TestGenerateVerificationCode:
    """Test numeric code generation"""

    def test_default_length_is_six_digits(self):
        for _ in range(50):
            assert re.fullmatch(r"\d{6}", generate_verification_code())

    def test_first_digit_is_never_zero(self):
        for _ in range(200):
            assert generate_verification_code(4)[0] != "0"

    def test_configured_length(self):
        code = generate_verification_code(8)
        assert re.fullmatch(r"[1-9]\d{7}", code)

    def test_codes_are_spread(self):
        codes = {generate_verification_code() for _ in range(100)}
        assert len(codes) >= 95


class TestSaveCode:
    """Test storing codes"""

    def test_returns_stored_code(self, verification_store):
        assert verification_store.save_code(EMAIL, "123456") == "123456"

    @pytest.mark.parametrize("email,code", [("", "123456"), ("   ", "123456"), (EMAIL, ""), (EMAIL, "  "), (None, "1")])
    def test_blank_input_rejected(self, verification_store, email, code):
        with pytest.raises(InvalidInputError):
            verification_store.save_code(email, code)

    def test_new_code_supersedes_unverified_code(self, verification_store):
        verification_store.save_code(EMAIL, "111111")
        verification_store.save_code(EMAIL, "222222")

        assert unverified_codes(verification_store, EMAIL) == ["222222"]

    def test_expiry_is_now_plus_ttl(self, verification_store, clock):
        verification_store.save_code(EMAIL, "123456")

        record = verification_store.backend.latest(EMAIL)
        assert as_utc(record.expires_at) == clock() + timedelta(seconds=180)
        assert record.attempt_count == 0
        assert record.is_verified is False

    def test_verified_history_is_kept(self, verification_store, clock):
        verification_store.save_code(EMAIL, "111111")
        verification_store.verify_code(EMAIL, "111111")

        clock.advance(1)
        verification_store.save_code(EMAIL, "222222")

        assert verification_store.is_email_verified(EMAIL) is True
        latest = verification_store.backend.latest(EMAIL)
        assert latest.code == "222222"
        assert latest.is_verified is False


class TestVerifyCode:
    """Test the verification state machine"""

    def test_correct_code_verifies(self, verification_store):
        verification_store.save_code(EMAIL, "123456")

        record = verification_store.verify_code(EMAIL, "123456")

        assert record.is_verified is True
        assert verification_store.backend.latest(EMAIL).is_verified is True

    def test_code_is_single_use(self, verification_store):
        verification_store.save_code(EMAIL, "123456")
        verification_store.verify_code(EMAIL, "123456")

        assert_rejected(verification_store, EMAIL, "123456", VerificationFailure.ALREADY_USED)

    def test_unknown_email(self, verification_store):
        error = assert_rejected(verification_store, "nobody@example.com", "123456", VerificationFailure.NOT_FOUND)
        assert error.details["reason"] == "CODE_NOT_FOUND"

    def test_mismatch_increments_attempts(self, verification_store):
        verification_store.save_code(EMAIL, "123456")

        assert_rejected(verification_store, EMAIL, "000000", VerificationFailure.MISMATCH)
        assert_rejected(verification_store, EMAIL, "000001", VerificationFailure.MISMATCH)

        assert verification_store.backend.latest(EMAIL).attempt_count == 2

    def test_attempts_exhausted_rejects_correct_code(self, verification_store):
        verification_store.save_code(EMAIL, "123456")
        for _ in range(5):
            assert_rejected(verification_store, EMAIL, "999999", VerificationFailure.MISMATCH)

        assert_rejected(verification_store, EMAIL, "123456", VerificationFailure.ATTEMPTS_EXCEEDED)
        assert_rejected(verification_store, EMAIL, "999999", VerificationFailure.ATTEMPTS_EXCEEDED)

        # Rejection after exhaustion does not mutate the record
        assert verification_store.backend.latest(EMAIL).attempt_count == 5

    def test_expired_code_rejected(self, verification_store, clock):
        verification_store.save_code(EMAIL, "123456")
        clock.advance(180)

        assert_rejected(verification_store, EMAIL, "123456", VerificationFailure.EXPIRED)
        assert_rejected(verification_store, EMAIL, "000000", VerificationFailure.EXPIRED)
        assert verification_store.backend.latest(EMAIL).attempt_count == 0

    def test_code_valid_until_expiry(self, verification_store, clock):
        verification_store.save_code(EMAIL, "123456")
        clock.advance(179)

        assert verification_store.verify_code(EMAIL, "123456").is_verified is True

    def test_old_code_invalid_after_reissue(self, verification_store, clock):
        verification_store.save_code(EMAIL, "111111")
        clock.advance(1)
        verification_store.save_code(EMAIL, "222222")

        assert_rejected(verification_store, EMAIL, "111111", VerificationFailure.MISMATCH)
        assert verification_store.verify_code(EMAIL, "222222").is_verified is True

    def test_reissue_resets_attempts(self, verification_store, clock):
        verification_store.save_code(EMAIL, "111111")
        for _ in range(5):
            assert_rejected(verification_store, EMAIL, "000000", VerificationFailure.MISMATCH)

        clock.advance(1)
        verification_store.save_code(EMAIL, "222222")

        assert verification_store.verify_code(EMAIL, "222222").is_verified is True


class TestVerifiedLookup:
    """Test is_email_verified, delete_codes and reset_all"""

    def test_unverified_email(self, verification_store):
        verification_store.save_code(EMAIL, "123456")
        assert verification_store.is_email_verified(EMAIL) is False

    def test_verified_email(self, verification_store):
        verification_store.save_code(EMAIL, "123456")
        verification_store.verify_code(EMAIL, "123456")
        assert verification_store.is_email_verified(EMAIL) is True

    def test_storage_error_counts_as_unverified(self):
        backend = MagicMock()
        backend.has_verified.side_effect = StorageError("connection lost")
        store = VerificationStore(backend)

        assert store.is_email_verified(EMAIL) is False

    def test_delete_codes(self, verification_store):
        verification_store.save_code(EMAIL, "123456")
        verification_store.verify_code(EMAIL, "123456")
        verification_store.save_code(EMAIL, "654321")

        assert verification_store.delete_codes(EMAIL) == 2
        assert verification_store.backend.latest(EMAIL) is None

    def test_delete_codes_requires_email(self, verification_store):
        with pytest.raises(InvalidInputError):
            verification_store.delete_codes(" ")

    def test_reset_all(self, verification_store):
        verification_store.save_code(EMAIL, "123456")
        verification_store.save_code("other@example.com", "654321")

        verification_store.reset_all()

        assert verification_store.backend.latest(EMAIL) is None
        assert verification_store.backend.latest("other@example.com") is None


class TestRepositoryErrors:
    """Database failures surface as StorageError"""

    def test_query_failure_raises_storage_error(self):
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        store = VerificationStore(EmailVerificationRepository(db))

        with pytest.raises(StorageError):
            store.save_code(EMAIL, "123456")
        db.rollback.assert_called_once()

    def test_verify_failure_raises_storage_error(self):
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        store = VerificationStore(EmailVerificationRepository(db))

        with pytest.raises(StorageError):
            store.verify_code(EMAIL, "123456")
