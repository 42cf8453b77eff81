"""
Unit tests for the email verification flow (no HTTP).
"""

import pytest

from app.core.exceptions import (
    EmailAlreadyExistsError,
    EmailSendError,
    InvalidInputError,
    VerificationFailedError,
    VerificationFailure,
)
from app.core.verification import InMemoryVerificationBackend, VerificationStore
from app.services.verification_service import EmailVerificationService


@pytest.fixture
def store(clock):
    return VerificationStore(InMemoryVerificationBackend(), clock=clock)


@pytest.fixture
def registered():
    return set()


@pytest.fixture
def service(store, email_sender, registered):
    return EmailVerificationService(
        store=store,
        email_sender=email_sender,
        account_exists=lambda email: email in registered,
        code_generator=lambda: "482913",
        code_expires_in=180,
    )


class TestRequestCode:
    """Test issuing codes"""

    def test_sends_and_stores_code(self, service, store, email_sender):
        result = service.request_code("a@b.com")

        assert result == {"email": "a@b.com", "expiresIn": 180}
        assert email_sender.sent == [{"to": "a@b.com", "code": "482913"}]
        assert store.backend.latest("a@b.com").code == "482913"

    def test_email_is_trimmed(self, service, email_sender):
        assert service.request_code("  a@b.com ")["email"] == "a@b.com"
        assert email_sender.sent[0]["to"] == "a@b.com"

    @pytest.mark.parametrize("email", [None, "", "   ", "not-an-email", "a@b", 123])
    def test_invalid_email(self, service, email_sender, email):
        with pytest.raises(InvalidInputError):
            service.request_code(email)
        assert email_sender.sent == []

    def test_registered_email_rejected(self, service, registered, store):
        registered.add("taken@b.com")

        with pytest.raises(EmailAlreadyExistsError):
            service.request_code("taken@b.com")
        assert store.backend.latest("taken@b.com") is None

    def test_send_failure_keeps_code(self, service, store, email_sender):
        email_sender.fail = True

        with pytest.raises(EmailSendError):
            service.request_code("a@b.com")

        # No rollback: the code can still be used
        assert store.verify_code("a@b.com", "482913").is_verified is True


class TestConfirmCode:
    """Test confirming codes"""

    def test_confirms(self, service):
        service.request_code("a@b.com")
        assert service.confirm_code("a@b.com", "482913") == {"verified": True, "email": "a@b.com"}

    @pytest.mark.parametrize("email,code", [(None, "482913"), ("a@b.com", None), ("a@b.com", "  "), ("bad", "482913")])
    def test_invalid_input(self, service, email, code):
        with pytest.raises(InvalidInputError):
            service.confirm_code(email, code)

    def test_missing_email_reported_before_code(self, service):
        with pytest.raises(InvalidInputError) as exc_info:
            service.confirm_code("", "")
        assert exc_info.value.details == {"field": "email"}

    def test_wrong_code(self, service):
        service.request_code("a@b.com")
        with pytest.raises(VerificationFailedError) as exc_info:
            service.confirm_code("a@b.com", "000000")
        assert exc_info.value.reason == VerificationFailure.MISMATCH


class TestVerificationStatus:
    def test_status_follows_verification(self, service):
        service.request_code("a@b.com")
        assert service.verification_status("a@b.com") == {"email": "a@b.com", "verified": False}

        service.confirm_code("a@b.com", "482913")
        assert service.verification_status("a@b.com") == {"email": "a@b.com", "verified": True}

    def test_status_requires_valid_email(self, service):
        with pytest.raises(InvalidInputError):
            service.verification_status("nope")
