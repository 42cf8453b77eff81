"""
Email verification flow for store sign-up.

Composes the code generator, the verification store, the email sender
and the duplicate-account lookup into the send / verify operations the
API exposes.
"""

import logging
from typing import Any, Callable, Dict, Protocol

from app.core.exceptions import EmailAlreadyExistsError, EmailSendError, InvalidInputError
from app.core.validation import is_blank, is_valid_email
from app.core.verification import CODE_EXPIRES_IN, VerificationStore, generate_verification_code

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    def send_verification_email(self, to_email: str, verification_code: str) -> bool:
        ...


def _require_email(email: Any) -> str:
    if is_blank(email):
        raise InvalidInputError("Email is required", {"field": "email"})
    if not is_valid_email(email):
        raise InvalidInputError("Invalid email format", {"field": "email"})
    return email.strip()


class EmailVerificationService:
    """
    Send / confirm verification codes.

    Args:
        store: Verification store for the current request
        email_sender: Anything with send_verification_email(to_email, code) -> bool
        account_exists: Returns True when a store already uses the email
        code_generator: Produces a new code
        code_expires_in: Seconds a code stays valid (reported to clients)
    """

    def __init__(
        self,
        store: VerificationStore,
        email_sender: EmailSender,
        account_exists: Callable[[str], bool],
        code_generator: Callable[[], str] = generate_verification_code,
        code_expires_in: int = CODE_EXPIRES_IN,
    ):
        self.store = store
        self.email_sender = email_sender
        self.account_exists = account_exists
        self.code_generator = code_generator
        self.code_expires_in = code_expires_in

    def request_code(self, email: Any) -> Dict[str, Any]:
        """
        Issue a new code for email and send it.

        If delivery fails the stored code stays valid; the client simply
        requests again.

        Raises:
            InvalidInputError: missing or malformed email
            EmailAlreadyExistsError: a store is already registered with email
            StorageError: the code could not be saved
            EmailSendError: the email could not be delivered
        """
        email = _require_email(email)

        if self.account_exists(email):
            raise EmailAlreadyExistsError(details={"email": email})

        code = self.code_generator()
        self.store.save_code(email, code)

        if not self.email_sender.send_verification_email(email, code):
            raise EmailSendError()

        logger.info(f"Verification code sent to {email}")
        return {"email": email, "expiresIn": self.code_expires_in}

    def confirm_code(self, email: Any, code: Any) -> Dict[str, Any]:
        """
        Check a submitted code.

        Raises:
            InvalidInputError: missing fields or malformed email
            VerificationFailedError: the code was rejected
            StorageError: persistence failed
        """
        if is_blank(email):
            raise InvalidInputError("Email is required", {"field": "email"})
        if is_blank(code):
            raise InvalidInputError("Verification code is required", {"field": "code"})
        email = _require_email(email)

        self.store.verify_code(email, code.strip())

        logger.info(f"Email {email} verified")
        return {"verified": True, "email": email}

    def verification_status(self, email: Any) -> Dict[str, Any]:
        """Whether email has completed verification."""
        email = _require_email(email)
        return {"email": email, "verified": self.store.is_email_verified(email)}
