"""
Pytest configuration and fixtures for testing.

This file provides reusable test fixtures for:
- Database setup/teardown
- FastAPI test client with fake email sender and fresh rate limit store
- Verification stores over both backends
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  (register tables on Base.metadata)
from app.core.database import Base, get_db
from app.core.deps import get_email_sender, get_rate_limit_store
from app.core.rate_limiter import InMemoryRateLimitStore
from app.core.verification import InMemoryVerificationBackend, VerificationStore
from app.crud.email_verification import EmailVerificationRepository
from main import app


# Use in-memory SQLite for testing (fast, isolated)
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeEmailSender:
    """Records verification emails instead of sending them."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send_verification_email(self, to_email: str, verification_code: str) -> bool:
        if self.fail:
            return False
        self.sent.append({"to": to_email, "code": verification_code})
        return True

    def last_code_for(self, email: str) -> str:
        return [m["code"] for m in self.sent if m["to"] == email][-1]


@pytest.fixture
def db_session():
    """
    Create a fresh database session for each test.
    Tables are dropped after the test completes.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def rate_limit_store():
    store = InMemoryRateLimitStore(window_seconds=60)
    yield store
    store.reset_all()


@pytest.fixture(params=["memory", "sql"])
def verification_store(request, db_session, clock):
    """VerificationStore over each backend, sharing the fake clock."""
    if request.param == "memory":
        backend = InMemoryVerificationBackend()
    else:
        backend = EmailVerificationRepository(db_session)
    store = VerificationStore(backend, code_expires_in=180, max_attempts=5, clock=clock)
    yield store
    store.reset_all()


@pytest.fixture
def client(db_session, email_sender, rate_limit_store):
    """
    FastAPI test client with overridden database, email and rate limit dependencies.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    app.dependency_overrides[get_rate_limit_store] = lambda: rate_limit_store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
