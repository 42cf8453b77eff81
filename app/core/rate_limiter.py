"""
Fixed-window rate limiting for email verification endpoints.

Prevents abuse of the send-verification operation. Two stores share one
contract:

- InMemoryRateLimitStore: per-process map (default). Each process
  enforces its own independent limit.
- RedisRateLimitStore: counters shared by every process via Redis.

Windows are anchored at the first hit after the previous window expired
and roll over lazily on access; there is no background timer.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, NamedTuple, Optional

import redis
from fastapi import Request

from app.core.config import settings
from app.core.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RateLimitRecord:
    """Requests seen for one key in the current window."""
    count: int
    reset_time: datetime


class RateLimitHit(NamedTuple):
    total_hits: int
    reset_time: datetime


class RateLimitStore(ABC):
    """Per-key fixed-window counter."""

    def __init__(self, window_seconds: int):
        self.window_seconds = window_seconds

    @abstractmethod
    def increment(self, key: str) -> RateLimitHit:
        """Count one request for key and return the post-increment total."""

    @abstractmethod
    def decrement(self, key: str) -> None:
        """Give back one request for key (never below zero)."""

    @abstractmethod
    def reset_key(self, key: str) -> None:
        """Forget key."""

    @abstractmethod
    def reset_all(self) -> None:
        """Forget every key (test isolation)."""


class InMemoryRateLimitStore(RateLimitStore):
    """
    Rate limit counters held in a process-local dict.

    Expired entries are not removed when their window passes; they are
    reset on the next access. To keep a long-running process from holding
    one entry per key ever seen, increment() purges expired entries once
    the map grows beyond max_keys.
    """

    def __init__(
        self,
        window_seconds: int,
        max_keys: int = 10000,
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(window_seconds)
        self.max_keys = max_keys
        self.clock = clock
        self.data: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def _window_end(self, now: datetime) -> datetime:
        return now + timedelta(seconds=self.window_seconds)

    def increment(self, key: str) -> RateLimitHit:
        with self._lock:
            now = self.clock()
            record = self.data.get(key)
            if record is None:
                if len(self.data) >= self.max_keys:
                    self._purge_expired(now)
                record = RateLimitRecord(count=0, reset_time=self._window_end(now))

            if now >= record.reset_time:
                record.count = 0
                record.reset_time = self._window_end(now)

            record.count += 1
            self.data[key] = record
            return RateLimitHit(record.count, record.reset_time)

    def decrement(self, key: str) -> None:
        with self._lock:
            record = self.data.get(key)
            if record:
                record.count = max(0, record.count - 1)

    def get(self, key: str) -> Optional[RateLimitRecord]:
        with self._lock:
            return self.data.get(key)

    def reset_key(self, key: str) -> None:
        with self._lock:
            self.data.pop(key, None)

    def reset_all(self) -> None:
        with self._lock:
            self.data.clear()

    def purge_expired(self) -> int:
        """Drop entries whose window has passed. Returns the number dropped."""
        with self._lock:
            return self._purge_expired(self.clock())

    def _purge_expired(self, now: datetime) -> int:
        expired = [key for key, record in self.data.items() if now >= record.reset_time]
        for key in expired:
            del self.data[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired rate limit entries")
        return len(expired)


class RedisRateLimitStore(RateLimitStore):
    """
    Redis-based rate limit counters shared across processes.

    The first hit in a window sets the key's TTL to the window length; the
    TTL is what anchors reset_time. Redis errors fail open: the request is
    counted as the first in its window and a warning is logged.
    """

    def __init__(
        self,
        window_seconds: int,
        client: Optional[redis.Redis] = None,
        prefix: str = "rate_limit:",
    ):
        super().__init__(window_seconds)
        self.prefix = prefix
        self.redis_client = client or redis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            decode_responses=True
        )

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def increment(self, key: str) -> RateLimitHit:
        redis_key = self._key(key)
        now = _utcnow()
        try:
            count = int(self.redis_client.incr(redis_key))
            if count == 1:
                self.redis_client.expire(redis_key, self.window_seconds)
                ttl = self.window_seconds
            else:
                ttl = self.redis_client.ttl(redis_key)
                if ttl is None or ttl < 0:
                    # Key lost its expiry (e.g. crash between INCR and EXPIRE)
                    self.redis_client.expire(redis_key, self.window_seconds)
                    ttl = self.window_seconds
            return RateLimitHit(count, now + timedelta(seconds=int(ttl)))
        except redis.RedisError as e:
            logger.warning(f"Redis rate limiter error: {e}")
            return RateLimitHit(1, now + timedelta(seconds=self.window_seconds))

    def decrement(self, key: str) -> None:
        redis_key = self._key(key)
        try:
            # DECR on a missing key creates it at -1 with no TTL; an empty
            # window is the same as no key, so drop it either way
            if int(self.redis_client.decr(redis_key)) <= 0:
                self.redis_client.delete(redis_key)
        except redis.RedisError as e:
            logger.warning(f"Redis rate limiter error: {e}")

    def reset_key(self, key: str) -> None:
        try:
            self.redis_client.delete(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"Redis reset error: {e}")

    def reset_all(self) -> None:
        try:
            keys = list(self.redis_client.scan_iter(match=f"{self.prefix}*"))
            if keys:
                self.redis_client.delete(*keys)
        except redis.RedisError as e:
            logger.warning(f"Redis reset error: {e}")


def create_rate_limit_store() -> RateLimitStore:
    """Build the configured send-verification rate limit store."""
    window = settings.EMAIL_VERIFICATION_RATE_LIMIT_WINDOW
    if settings.RATE_LIMIT_BACKEND == "redis":
        return RedisRateLimitStore(window, prefix="send_verification:")
    return InMemoryRateLimitStore(window, max_keys=settings.RATE_LIMIT_MAX_KEYS)


# Singleton instance
email_verification_store = create_rate_limit_store()


def get_client_ip(request: Request) -> Optional[str]:
    """
    Extract the client's IP address from the request.

    Handles X-Forwarded-For header for proxied requests.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else None


def rate_limit_key(email: Optional[str], client_ip: Optional[str]) -> str:
    """Prefer the payload email, then the caller address, then a constant."""
    if isinstance(email, str) and email.strip():
        return email.strip()
    return client_ip or "unknown"


def check_rate_limit(store: RateLimitStore, key: str, max_requests: int) -> RateLimitHit:
    """
    Count a request against key.

    Raises:
        RateLimitExceededError: 429 once more than max_requests hits land in one window
    """
    hit = store.increment(key)
    if hit.total_hits > max_requests:
        retry_after = store.window_seconds
        logger.info(f"Rate limit exceeded for {key} ({hit.total_hits}/{max_requests})")
        raise RateLimitExceededError(
            retry_after,
            f"Verification codes can be requested {max_requests} time(s) per "
            f"{store.window_seconds} seconds. Please try again in {retry_after} seconds."
        )
    return hit
