"""Revocation store: revoked-but-unexpired tokens.

Each entry lives exactly as long as the token it revokes, so the store
never holds a token that would fail validation anyway and never forgets
one that would still pass it. Entries are keyed on the SHA-256 digest of
the raw token rather than the token itself.

Two backends:
- InMemoryRevocationStore: single-instance deployments
- RedisRevocationStore: shared across instances
"""

import hashlib
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from linkshelf.core.config import Settings
from linkshelf.services.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

REDIS_KEY_PREFIX = "token:revoked:"
REVOKED_MARKER = "1"


def revocation_key(token: str) -> str:
    """Stable, fixed-size store key for a raw token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RevocationStore(ABC):
    """Set of revoked tokens whose entries expire with the tokens themselves."""

    async def revoke(self, token: str, ttl_ms: int) -> None:
        """Mark ``token`` revoked for the next ``ttl_ms`` milliseconds.

        No-op for an empty token or a non-positive TTL.
        """
        if not token or ttl_ms <= 0:
            logger.debug("Skipping revocation of empty or already-expired token")
            return
        await self._store(revocation_key(token), ttl_ms)

    async def is_revoked(self, token: str) -> bool:
        if not token:
            return False
        return await self._contains(revocation_key(token))

    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def _store(self, key: str, ttl_ms: int) -> None: ...

    @abstractmethod
    async def _contains(self, key: str) -> bool: ...


class InMemoryRevocationStore(RevocationStore):
    """Lock-guarded dict of key -> monotonic deadline.

    Expired entries are dropped when read and by purge_expired(), which the
    application calls periodically so unread entries do not accumulate.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[str, float] = {}
        self._lock = threading.Lock()
        self._clock = clock

    async def _store(self, key: str, ttl_ms: int) -> None:
        deadline = self._clock() + ttl_ms / 1000
        with self._lock:
            self._entries[key] = deadline

    async def _contains(self, key: str) -> bool:
        with self._lock:
            deadline = self._entries.get(key)
            if deadline is None:
                return False
            if self._clock() >= deadline:
                del self._entries[key]
                return False
            return True

    def purge_expired(self) -> int:
        """Remove expired entries. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, deadline in self._entries.items() if now >= deadline]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisRevocationStore(RevocationStore):
    """Redis-backed store; Redis expires each key after its TTL."""

    def __init__(self, redis: Redis):
        self._redis = redis

    @classmethod
    def from_url(cls, url: str) -> "RedisRevocationStore":
        return cls(Redis.from_url(url, decode_responses=True))

    async def _store(self, key: str, ttl_ms: int) -> None:
        try:
            await self._redis.set(f"{REDIS_KEY_PREFIX}{key}", REVOKED_MARKER, px=ttl_ms)
        except RedisError as e:
            logger.error(f"Revocation store write failed: {e}")
            raise StoreUnavailableError() from e

    async def _contains(self, key: str) -> bool:
        try:
            return await self._redis.exists(f"{REDIS_KEY_PREFIX}{key}") > 0
        except RedisError as e:
            logger.error(f"Revocation store lookup failed: {e}")
            raise StoreUnavailableError() from e

    async def close(self) -> None:
        await self._redis.aclose()


def create_revocation_store(settings: Settings) -> RevocationStore:
    """Build the revocation store selected by configuration."""
    if settings.revocation_backend == "redis":
        if not settings.redis_url:
            raise ValueError("REDIS_URL is required when REVOCATION_BACKEND=redis")
        logger.info("Using Redis revocation store")
        return RedisRevocationStore.from_url(settings.redis_url)
    logger.info("Using in-memory revocation store")
    return InMemoryRevocationStore()
