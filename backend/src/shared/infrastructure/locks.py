import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import LockError

from shared.exceptions import ConflictError

logger = logging.getLogger(__name__)


class SessionLocks(Protocol):
    """Mutual exclusion keyed by an arbitrary string such as ``session:<id>``."""

    def hold(self, key: str) -> AbstractAsyncContextManager[None]: ...


class LocalSessionLocks:
    """Per-key asyncio locks for a single process.

    Locks are created on demand and discarded once nobody holds or waits on
    them, so distinct sessions never contend with each other.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __contains__(self, key: str) -> bool:
        return key in self._locks


class RedisSessionLocks:
    """Cross-process per-key locks backed by redis-py's ``Lock``."""

    def __init__(self, redis: Redis, timeout: float, blocking_timeout: float | None = None):
        self.redis = redis
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout if blocking_timeout is not None else timeout

    @staticmethod
    def lock_name(key: str) -> str:
        return f"collab:{key}:lock"

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self.redis.lock(
            self.lock_name(key),
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        if not await lock.acquire():
            raise ConflictError(f"Timed out waiting for lock on {key}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Held past its timeout; another writer may already own it.
                logger.warning("Lock %s expired before release", self.lock_name(key))
