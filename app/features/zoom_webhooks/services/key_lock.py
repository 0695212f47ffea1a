"""
Per-key serialization for read-modify-write on store rows.

Hop logs are read, appended in memory and written back whole, so two
concurrent deliveries for the same (session, participant) would lose an
append. Every mutation therefore runs under ``async with lock.hold(key)``.
InProcessKeyedLock covers a single worker; RedisKeyedLock covers several
workers sharing one database.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from redis.exceptions import LockError

from app.infrastructure.observability.logging import get_logger
from app.services.redis_client import RedisClient

logger = get_logger(__name__)

LOCK_NAMESPACE = "zoom-webhooks:lock"


def session_lock_key(session_key: str) -> str:
    return f"session:{session_key}"


def participant_lock_key(session_key: str, participant_key: str) -> str:
    return f"participant:{session_key}:{participant_key}"


class KeyedLock(Protocol):
    def hold(self, key: str) -> AbstractAsyncContextManager[None]: ...


class InProcessKeyedLock:
    """Map of asyncio.Lock objects, dropped once nobody holds or waits on them."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


class RedisKeyedLock:
    """Distributed variant using redis-py's Lock (SET NX PX + token release)."""

    def __init__(
        self,
        client: RedisClient,
        timeout: float = 30.0,
        blocking_timeout: float | None = 10.0,
    ):
        self._client = client
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._client.lock(
            f"{LOCK_NAMESPACE}:{key}",
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            raise LockError(f"Timed out waiting for lock {key}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # Expired while held; the write already happened
                logger.warning("Lock expired before release", key=key, error=str(e))
