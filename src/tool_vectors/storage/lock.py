"""
Single-writer leases for vector column migrations.

Reconciliation alters shared schema (drop index, purge rows, alter the
column width, rebuild the index). Two batches racing on that sequence with
different target widths can leave the column and its rows inconsistent,
so every reconciliation pass holds a lease keyed on "<table>.<column>".

- LocalReconciliationLock: per-key asyncio.Lock, one process
- RedisReconciliationLock: SET NX PX lease shared across processes
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Protocol

from loguru import logger
from redis import asyncio as aioredis

from ..config import Config

# Delete the key only if we still own it
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LeaseTimeoutError(TimeoutError):
    """The migration lease could not be acquired in time."""


class ReconciliationLock(Protocol):
    def hold(self, key: str) -> "AsyncIterator[None]":
        """Async context manager holding the lease for key."""


class LocalReconciliationLock:
    """In-process lease: one asyncio.Lock per column key."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._lock_for(key)
        if lock.locked():
            logger.info("Waiting for vector migration lease on {}", key)
        async with lock:
            yield


class RedisReconciliationLock:
    """
    Redis-backed lease with automatic TTL expiration.

    The TTL bounds how long a crashed holder can block others; the token
    makes release a no-op for a lease that already expired and was taken
    over by another writer.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        wait_seconds: Optional[float] = None,
        poll_interval: float = 0.1,
        client: Optional[aioredis.Redis] = None,
    ):
        self.redis_url = redis_url or Config.REDIS_URL
        self.ttl_seconds = ttl_seconds or Config.VECTOR_LOCK_TTL
        self.wait_seconds = Config.VECTOR_LOCK_WAIT if wait_seconds is None else wait_seconds
        self.poll_interval = poll_interval
        self._redis_client = client

    async def _get_redis(self) -> aioredis.Redis:
        if self._redis_client is None:
            self._redis_client = aioredis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        return self._redis_client

    @staticmethod
    def _lease_key(key: str) -> str:
        return f"vector_migration:{key}"

    async def acquire(self, key: str) -> str:
        """
        Acquire the lease, polling until wait_seconds elapses.

        Returns:
            Ownership token to pass to release()

        Raises:
            LeaseTimeoutError: If the lease is still held after wait_seconds
        """
        redis = await self._get_redis()
        token = uuid.uuid4().hex
        lease_key = self._lease_key(key)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_seconds

        while True:
            acquired = await redis.set(lease_key, token, nx=True, px=self.ttl_seconds * 1000)
            if acquired:
                logger.debug("Acquired vector migration lease {}", lease_key)
                return token
            if loop.time() >= deadline:
                raise LeaseTimeoutError(
                    f"Timed out after {self.wait_seconds}s waiting for lease {lease_key}"
                )
            await asyncio.sleep(self.poll_interval)

    async def release(self, key: str, token: str) -> bool:
        redis = await self._get_redis()
        released = await redis.eval(_RELEASE_SCRIPT, 1, self._lease_key(key), token)
        if not released:
            logger.warning("Vector migration lease {} expired before release", key)
        return bool(released)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        token = await self.acquire(key)
        try:
            yield
        finally:
            try:
                await self.release(key, token)
            except (aioredis.ConnectionError, aioredis.TimeoutError) as e:
                # Lease still expires through its TTL
                logger.error("Failed to release vector migration lease {}: {}", key, e)

    async def close(self) -> None:
        if self._redis_client is not None:
            await self._redis_client.aclose()
            self._redis_client = None


def create_reconciliation_lock(backend: Optional[str] = None) -> ReconciliationLock:
    """Build the lease implementation named by VECTOR_LOCK_BACKEND."""
    backend = (backend or Config.VECTOR_LOCK_BACKEND).lower()
    if backend == "redis":
        return RedisReconciliationLock()
    if backend == "memory":
        return LocalReconciliationLock()
    raise ValueError(f"Unknown VECTOR_LOCK_BACKEND: {backend}")
