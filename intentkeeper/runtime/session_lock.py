"""Keyed async locks.

Used twice: once per chat session so a session's utterances are processed
in send order, and once per intent display name so the synchronizer's
list-then-write sequence is not interleaved for the same intent.

With a Redis client the lock also holds across processes; without one, or
while Redis cannot be reached, it is a plain in-process ``asyncio.Lock`` per
key.  A Redis lock that stays busy past the timeout raises rather than
falling back.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError


class SessionLockTimeout(RuntimeError):
    """Raised when lock acquisition times out."""


class SessionLock:
    def __init__(
        self,
        namespace: str = "session",
        redis: Redis | None = None,
        ttl_seconds: int = 60,
        timeout: float = 60.0,
    ) -> None:
        self.namespace = namespace
        self._redis = redis
        self._ttl = ttl_seconds
        self._timeout = timeout
        self._local: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def acquire(self, key: str, timeout: float | None = None) -> AsyncIterator[None]:
        timeout = self._timeout if timeout is None else timeout
        if self._redis is not None:
            rlock = self._redis.lock(f"intentkeeper:{self.namespace}:{key}", timeout=self._ttl)
            try:
                acquired = await rlock.acquire(blocking=True, blocking_timeout=timeout)
            except RedisError as exc:
                logger.warning(f"Redis lock unavailable for {self.namespace}:{key}, using in-process lock: {exc}")
            else:
                if not acquired:
                    raise SessionLockTimeout(f"lock timeout: {self.namespace}:{key}")
                try:
                    yield
                finally:
                    try:
                        await rlock.release()
                    except RedisError as exc:
                        logger.warning(f"Redis lock release failed for {self.namespace}:{key}: {exc}")
                return

        # In-process lock (single-instance scenario, or Redis unreachable)
        local = self._local.setdefault(key, asyncio.Lock())
        try:
            await asyncio.wait_for(local.acquire(), timeout=timeout)
        except TimeoutError as exc:
            raise SessionLockTimeout(f"lock timeout: {self.namespace}:{key}") from exc
        try:
            yield
        finally:
            local.release()

    def discard(self, key: str) -> None:
        """Forget an idle key (called when a session ends)."""
        lock = self._local.get(key)
        if lock is not None and not lock.locked():
            del self._local[key]
